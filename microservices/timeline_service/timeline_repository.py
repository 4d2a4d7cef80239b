"""
Timeline Service Data Repository

Data access layer - PostgreSQL (asyncpg)

Reads and writes the planner's projects, campaigns and tasks. Partial updates
arrive as typed patches so that an omitted field is never written and a
cleared field is written as NULL.

The change feed relies on row triggers in the planner schema that run
pg_notify on the configured channel with a JSON payload such as
{"table": "tasks", "organization_id": "org_1", "op": "UPDATE"}.
Every matching notification re-queries the whole collection.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from core.config import ServiceConfig
from core.postgres_client import PostgresClient

from .models import (
    Campaign,
    CampaignPatch,
    EntityPatch,
    EntityType,
    Project,
    ProjectPatch,
    Task,
    TaskPatch,
)
from .protocols import CollectionCallback, Unsubscribe

logger = logging.getLogger(__name__)


TABLES = {
    EntityType.PROJECT: "projects",
    EntityType.CAMPAIGN: "campaigns",
    EntityType.TASK: "tasks",
}

PROJECT_COLUMNS = ["project_id", "organization_id", "title", "start_date", "end_date", "created_at", "updated_at"]
CAMPAIGN_COLUMNS = ["campaign_id", "organization_id", "project_id", "title", "start_date", "end_date", "created_at", "updated_at"]
TASK_COLUMNS = ["task_id", "organization_id", "campaign_id", "list_id", "title", "start_date", "due_date", "created_at", "updated_at"]


def build_update_statement(
    schema: str,
    table: str,
    key_column: str,
    key_value: str,
    updates: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Tuple[str, List[Any]]:
    """
    Build a parameterized UPDATE ... RETURNING * statement.

    updated_at is always refreshed. Column names come from patch models,
    never from user input.
    """
    set_clauses = []
    params: List[Any] = []
    param_count = 0

    for column, value in updates.items():
        param_count += 1
        set_clauses.append(f"{column} = ${param_count}")
        params.append(value)

    param_count += 1
    set_clauses.append(f"updated_at = ${param_count}")
    params.append(now or datetime.now(timezone.utc))

    param_count += 1
    params.append(key_value)

    query = f'''
        UPDATE {schema}.{table}
        SET {", ".join(set_clauses)}
        WHERE {key_column} = ${param_count}
        RETURNING *
    '''
    return query, params


def parse_notification(payload: str) -> Optional[Dict[str, Any]]:
    """Decode a change notification; malformed payloads are ignored"""
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring malformed change notification: {payload!r}")
        return None
    return data if isinstance(data, dict) else None


class TimelineRepository:
    """Timeline service data repository - PostgreSQL (asyncpg)"""

    def __init__(
        self,
        db: Optional[PostgresClient] = None,
        config: Optional[ServiceConfig] = None,
    ):
        self.config = config or ServiceConfig()
        self.db = db or PostgresClient(service_name=self.config.service_name)
        self.schema = self.config.db_schema
        self.channel = self.config.change_channel

        self._refetches: Set[asyncio.Task] = set()

    async def initialize(self):
        """Initialize database connection"""
        await self.db.connect()
        logger.info("Timeline repository initialized with PostgreSQL")

    async def close(self):
        """Close database connection"""
        for task in list(self._refetches):
            task.cancel()
        await self.db.close()
        logger.info("Timeline repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        return await self.db.health_check()

    # ====================
    # Projects
    # ====================

    async def get_project(self, project_id: str) -> Optional[Project]:
        row = await self.db.query_row(
            f"SELECT * FROM {self.schema}.projects WHERE project_id = $1",
            [project_id],
        )
        return self._row_to_project(row) if row else None

    async def list_projects(self, organization_id: str) -> List[Project]:
        rows = await self.db.query(
            f"SELECT * FROM {self.schema}.projects WHERE organization_id = $1 ORDER BY start_date NULLS LAST, created_at",
            [organization_id],
        )
        return [self._row_to_project(row) for row in rows]

    async def update_project(self, project_id: str, patch: ProjectPatch) -> Optional[Project]:
        row = await self._update(TABLES[EntityType.PROJECT], "project_id", project_id, patch)
        if row is None and patch.is_empty():
            return await self.get_project(project_id)
        return self._row_to_project(row) if row else None

    # ====================
    # Campaigns
    # ====================

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        row = await self.db.query_row(
            f"SELECT * FROM {self.schema}.campaigns WHERE campaign_id = $1",
            [campaign_id],
        )
        return self._row_to_campaign(row) if row else None

    async def list_campaigns(
        self,
        organization_id: str,
        project_id: Optional[str] = None,
    ) -> List[Campaign]:
        conditions = ["organization_id = $1"]
        params: List[Any] = [organization_id]
        if project_id is not None:
            conditions.append("project_id = $2")
            params.append(project_id)

        rows = await self.db.query(
            f'''
                SELECT * FROM {self.schema}.campaigns
                WHERE {" AND ".join(conditions)}
                ORDER BY start_date NULLS LAST, created_at
            ''',
            params,
        )
        return [self._row_to_campaign(row) for row in rows]

    async def update_campaign(self, campaign_id: str, patch: CampaignPatch) -> Optional[Campaign]:
        row = await self._update(TABLES[EntityType.CAMPAIGN], "campaign_id", campaign_id, patch)
        if row is None and patch.is_empty():
            return await self.get_campaign(campaign_id)
        return self._row_to_campaign(row) if row else None

    # ====================
    # Tasks
    # ====================

    async def get_task(self, task_id: str) -> Optional[Task]:
        row = await self.db.query_row(
            f"SELECT * FROM {self.schema}.tasks WHERE task_id = $1",
            [task_id],
        )
        return self._row_to_task(row) if row else None

    async def list_tasks(
        self,
        organization_id: str,
        campaign_ids: Optional[List[str]] = None,
    ) -> List[Task]:
        conditions = ["organization_id = $1"]
        params: List[Any] = [organization_id]
        if campaign_ids is not None:
            conditions.append("campaign_id = ANY($2::text[])")
            params.append(list(campaign_ids))

        rows = await self.db.query(
            f'''
                SELECT * FROM {self.schema}.tasks
                WHERE {" AND ".join(conditions)}
                ORDER BY due_date NULLS LAST, created_at
            ''',
            params,
        )
        return [self._row_to_task(row) for row in rows]

    async def update_task(self, task_id: str, patch: TaskPatch) -> Optional[Task]:
        row = await self._update(TABLES[EntityType.TASK], "task_id", task_id, patch)
        if row is None and patch.is_empty():
            return await self.get_task(task_id)
        return self._row_to_task(row) if row else None

    # ====================
    # Change feed
    # ====================

    async def subscribe(
        self,
        organization_id: str,
        entity_type: EntityType,
        callback: CollectionCallback,
    ) -> Unsubscribe:
        """LISTEN for changes to one collection and deliver it in full on each change"""
        table = TABLES[entity_type]

        async def _refetch() -> None:
            try:
                collection = await self._list(entity_type, organization_id)
            except Exception as e:
                logger.error(f"Failed to refetch {table} for {organization_id}: {e}")
                return
            callback(collection)

        def _on_notify(channel: str, payload: str) -> None:
            change = parse_notification(payload)
            if change is None:
                return
            if change.get("table") != table or change.get("organization_id") != organization_id:
                return
            task = asyncio.get_running_loop().create_task(_refetch())
            self._refetches.add(task)
            task.add_done_callback(self._refetches.discard)

        unlisten = await self.db.listen(self.channel, _on_notify)
        logger.info(f"Subscribed to {table} changes for organization {organization_id}")
        return unlisten

    async def _list(self, entity_type: EntityType, organization_id: str) -> list:
        if entity_type == EntityType.PROJECT:
            return await self.list_projects(organization_id)
        if entity_type == EntityType.CAMPAIGN:
            return await self.list_campaigns(organization_id)
        return await self.list_tasks(organization_id)

    # ====================
    # Helpers
    # ====================

    async def _update(
        self, table: str, key_column: str, key_value: str, patch: EntityPatch
    ) -> Optional[Dict[str, Any]]:
        if patch.is_empty():
            return None

        query, params = build_update_statement(
            self.schema, table, key_column, key_value, patch.to_updates()
        )
        try:
            return await self.db.query_row(query, params)
        except Exception as e:
            logger.error(f"Error updating {table} {key_value}: {e}")
            raise

    def _row_to_project(self, row: Dict[str, Any]) -> Project:
        """Convert database row to Project model"""
        return Project.model_validate({k: row.get(k) for k in PROJECT_COLUMNS if row.get(k) is not None})

    def _row_to_campaign(self, row: Dict[str, Any]) -> Campaign:
        """Convert database row to Campaign model"""
        return Campaign.model_validate({k: row.get(k) for k in CAMPAIGN_COLUMNS if row.get(k) is not None})

    def _row_to_task(self, row: Dict[str, Any]) -> Task:
        """Convert database row to Task model"""
        return Task.model_validate({k: row.get(k) for k in TASK_COLUMNS if row.get(k) is not None})


__all__ = ["TimelineRepository", "build_update_statement", "parse_notification", "TABLES"]
