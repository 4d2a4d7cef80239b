"""
Timeline State

In-memory view of one organization's projects, campaigns and tasks, owned by
the timeline service. The date cascade engine never touches this object: the
service reads snapshots out of it and writes the engine's results back in.

Reconciliation is "last write wins by refetch": locally applied results are
kept until the store's change feed delivers a full collection, which then
replaces the local one wholesale.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .models import Campaign, EntityType, Project, Task

logger = logging.getLogger(__name__)


class TimelineState:
    """Projects, campaigns and tasks of one organization, keyed by id"""

    def __init__(self, organization_id: Optional[str] = None):
        self.organization_id = organization_id
        self._projects: Dict[str, Project] = {}
        self._campaigns: Dict[str, Campaign] = {}
        self._tasks: Dict[str, Task] = {}

        self.revision = 0
        self.refetched_at: Dict[EntityType, datetime] = {}

    # ====================
    # Reads
    # ====================

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    @property
    def projects(self) -> List[Project]:
        return list(self._projects.values())

    @property
    def campaigns(self) -> List[Campaign]:
        return list(self._campaigns.values())

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def campaigns_of(self, project_id: str) -> List[Campaign]:
        """Snapshot of a project's campaigns"""
        return [c for c in self._campaigns.values() if c.project_id == project_id]

    def tasks_of(self, campaign_ids: Iterable[str]) -> List[Task]:
        """Snapshot of the tasks of the given campaigns"""
        wanted = set(campaign_ids)
        return [t for t in self._tasks.values() if t.campaign_id in wanted]

    # ====================
    # Local writes
    # ====================

    def apply_project(self, project: Project) -> None:
        self._projects[project.project_id] = project
        self._bump()

    def apply_campaigns(self, campaigns: Iterable[Campaign]) -> None:
        for campaign in campaigns:
            self._campaigns[campaign.campaign_id] = campaign
        self._bump()

    def apply_tasks(self, tasks: Iterable[Task]) -> None:
        for task in tasks:
            self._tasks[task.task_id] = task
        self._bump()

    def load(
        self,
        projects: Iterable[Project] = (),
        campaigns: Iterable[Campaign] = (),
        tasks: Iterable[Task] = (),
    ) -> None:
        """Overwrite the given entities with freshly read store values"""
        for project in projects:
            self._projects[project.project_id] = project
        for campaign in campaigns:
            self._campaigns[campaign.campaign_id] = campaign
        for task in tasks:
            self._tasks[task.task_id] = task
        self._bump()

    # ====================
    # Refetch reconciliation
    # ====================

    def replace_projects(self, projects: Iterable[Project]) -> None:
        self._projects = {p.project_id: p for p in projects}
        self._refetched(EntityType.PROJECT, len(self._projects))

    def replace_campaigns(self, campaigns: Iterable[Campaign]) -> None:
        self._campaigns = {c.campaign_id: c for c in campaigns}
        self._refetched(EntityType.CAMPAIGN, len(self._campaigns))

    def replace_tasks(self, tasks: Iterable[Task]) -> None:
        self._tasks = {t.task_id: t for t in tasks}
        self._refetched(EntityType.TASK, len(self._tasks))

    def replace(self, entity_type: EntityType, entities: Iterable) -> None:
        """Dispatch a refetched collection to the matching replace_* method"""
        if entity_type == EntityType.PROJECT:
            self.replace_projects(entities)
        elif entity_type == EntityType.CAMPAIGN:
            self.replace_campaigns(entities)
        else:
            self.replace_tasks(entities)

    def clear(self) -> None:
        self._projects.clear()
        self._campaigns.clear()
        self._tasks.clear()
        self.refetched_at.clear()
        self._bump()

    def _refetched(self, entity_type: EntityType, count: int) -> None:
        self.refetched_at[entity_type] = datetime.now(timezone.utc)
        self._bump()
        logger.debug(f"Replaced {entity_type.value} collection ({count} items), revision {self.revision}")

    def _bump(self) -> None:
        self.revision += 1


__all__ = ["TimelineState"]
