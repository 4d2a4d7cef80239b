"""
Component Test Fixtures for Timeline Service

Provides fixtures for component testing with mocked dependencies.
Uses FastAPI TestClient for API testing.
"""

import os
import sys
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import ServiceConfig
from microservices.timeline_service.events.publishers import TimelineEventPublisher
from microservices.timeline_service.models import (
    Campaign,
    CampaignPatch,
    EntityType,
    Project,
    ProjectPatch,
    Task,
    TaskPatch,
)
from microservices.timeline_service.timeline_service import TimelineService
from tests.contracts.timeline.data_contract import TimelineTestDataFactory, utc


# ====================
# Mock Repository
# ====================


class MockTimelineRepository:
    """In-memory entity store for component testing"""

    def __init__(self):
        self.projects: Dict[str, Project] = {}
        self.campaigns: Dict[str, Campaign] = {}
        self.tasks: Dict[str, Task] = {}

        # ids whose update raises, to simulate store failures
        self.failing_ids: Set[str] = set()
        self.update_calls: List[Tuple[str, Any]] = []
        self.subscriptions: List[Tuple[str, EntityType, Any]] = []
        self.unsubscribed = 0

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    # Projects
    async def get_project(self, project_id: str) -> Optional[Project]:
        return self.projects.get(project_id)

    async def list_projects(self, organization_id: str) -> List[Project]:
        return [p for p in self.projects.values() if p.organization_id == organization_id]

    async def update_project(self, project_id: str, patch: ProjectPatch) -> Optional[Project]:
        return self._update(self.projects, project_id, patch)

    # Campaigns
    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self.campaigns.get(campaign_id)

    async def list_campaigns(self, organization_id: str, project_id: Optional[str] = None) -> List[Campaign]:
        results = [c for c in self.campaigns.values() if c.organization_id == organization_id]
        if project_id is not None:
            results = [c for c in results if c.project_id == project_id]
        return results

    async def update_campaign(self, campaign_id: str, patch: CampaignPatch) -> Optional[Campaign]:
        return self._update(self.campaigns, campaign_id, patch)

    # Tasks
    async def get_task(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    async def list_tasks(self, organization_id: str, campaign_ids: Optional[List[str]] = None) -> List[Task]:
        results = [t for t in self.tasks.values() if t.organization_id == organization_id]
        if campaign_ids is not None:
            results = [t for t in results if t.campaign_id in campaign_ids]
        return results

    async def update_task(self, task_id: str, patch: TaskPatch) -> Optional[Task]:
        return self._update(self.tasks, task_id, patch)

    # Change feed
    async def subscribe(self, organization_id: str, entity_type: EntityType, callback):
        subscription = (organization_id, entity_type, callback)
        self.subscriptions.append(subscription)

        async def _unsubscribe():
            self.subscriptions.remove(subscription)
            self.unsubscribed += 1

        return _unsubscribe

    async def emit(self, organization_id: str, entity_type: EntityType) -> None:
        """Deliver the current collection to matching subscribers"""
        collections = {
            EntityType.PROJECT: self.list_projects,
            EntityType.CAMPAIGN: self.list_campaigns,
            EntityType.TASK: self.list_tasks,
        }
        collection = await collections[entity_type](organization_id)
        for org, kind, callback in list(self.subscriptions):
            if org == organization_id and kind == entity_type:
                callback(collection)

    def _update(self, store: Dict[str, Any], entity_id: str, patch):
        self.update_calls.append((entity_id, patch))
        if entity_id in self.failing_ids:
            raise ConnectionError(f"write failed for {entity_id}")
        entity = store.get(entity_id)
        if entity is None:
            return None
        updated = patch.apply(entity)
        store[entity_id] = updated
        return updated


# ====================
# Mock Event Bus
# ====================


class MockEventBus:
    """Mock event bus for component testing"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []
        self.is_connected = True

    async def publish_event(self, event) -> bool:
        self.published_events.append(
            {
                "event_type": event.type,
                "source": event.source,
                "data": event.data,
            }
        )
        return True

    async def close(self) -> None:
        self.is_connected = False

    def get_events_by_type(self, event_type: str) -> List[Dict]:
        return [e for e in self.published_events if e["event_type"] == event_type]

    def clear_events(self):
        self.published_events = []


# ====================
# Fixtures
# ====================


@pytest.fixture
def mock_repository():
    return MockTimelineRepository()


@pytest.fixture
def mock_event_bus():
    return MockEventBus()


@pytest.fixture
def service_config():
    return ServiceConfig(max_concurrent_writes=2)


@pytest.fixture
def timeline_service(mock_repository, mock_event_bus, service_config):
    return TimelineService(
        repository=mock_repository,
        event_bus=mock_event_bus,
        config=service_config,
        event_publisher=TimelineEventPublisher(mock_event_bus),
    )


@pytest.fixture
def actor():
    return TimelineTestDataFactory.make_actor()


@pytest.fixture
def seeded(mock_repository):
    """
    One project with two campaigns and their tasks.

    prj_launch: Jan 1 - Feb 29 2024
      cmp_email: Jan 3 - Jan 20   tasks: tsk_brief (due Jan 5), tsk_send (Jan 10 - Jan 18), tsk_idea (undated)
      cmp_social: Jan 15 - Feb 10 tasks: tsk_post (due Jan 16)
      cmp_draft: undated          tasks: tsk_orphan (due Jan 8)
    """
    f = TimelineTestDataFactory
    project = f.make_project(project_id="prj_launch", start_date=utc(2024, 1, 1), end_date=utc(2024, 2, 29))
    campaigns = [
        f.make_campaign(campaign_id="cmp_email", project_id="prj_launch",
                        start_date=utc(2024, 1, 3), end_date=utc(2024, 1, 20)),
        f.make_campaign(campaign_id="cmp_social", project_id="prj_launch",
                        start_date=utc(2024, 1, 15), end_date=utc(2024, 2, 10)),
        f.make_campaign(campaign_id="cmp_draft", project_id="prj_launch"),
    ]
    tasks = [
        f.make_task("cmp_email", task_id="tsk_brief", due_date=utc(2024, 1, 5)),
        f.make_task("cmp_email", task_id="tsk_send", start_date=utc(2024, 1, 10), due_date=utc(2024, 1, 18)),
        f.make_task("cmp_email", task_id="tsk_idea"),
        f.make_task("cmp_social", task_id="tsk_post", due_date=utc(2024, 1, 16)),
        f.make_task("cmp_draft", task_id="tsk_orphan", due_date=utc(2024, 1, 8)),
    ]

    mock_repository.projects[project.project_id] = project
    for campaign in campaigns:
        mock_repository.campaigns[campaign.campaign_id] = campaign
    for task in tasks:
        mock_repository.tasks[task.task_id] = task

    return mock_repository
