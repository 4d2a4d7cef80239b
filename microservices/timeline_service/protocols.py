"""
Timeline Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import Any, Awaitable, Callable, List, Optional, Protocol

from .models import (
    Campaign,
    CampaignPatch,
    EntityType,
    Project,
    ProjectPatch,
    Task,
    TaskPatch,
)


# Delivers the refreshed full collection for a subscribed scope
CollectionCallback = Callable[[List[Any]], None]
Unsubscribe = Callable[[], Awaitable[None]]


# ====================
# Repository Protocol
# ====================


class EntityStoreProtocol(Protocol):
    """Protocol for the planner entity store"""

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    # Projects
    async def get_project(self, project_id: str) -> Optional[Project]:
        ...

    async def list_projects(self, organization_id: str) -> List[Project]:
        ...

    async def update_project(self, project_id: str, patch: ProjectPatch) -> Optional[Project]:
        """Write the present fields of the patch; returns the stored project"""
        ...

    # Campaigns
    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        ...

    async def list_campaigns(
        self,
        organization_id: str,
        project_id: Optional[str] = None,
    ) -> List[Campaign]:
        ...

    async def update_campaign(self, campaign_id: str, patch: CampaignPatch) -> Optional[Campaign]:
        ...

    # Tasks
    async def get_task(self, task_id: str) -> Optional[Task]:
        ...

    async def list_tasks(
        self,
        organization_id: str,
        campaign_ids: Optional[List[str]] = None,
    ) -> List[Task]:
        ...

    async def update_task(self, task_id: str, patch: TaskPatch) -> Optional[Task]:
        ...

    # Change feed
    async def subscribe(
        self,
        organization_id: str,
        entity_type: EntityType,
        callback: CollectionCallback,
    ) -> Unsubscribe:
        """
        Watch one collection of an organization.

        The callback receives the full, freshly queried collection after each
        change. Returns a coroutine function that ends the subscription.
        """
        ...


# ====================
# Event Bus Protocol
# ====================


class EventBusProtocol(Protocol):
    """Protocol for event bus"""

    async def publish_event(self, event: Any) -> bool:
        """Publish an event"""
        ...

    async def close(self) -> None:
        """Close event bus connection"""
        ...


# ====================
# Exceptions
# ====================


class TimelineServiceError(Exception):
    """Base exception for timeline service"""
    pass


class ProjectNotFoundError(TimelineServiceError):
    """Project not found"""

    def __init__(self, message: str, project_id: Optional[str] = None):
        super().__init__(message)
        self.project_id = project_id


class CampaignNotFoundError(TimelineServiceError):
    """Campaign not found"""

    def __init__(self, message: str, campaign_id: Optional[str] = None):
        super().__init__(message)
        self.campaign_id = campaign_id


class TimelineValidationError(TimelineServiceError):
    """Requested timeline change is invalid"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class OrganizationScopeError(TimelineServiceError):
    """Entity belongs to a different organization than the actor"""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        super().__init__(message)
        self.entity_id = entity_id


class TimelineStoreError(TimelineServiceError):
    """Entity store failed while writing the parent entity"""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        super().__init__(message)
        self.entity_id = entity_id


__all__ = [
    # Protocols
    "EntityStoreProtocol",
    "EventBusProtocol",
    "CollectionCallback",
    "Unsubscribe",
    # Exceptions
    "TimelineServiceError",
    "ProjectNotFoundError",
    "CampaignNotFoundError",
    "TimelineValidationError",
    "OrganizationScopeError",
    "TimelineStoreError",
]
