"""
Timeline Service Data Contract

Re-exports the timeline entities and request models and provides test data
factories for the timeline service.

All timeline tests should build entities through TimelineTestDataFactory so
that ids, organizations and dates stay consistent.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from microservices.timeline_service.models import (
    Actor,
    Campaign,
    CampaignPatch,
    DateValidationReport,
    EntityType,
    FieldPatch,
    PatchOp,
    Project,
    ProjectPatch,
    RescheduleRequest,
    ShiftDirection,
    ShiftPreviewRequest,
    ShiftStatistics,
    Task,
    TaskPatch,
)


DEFAULT_ORG = "org_test"
DEFAULT_USER = "usr_test"


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware UTC datetime shorthand"""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class TimelineTestDataFactory:
    """Factory for generating test data for timeline service tests

    Usage:
        factory = TimelineTestDataFactory()
        project = factory.make_project(start_date=utc(2024, 3, 1))
        campaign = factory.make_campaign(project_id=project.project_id)
        task = factory.make_task(campaign_id=campaign.campaign_id, due_date=utc(2024, 3, 5))
    """

    @staticmethod
    def make_id(prefix: str) -> str:
        """Generate a unique ID with prefix"""
        return f"{prefix}_{uuid4().hex[:16]}"

    @staticmethod
    def make_actor(
        user_id: str = DEFAULT_USER,
        organization_id: str = DEFAULT_ORG,
    ) -> Actor:
        return Actor(user_id=user_id, organization_id=organization_id)

    @staticmethod
    def make_project(
        project_id: Optional[str] = None,
        organization_id: str = DEFAULT_ORG,
        title: str = "Spring Launch",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Project:
        return Project(
            project_id=project_id or TimelineTestDataFactory.make_id("prj"),
            organization_id=organization_id,
            title=title,
            start_date=start_date,
            end_date=end_date,
        )

    @staticmethod
    def make_campaign(
        campaign_id: Optional[str] = None,
        project_id: Optional[str] = None,
        organization_id: str = DEFAULT_ORG,
        title: str = "Email Wave",
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Campaign:
        return Campaign(
            campaign_id=campaign_id or TimelineTestDataFactory.make_id("cmp"),
            project_id=project_id,
            organization_id=organization_id,
            title=title,
            start_date=start_date,
            end_date=end_date,
        )

    @staticmethod
    def make_task(
        campaign_id: str,
        task_id: Optional[str] = None,
        organization_id: str = DEFAULT_ORG,
        title: str = "Draft copy",
        start_date: Optional[datetime] = None,
        due_date: Optional[datetime] = None,
        list_id: Optional[str] = None,
    ) -> Task:
        return Task(
            task_id=task_id or TimelineTestDataFactory.make_id("tsk"),
            campaign_id=campaign_id,
            organization_id=organization_id,
            title=title,
            start_date=start_date,
            due_date=due_date,
            list_id=list_id,
        )

    @staticmethod
    def make_dated_campaign(
        project_id: Optional[str],
        start: datetime,
        days: int,
        **kwargs: Any,
    ) -> Campaign:
        """Campaign running `days` days from `start`"""
        return TimelineTestDataFactory.make_campaign(
            project_id=project_id,
            start_date=start,
            end_date=start + timedelta(days=days),
            **kwargs,
        )

    @staticmethod
    def make_reschedule_request(
        new_start_date: datetime,
        new_end_date: Optional[datetime] = None,
        clamp: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """JSON body for a reschedule endpoint"""
        body: Dict[str, Any] = {"new_start_date": new_start_date.isoformat()}
        if new_end_date is not None:
            body["new_end_date"] = new_end_date.isoformat()
        if clamp is not None:
            body["clamp"] = clamp
        return body


__all__ = [
    "DEFAULT_ORG",
    "DEFAULT_USER",
    "utc",
    "TimelineTestDataFactory",
    "Actor",
    "Campaign",
    "CampaignPatch",
    "DateValidationReport",
    "EntityType",
    "FieldPatch",
    "PatchOp",
    "Project",
    "ProjectPatch",
    "RescheduleRequest",
    "ShiftDirection",
    "ShiftPreviewRequest",
    "ShiftStatistics",
    "Task",
    "TaskPatch",
]
