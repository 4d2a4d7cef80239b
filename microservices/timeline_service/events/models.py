"""
Timeline Event Data Models

Event type definitions and data structures for timeline service events.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class TimelineEventType(str, Enum):
    """
    Events published by timeline_service.

    These are the authoritative event types for this service.
    Other services should reference these when subscribing.
    """
    PROJECT_RESCHEDULED = "timeline.project.rescheduled"
    CAMPAIGN_RESCHEDULED = "timeline.campaign.rescheduled"
    CASCADE_PARTIAL_FAILURE = "timeline.cascade.partial_failure"


class TimelineStreamConfig:
    """Stream configuration for timeline_service"""
    STREAM_NAME = "timeline-stream"
    SUBJECTS = ["timeline.>"]
    MAX_MESSAGES = 100000
    CONSUMER_PREFIX = "timeline"


# =============================================================================
# Event Data Models - Published Events
# =============================================================================


class ProjectRescheduledEventData(BaseModel):
    """timeline.project.rescheduled event data"""
    project_id: str = Field(..., description="Project ID")
    organization_id: str = Field(..., description="Organization ID")
    old_start_date: Optional[datetime] = Field(None, description="Start date before the move")
    new_start_date: datetime = Field(..., description="Start date after the move")
    new_end_date: Optional[datetime] = Field(None, description="End date after the move")
    days_difference: int = Field(..., description="Signed whole days moved")
    updated_campaign_ids: List[str] = Field(default_factory=list, description="Campaigns shifted")
    updated_task_ids: List[str] = Field(default_factory=list, description="Tasks shifted")
    rescheduled_by: str = Field(..., description="User who moved the project")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class CampaignRescheduledEventData(BaseModel):
    """timeline.campaign.rescheduled event data"""
    campaign_id: str = Field(..., description="Campaign ID")
    organization_id: str = Field(..., description="Organization ID")
    project_id: Optional[str] = Field(None, description="Owning project, if any")
    old_start_date: Optional[datetime] = Field(None, description="Start date before the move")
    new_start_date: datetime = Field(..., description="Start date after the move")
    new_end_date: Optional[datetime] = Field(None, description="End date after the move")
    days_difference: int = Field(..., description="Signed whole days moved")
    updated_task_ids: List[str] = Field(default_factory=list, description="Tasks shifted")
    rescheduled_by: str = Field(..., description="User who moved the campaign")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


class CascadePartialFailureEventData(BaseModel):
    """timeline.cascade.partial_failure event data"""
    parent_type: str = Field(..., description="project or campaign")
    parent_id: str = Field(..., description="ID of the moved parent")
    organization_id: str = Field(..., description="Organization ID")
    failed_ids: List[str] = Field(..., description="Children whose write failed")
    succeeded_count: int = Field(0, description="Children written successfully")
    timestamp: Optional[datetime] = Field(None, description="Event timestamp")


__all__ = [
    "TimelineEventType",
    "TimelineStreamConfig",
    "ProjectRescheduledEventData",
    "CampaignRescheduledEventData",
    "CascadePartialFailureEventData",
]
