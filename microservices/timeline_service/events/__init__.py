"""
Timeline Service Events

Event models and publishers for timeline service.
"""

from .models import (
    TimelineEventType,
    TimelineStreamConfig,
    ProjectRescheduledEventData,
    CampaignRescheduledEventData,
    CascadePartialFailureEventData,
)
from .publishers import TimelineEventPublisher

__all__ = [
    # Event Types
    "TimelineEventType",
    "TimelineStreamConfig",
    # Event Data Models
    "ProjectRescheduledEventData",
    "CampaignRescheduledEventData",
    "CascadePartialFailureEventData",
    # Publisher
    "TimelineEventPublisher",
]
