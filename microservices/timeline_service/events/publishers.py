"""
Timeline Event Publishers

Publishes events to NATS JetStream.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.nats_client import ServiceSource, create_event

from .models import (
    CampaignRescheduledEventData,
    CascadePartialFailureEventData,
    ProjectRescheduledEventData,
    TimelineEventType,
)

logger = logging.getLogger(__name__)


class TimelineEventPublisher:
    """Publisher for timeline service events"""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus
        self.source = ServiceSource.TIMELINE_SERVICE

    async def publish(
        self,
        event_type: TimelineEventType,
        data: Dict[str, Any],
    ) -> bool:
        """
        Publish an event to NATS.

        Args:
            event_type: The event type enum
            data: Event data payload

        Returns:
            True if published successfully, False otherwise
        """
        if not self.event_bus:
            logger.debug(f"Event bus not configured, skipping publish: {event_type.value}")
            return False

        try:
            event = create_event(event_type, data, source=self.source)
            published = await self.event_bus.publish_event(event)
            if published:
                logger.debug(f"Published event: {event_type.value}")
            else:
                logger.error(f"Event bus rejected event {event_type.value}")
            return bool(published)

        except Exception as e:
            logger.error(f"Failed to publish event {event_type.value}: {e}")
            return False

    async def publish_project_rescheduled(
        self,
        project_id: str,
        organization_id: str,
        old_start_date: Optional[datetime],
        new_start_date: datetime,
        new_end_date: Optional[datetime],
        days_difference: int,
        updated_campaign_ids: List[str],
        updated_task_ids: List[str],
        rescheduled_by: str,
    ) -> bool:
        """Publish timeline.project.rescheduled event"""
        data = ProjectRescheduledEventData(
            project_id=project_id,
            organization_id=organization_id,
            old_start_date=old_start_date,
            new_start_date=new_start_date,
            new_end_date=new_end_date,
            days_difference=days_difference,
            updated_campaign_ids=updated_campaign_ids,
            updated_task_ids=updated_task_ids,
            rescheduled_by=rescheduled_by,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(TimelineEventType.PROJECT_RESCHEDULED, data.model_dump(mode="json"))

    async def publish_campaign_rescheduled(
        self,
        campaign_id: str,
        organization_id: str,
        project_id: Optional[str],
        old_start_date: Optional[datetime],
        new_start_date: datetime,
        new_end_date: Optional[datetime],
        days_difference: int,
        updated_task_ids: List[str],
        rescheduled_by: str,
    ) -> bool:
        """Publish timeline.campaign.rescheduled event"""
        data = CampaignRescheduledEventData(
            campaign_id=campaign_id,
            organization_id=organization_id,
            project_id=project_id,
            old_start_date=old_start_date,
            new_start_date=new_start_date,
            new_end_date=new_end_date,
            days_difference=days_difference,
            updated_task_ids=updated_task_ids,
            rescheduled_by=rescheduled_by,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(TimelineEventType.CAMPAIGN_RESCHEDULED, data.model_dump(mode="json"))

    async def publish_cascade_partial_failure(
        self,
        parent_type: str,
        parent_id: str,
        organization_id: str,
        failed_ids: List[str],
        succeeded_count: int,
    ) -> bool:
        """Publish timeline.cascade.partial_failure event"""
        data = CascadePartialFailureEventData(
            parent_type=parent_type,
            parent_id=parent_id,
            organization_id=organization_id,
            failed_ids=failed_ids,
            succeeded_count=succeeded_count,
            timestamp=datetime.now(timezone.utc),
        )
        return await self.publish(TimelineEventType.CASCADE_PARTIAL_FAILURE, data.model_dump(mode="json"))


__all__ = ["TimelineEventPublisher"]
