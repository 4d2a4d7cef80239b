"""
Timeline Service Business Logic

Moves projects and campaigns in time and carries their children along.

Each reschedule takes a snapshot of the parent and its children, writes the
parent first, runs the pure date cascade over the snapshot and then writes
every shifted child concurrently. A failed parent write aborts the
reschedule; failed child writes are reported and published but neither
retried nor rolled back.

While the service follows an organization's change feed, snapshots come from
the in-memory TimelineState; otherwise they are read from the entity store.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from core.config import ServiceConfig

from .date_shift import (
    DateLike,
    compute_offset_days,
    compute_shift_statistics,
    shift_children_of_parent,
    shift_project_cascade,
    to_instant,
    validate_all_children_dated,
)
from .events.publishers import TimelineEventPublisher
from .models import (
    Actor,
    Campaign,
    CampaignPatch,
    CascadeResult,
    EntityType,
    FieldPatch,
    Project,
    ProjectPatch,
    ShiftPreview,
    SyncStatus,
    Task,
    TaskPatch,
)
from .protocols import (
    CampaignNotFoundError,
    EntityStoreProtocol,
    EventBusProtocol,
    OrganizationScopeError,
    ProjectNotFoundError,
    TimelineStoreError,
    TimelineValidationError,
    Unsubscribe,
)
from .timeline_state import TimelineState

logger = logging.getLogger(__name__)

TimelineChild = Union[Campaign, Task]


class TimelineService:
    """
    Timeline service - reschedules parents and cascades dates to children.

    The service owns a TimelineState. Engine calls receive snapshots taken
    from the state while syncing and from the store otherwise. Successful
    writes are applied back to the state, and a running change-feed sync
    replaces whole collections as they arrive.
    """

    def __init__(
        self,
        repository: EntityStoreProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        config: Optional[ServiceConfig] = None,
        event_publisher: Optional[TimelineEventPublisher] = None,
        state: Optional[TimelineState] = None,
    ):
        self.repository = repository
        self.event_bus = event_bus
        self.config = config or ServiceConfig()
        self.event_publisher = event_publisher or TimelineEventPublisher(event_bus)
        self.state = state or TimelineState()
        self._unsubscribers: List[Unsubscribe] = []

    # ====================
    # Previews
    # ====================

    async def preview_campaign_shift(
        self,
        actor: Actor,
        campaign_id: str,
        new_start: DateLike,
    ) -> ShiftPreview:
        """Tasks a campaign move would shift, and tasks it would skip"""
        campaign = await self._load_campaign(actor, campaign_id)
        if campaign.start_date is None:
            raise TimelineValidationError(
                f"Campaign {campaign_id} has no start date to shift from", field="start_date"
            )

        tasks = await self._snapshot_tasks(actor.organization_id, [campaign_id])

        return ShiftPreview(
            parent_type=EntityType.CAMPAIGN,
            parent_id=campaign_id,
            statistics=compute_shift_statistics(tasks, campaign_id, campaign.start_date, new_start),
            validation=validate_all_children_dated(tasks, campaign_id),
        )

    async def preview_project_shift(
        self,
        actor: Actor,
        project_id: str,
        new_start: DateLike,
    ) -> ShiftPreview:
        """Campaigns a project move would shift, and campaigns it would skip"""
        project = await self._load_project(actor, project_id)
        if project.start_date is None:
            raise TimelineValidationError(
                f"Project {project_id} has no start date to shift from", field="start_date"
            )

        campaigns = await self._snapshot_campaigns(actor.organization_id, project_id)

        return ShiftPreview(
            parent_type=EntityType.PROJECT,
            parent_id=project_id,
            statistics=compute_shift_statistics(campaigns, project_id, project.start_date, new_start),
            validation=validate_all_children_dated(campaigns, project_id),
        )

    # ====================
    # Reschedules
    # ====================

    async def reschedule_campaign(
        self,
        actor: Actor,
        campaign_id: str,
        new_start: DateLike,
        new_end: Optional[DateLike] = None,
        clamp: Optional[bool] = None,
    ) -> CascadeResult:
        """
        Move a campaign and shift its tasks by the same number of days.

        Without `new_end` the campaign keeps its duration. With clamping,
        shifted tasks are kept inside the campaign's new window.
        """
        clamp = self.config.default_clamp if clamp is None else clamp
        campaign = await self._load_campaign(actor, campaign_id)

        start = to_instant(new_start)
        end = self._resolve_end(campaign.start_date, campaign.end_date, start, new_end, clamp)

        tasks = await self._snapshot_tasks(actor.organization_id, [campaign_id])

        patch = CampaignPatch(
            start_date=FieldPatch.set(start),
            end_date=FieldPatch.set(end) if end is not None else FieldPatch.unchanged(),
        )
        stored = await self._write_parent(
            campaign_id, lambda: self.repository.update_campaign(campaign_id, patch)
        )
        if stored is None:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}", campaign_id=campaign_id)

        old_start = campaign.start_date
        days_difference = 0
        shifted: Sequence[Task] = tasks
        if old_start is not None:
            days_difference = compute_offset_days(start, old_start)
            shifted = shift_children_of_parent(
                tasks, campaign_id, old_start, start, end if clamp else None, clamp
            )

        written, failed_ids = await self._write_children(_changed(tasks, shifted))

        if self._owns_state(actor.organization_id):
            self.state.apply_campaigns([stored])
            self.state.apply_tasks(written)

        result = CascadeResult(
            parent_type=EntityType.CAMPAIGN,
            parent_id=campaign_id,
            days_difference=days_difference,
            campaign=stored,
            updated_tasks=written,
            failed_ids=failed_ids,
        )

        self._log_outcome(result)
        if self.config.events_enabled:
            await self.event_publisher.publish_campaign_rescheduled(
                campaign_id=campaign_id,
                organization_id=actor.organization_id,
                project_id=stored.project_id,
                old_start_date=old_start,
                new_start_date=start,
                new_end_date=stored.end_date,
                days_difference=days_difference,
                updated_task_ids=[t.task_id for t in written],
                rescheduled_by=actor.user_id,
            )
            await self._publish_partial_failure(actor, result, len(written))

        return result

    async def reschedule_project(
        self,
        actor: Actor,
        project_id: str,
        new_start: DateLike,
        new_end: Optional[DateLike] = None,
        clamp: Optional[bool] = None,
    ) -> CascadeResult:
        """
        Move a project, its dated campaigns, and their tasks.

        Campaigns shift relative to the project; tasks shift with their own
        campaign. With clamping, campaigns stay inside the project's new
        window and tasks inside their campaign's new window.
        """
        clamp = self.config.default_clamp if clamp is None else clamp
        project = await self._load_project(actor, project_id)

        start = to_instant(new_start)
        end = self._resolve_end(project.start_date, project.end_date, start, new_end, clamp)

        campaigns = await self._snapshot_campaigns(actor.organization_id, project_id)
        tasks: List[Task] = []
        if campaigns:
            tasks = await self._snapshot_tasks(
                actor.organization_id, [c.campaign_id for c in campaigns]
            )

        patch = ProjectPatch(
            start_date=FieldPatch.set(start),
            end_date=FieldPatch.set(end) if end is not None else FieldPatch.unchanged(),
        )
        stored = await self._write_parent(
            project_id, lambda: self.repository.update_project(project_id, patch)
        )
        if stored is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}", project_id=project_id)

        old_start = project.start_date
        days_difference = 0
        changed: List[TimelineChild] = []
        if old_start is not None:
            days_difference = compute_offset_days(start, old_start)
            outcome = shift_project_cascade(
                campaigns, tasks, project_id, old_start, start, end if clamp else None, clamp
            )
            changed = _changed(campaigns, outcome.campaigns) + _changed(tasks, outcome.tasks)

        written, failed_ids = await self._write_children(changed)
        written_campaigns = [e for e in written if isinstance(e, Campaign)]
        written_tasks = [e for e in written if isinstance(e, Task)]

        if self._owns_state(actor.organization_id):
            self.state.apply_project(stored)
            self.state.apply_campaigns(written_campaigns)
            self.state.apply_tasks(written_tasks)

        result = CascadeResult(
            parent_type=EntityType.PROJECT,
            parent_id=project_id,
            days_difference=days_difference,
            project=stored,
            updated_campaigns=written_campaigns,
            updated_tasks=written_tasks,
            failed_ids=failed_ids,
        )

        self._log_outcome(result)
        if self.config.events_enabled:
            await self.event_publisher.publish_project_rescheduled(
                project_id=project_id,
                organization_id=actor.organization_id,
                old_start_date=old_start,
                new_start_date=start,
                new_end_date=stored.end_date,
                days_difference=days_difference,
                updated_campaign_ids=[c.campaign_id for c in written_campaigns],
                updated_task_ids=[t.task_id for t in written_tasks],
                rescheduled_by=actor.user_id,
            )
            await self._publish_partial_failure(actor, result, len(written))

        return result

    # ====================
    # Change feed sync
    # ====================

    async def start_sync(self, organization_id: str) -> None:
        """
        Load an organization into the state and follow the store's change feed.

        Every delivered collection replaces the local one, discarding local
        values that the store has not confirmed.
        """
        await self.stop_sync()

        self.state.organization_id = organization_id
        self.state.replace_projects(await self.repository.list_projects(organization_id))
        self.state.replace_campaigns(await self.repository.list_campaigns(organization_id))
        self.state.replace_tasks(await self.repository.list_tasks(organization_id))

        for entity_type in (EntityType.PROJECT, EntityType.CAMPAIGN, EntityType.TASK):
            unsubscribe = await self.repository.subscribe(
                organization_id, entity_type, self._replacer(entity_type)
            )
            self._unsubscribers.append(unsubscribe)

        logger.info(f"Timeline sync started for organization {organization_id}")

    async def stop_sync(self) -> None:
        """End all change-feed subscriptions"""
        if not self._unsubscribers:
            return

        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            try:
                await unsubscribe()
            except Exception as e:
                logger.error(f"Failed to unsubscribe from change feed: {e}")

        logger.info(f"Timeline sync stopped for organization {self.state.organization_id}")

    @property
    def is_syncing(self) -> bool:
        return bool(self._unsubscribers)

    async def sync_organization(self, actor: Actor) -> SyncStatus:
        """
        Follow the actor's organization, unless it is already followed.

        The service follows one organization at a time; another
        organization's sync is never replaced on an actor's behalf.
        """
        if self.is_syncing and self.state.organization_id != actor.organization_id:
            raise OrganizationScopeError(
                f"Timeline sync is held by another organization than {actor.organization_id}",
                entity_id=self.state.organization_id,
            )
        if not self.is_syncing:
            await self.start_sync(actor.organization_id)
        return self.sync_status()

    async def unsync_organization(self, actor: Actor) -> SyncStatus:
        """Stop following the actor's organization"""
        if self.is_syncing:
            if self.state.organization_id != actor.organization_id:
                raise OrganizationScopeError(
                    f"Timeline sync is held by another organization than {actor.organization_id}",
                    entity_id=self.state.organization_id,
                )
            await self.stop_sync()
        return self.sync_status()

    def sync_status(self) -> SyncStatus:
        return SyncStatus(
            organization_id=self.state.organization_id,
            syncing=self.is_syncing,
            revision=self.state.revision,
            project_count=len(self.state.projects),
            campaign_count=len(self.state.campaigns),
            task_count=len(self.state.tasks),
        )

    def _replacer(self, entity_type: EntityType) -> Callable[[list], None]:
        def _on_collection(entities: list) -> None:
            self.state.replace(entity_type, entities)
        return _on_collection

    # ====================
    # Health
    # ====================

    async def health_check(self) -> bool:
        return await self.repository.health_check()

    # ====================
    # Internals
    # ====================

    def _syncing(self, organization_id: str) -> bool:
        """True when the state follows this organization's change feed"""
        return self.is_syncing and self.state.organization_id == organization_id

    def _owns_state(self, organization_id: str) -> bool:
        """Results for this organization may be written to the state"""
        return not self.is_syncing or self.state.organization_id == organization_id

    async def _snapshot_campaigns(self, organization_id: str, project_id: str) -> List[Campaign]:
        if self._syncing(organization_id):
            return self.state.campaigns_of(project_id)
        campaigns = await self.repository.list_campaigns(organization_id, project_id)
        if not self.is_syncing:
            self.state.load(campaigns=campaigns)
        return campaigns

    async def _snapshot_tasks(self, organization_id: str, campaign_ids: List[str]) -> List[Task]:
        if self._syncing(organization_id):
            return self.state.tasks_of(campaign_ids)
        tasks = await self.repository.list_tasks(organization_id, campaign_ids)
        if not self.is_syncing:
            self.state.load(tasks=tasks)
        return tasks

    async def _load_campaign(self, actor: Actor, campaign_id: str) -> Campaign:
        campaign = None
        if self._syncing(actor.organization_id):
            campaign = self.state.get_campaign(campaign_id)
        if campaign is None:
            campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}", campaign_id=campaign_id)
        self._check_scope(actor, campaign.organization_id, campaign_id)
        return campaign

    async def _load_project(self, actor: Actor, project_id: str) -> Project:
        project = None
        if self._syncing(actor.organization_id):
            project = self.state.get_project(project_id)
        if project is None:
            project = await self.repository.get_project(project_id)
        if not project:
            raise ProjectNotFoundError(f"Project not found: {project_id}", project_id=project_id)
        self._check_scope(actor, project.organization_id, project_id)
        return project

    @staticmethod
    def _check_scope(actor: Actor, organization_id: str, entity_id: str) -> None:
        if organization_id != actor.organization_id:
            raise OrganizationScopeError(
                f"{entity_id} does not belong to organization {actor.organization_id}",
                entity_id=entity_id,
            )

    @staticmethod
    def _resolve_end(
        old_start: Optional[datetime],
        old_end: Optional[datetime],
        new_start: datetime,
        new_end: Optional[DateLike],
        clamp: bool,
    ) -> Optional[datetime]:
        """Explicit end, else the old end moved to keep the parent's duration"""
        if new_end is not None:
            end = to_instant(new_end)
        elif old_start is not None and old_end is not None:
            end = new_start + (old_end - old_start)
        else:
            end = old_end

        if end is not None and end < new_start:
            raise TimelineValidationError("New end date precedes new start date", field="new_end_date")
        if clamp and end is None:
            raise TimelineValidationError("Clamping requires an end date", field="new_end_date")
        return end

    async def _write_parent(self, entity_id: str, write: Callable[[], Awaitable]):
        try:
            return await write()
        except Exception as e:
            logger.error(f"Failed to persist new dates for {entity_id}: {e}")
            raise TimelineStoreError(
                f"Failed to persist new dates for {entity_id}", entity_id=entity_id
            ) from e

    async def _write_children(
        self, children: Sequence[TimelineChild]
    ) -> Tuple[List[TimelineChild], List[str]]:
        """Persist shifted children concurrently; returns (stored, failed ids)"""
        if not children:
            return [], []

        semaphore = asyncio.Semaphore(self.config.max_concurrent_writes)

        async def _write(child: TimelineChild):
            async with semaphore:
                if isinstance(child, Task):
                    return await self.repository.update_task(
                        child.task_id,
                        TaskPatch(
                            start_date=_date_patch(child.start_date),
                            due_date=_date_patch(child.due_date),
                        ),
                    )
                return await self.repository.update_campaign(
                    child.campaign_id,
                    CampaignPatch(
                        start_date=_date_patch(child.start_date),
                        end_date=_date_patch(child.end_date),
                    ),
                )

        outcomes = await asyncio.gather(*(_write(c) for c in children), return_exceptions=True)

        written: List[TimelineChild] = []
        failed_ids: List[str] = []
        for child, outcome in zip(children, outcomes):
            child_id = _child_id(child)
            if isinstance(outcome, BaseException):
                logger.error(f"Failed to write shifted dates for {child_id}: {outcome}")
                failed_ids.append(child_id)
            elif outcome is None:
                logger.error(f"Failed to write shifted dates for {child_id}: not found")
                failed_ids.append(child_id)
            else:
                written.append(outcome)

        return written, failed_ids

    async def _publish_partial_failure(self, actor: Actor, result: CascadeResult, succeeded: int) -> None:
        if not result.partial:
            return
        await self.event_publisher.publish_cascade_partial_failure(
            parent_type=result.parent_type.value,
            parent_id=result.parent_id,
            organization_id=actor.organization_id,
            failed_ids=result.failed_ids,
            succeeded_count=succeeded,
        )

    @staticmethod
    def _log_outcome(result: CascadeResult) -> None:
        moved = len(result.updated_campaigns) + len(result.updated_tasks)
        if result.partial:
            logger.warning(
                f"Rescheduled {result.parent_type.value} {result.parent_id} by {result.days_difference} days: "
                f"{moved} children updated, {len(result.failed_ids)} failed"
            )
        else:
            logger.info(
                f"Rescheduled {result.parent_type.value} {result.parent_id} by {result.days_difference} days: "
                f"{moved} children updated"
            )


def _changed(before: Sequence, after: Sequence) -> List:
    """Entities the engine replaced; untouched ones keep their identity"""
    return [new for old, new in zip(before, after) if new is not old]


def _date_patch(value: Optional[datetime]) -> FieldPatch:
    return FieldPatch.set(value) if value is not None else FieldPatch.unchanged()


def _child_id(child: TimelineChild) -> str:
    return child.task_id if isinstance(child, Task) else child.campaign_id


__all__ = ["TimelineService"]
