"""
Timeline Date Shift Engine

Pure functions that move child entities along with their parent's timeline.

When a parent's start date moves, every dated child keeps its whole-day
offset from the parent's start: the offset is measured against the old start
and re-applied to the new one. Children without anchor dates are left alone.
With clamping, shifted children are kept inside the parent's new window.

Project -> campaigns and campaign -> tasks use the same algorithm; the
project cascade composes the two levels.

Nothing here performs I/O or mutates its inputs. Unaffected entities are
returned by reference so callers can detect changes with `is`.
"""

from datetime import datetime, timedelta, timezone
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

from .models import (
    Campaign,
    DateValidationReport,
    ShiftDirection,
    ShiftStatistics,
    Task,
)

DateLike = Union[str, datetime]


class AnchorFields(NamedTuple):
    """Where an entity keeps its parent link and anchor dates"""
    id_field: str
    parent_field: str
    start_field: str
    end_field: str
    required: Tuple[str, ...]


TASK_ANCHOR = AnchorFields(
    id_field="task_id",
    parent_field="campaign_id",
    start_field="start_date",
    end_field="due_date",
    required=("due_date",),
)

CAMPAIGN_ANCHOR = AnchorFields(
    id_field="campaign_id",
    parent_field="project_id",
    start_field="start_date",
    end_field="end_date",
    required=("start_date", "end_date"),
)


class CascadeOutcome(NamedTuple):
    """Campaign and task collections after a project-level cascade"""
    campaigns: Sequence[Campaign]
    tasks: Sequence[Task]


# ====================
# Date helpers
# ====================


def to_instant(value: DateLike) -> datetime:
    """Parse an ISO-8601 string (or pass a datetime through) as an aware instant"""
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def same_instant(first: DateLike, second: DateLike) -> bool:
    return to_instant(first) == to_instant(second)


def add_days(anchor: DateLike, days: int) -> datetime:
    """Whole days added to the anchor, keeping the anchor's time of day"""
    return to_instant(anchor) + timedelta(days=days)


def _utc_calendar_date(value: DateLike):
    return to_instant(value).astimezone(timezone.utc).date()


def anchor_fields(entity) -> AnchorFields:
    if isinstance(entity, Task):
        return TASK_ANCHOR
    if isinstance(entity, Campaign):
        return CAMPAIGN_ANCHOR
    raise TypeError(f"{type(entity).__name__} has no anchor dates to shift")


def has_anchor_date(entity) -> bool:
    """True when every anchor field the entity needs for a shift is set"""
    anchor = anchor_fields(entity)
    return all(getattr(entity, name) is not None for name in anchor.required)


def _belongs_to(entity, parent_id: str) -> bool:
    return getattr(entity, anchor_fields(entity).parent_field) == parent_id


def _entity_id(entity) -> str:
    return getattr(entity, anchor_fields(entity).id_field)


# ====================
# Engine operations
# ====================


def compute_offset_days(child_date: DateLike, parent_old_start: DateLike) -> int:
    """
    Signed calendar-day distance from the parent's start to the child date.

    Negative when the child precedes the parent. Time of day is ignored:
    23:00 on one day and 01:00 on the next are one day apart.
    """
    return (_utc_calendar_date(child_date) - _utc_calendar_date(parent_old_start)).days


def shift_single_entity(
    entity,
    parent_old_start: DateLike,
    parent_new_start: DateLike,
    parent_new_end: Optional[DateLike] = None,
    clamp: bool = False,
):
    """
    Shift one child's dates relative to its parent's new start.

    Returns None when the child lacks its anchor date(s). Otherwise returns a
    copy with the shifted dates; the input is not modified.

    Clamping (only with `clamp` and a `parent_new_end`) checks the end-like
    date first: if it overflows the parent's new end it is pinned there and
    the start is pinned to the parent's new start only if it also underflows.
    Otherwise an underflowing start is pinned to the parent's new start.
    A start past the new end is kept, so such a child comes back with its
    start after its end.
    """
    if not has_anchor_date(entity):
        return None

    anchor = anchor_fields(entity)
    new_anchor = to_instant(parent_new_start)

    current_start = getattr(entity, anchor.start_field)
    current_end = getattr(entity, anchor.end_field)

    shifted_end = add_days(new_anchor, compute_offset_days(current_end, parent_old_start))
    shifted_start = None
    if current_start is not None:
        shifted_start = add_days(new_anchor, compute_offset_days(current_start, parent_old_start))

    if clamp and parent_new_end is not None:
        bound_end = to_instant(parent_new_end)

        if shifted_end > bound_end:
            start = shifted_start
            if start is not None and start < new_anchor:
                start = new_anchor
            return _with_dates(entity, anchor, start, bound_end)

        if shifted_start is not None and shifted_start < new_anchor:
            return _with_dates(entity, anchor, new_anchor, shifted_end)

    return _with_dates(entity, anchor, shifted_start, shifted_end)


def _with_dates(entity, anchor: AnchorFields, start: Optional[datetime], end: datetime):
    return entity.model_copy(update={anchor.start_field: start, anchor.end_field: end})


def shift_children_of_parent(
    children: Sequence,
    parent_id: str,
    parent_old_start: DateLike,
    parent_new_start: DateLike,
    parent_new_end: Optional[DateLike] = None,
    clamp: bool = False,
) -> Sequence:
    """
    Shift every dated child of `parent_id`.

    Returns `children` itself when the parent's start did not move. Otherwise
    returns a new list in which only shifted children are new objects.
    """
    if same_instant(parent_old_start, parent_new_start):
        return children

    shifted: List = []
    for child in children:
        if not _belongs_to(child, parent_id) or not has_anchor_date(child):
            shifted.append(child)
            continue

        result = shift_single_entity(
            child,
            parent_old_start,
            parent_new_start,
            parent_new_end,
            clamp,
        )
        shifted.append(result if result is not None else child)

    return shifted


def shift_project_cascade(
    campaigns: Sequence[Campaign],
    tasks: Sequence[Task],
    project_id: str,
    old_start: DateLike,
    new_start: DateLike,
    new_end: Optional[DateLike] = None,
    clamp: bool = False,
) -> CascadeOutcome:
    """
    Shift a project's campaigns, then each shifted campaign's tasks.

    Tasks follow their own campaign's move (the campaign's pre-shift start to
    its post-shift start), so a clamped campaign carries its tasks by the
    distance it actually moved. When clamping, tasks are bounded by their
    campaign's new end, not the project's. Campaigns without a start date
    stop the cascade for their tasks.
    """
    if same_instant(old_start, new_start):
        return CascadeOutcome(campaigns, tasks)

    updated_campaigns = shift_children_of_parent(
        campaigns, project_id, old_start, new_start, new_end, clamp
    )

    originals = {campaign.campaign_id: campaign for campaign in campaigns}
    updated_tasks = tasks

    for campaign in updated_campaigns:
        if campaign.project_id != project_id:
            continue

        before = originals.get(campaign.campaign_id)
        if before is None or before.start_date is None or campaign.start_date is None:
            continue

        updated_tasks = shift_children_of_parent(
            updated_tasks,
            campaign.campaign_id,
            before.start_date,
            campaign.start_date,
            campaign.end_date if clamp else None,
            clamp,
        )

    return CascadeOutcome(updated_campaigns, updated_tasks)


def compute_shift_statistics(
    children: Sequence,
    parent_id: str,
    old_start: DateLike,
    new_start: DateLike,
) -> ShiftStatistics:
    """Count the dated children a shift would move and describe the move"""
    affected = [
        child for child in children
        if _belongs_to(child, parent_id) and has_anchor_date(child)
    ]
    days_difference = compute_offset_days(new_start, old_start)

    if days_difference > 0:
        direction = ShiftDirection.FORWARD
    elif days_difference < 0:
        direction = ShiftDirection.BACKWARD
    else:
        direction = ShiftDirection.NONE

    return ShiftStatistics(
        affected_count=len(affected),
        days_difference=days_difference,
        direction=direction,
        affected_ids=[_entity_id(child) for child in affected],
    )


def validate_all_children_dated(children: Sequence, parent_id: str) -> DateValidationReport:
    """Report which children of `parent_id` lack anchor dates"""
    members = [child for child in children if _belongs_to(child, parent_id)]
    undated = [child for child in members if not has_anchor_date(child)]

    return DateValidationReport(
        valid=not undated,
        undated_children=undated,
        total_count=len(members),
    )


__all__ = [
    "DateLike",
    "AnchorFields",
    "TASK_ANCHOR",
    "CAMPAIGN_ANCHOR",
    "CascadeOutcome",
    "to_instant",
    "same_instant",
    "add_days",
    "anchor_fields",
    "has_anchor_date",
    "compute_offset_days",
    "shift_single_entity",
    "shift_children_of_parent",
    "shift_project_cascade",
    "compute_shift_statistics",
    "validate_all_children_dated",
]
