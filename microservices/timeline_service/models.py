"""
Timeline Service Data Models

Entities consumed by the date cascade (Project, Campaign, Task), typed
partial-update patches, and the request/response models of the service.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are treated as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ====================
# Enums
# ====================


class EntityType(str, Enum):
    """Kinds of timeline entities"""
    PROJECT = "project"
    CAMPAIGN = "campaign"
    TASK = "task"


class ShiftDirection(str, Enum):
    """Direction of a parent's start date move"""
    FORWARD = "forward"
    BACKWARD = "backward"
    NONE = "none"


class PatchOp(str, Enum):
    """Per-field intent of a partial update"""
    UNCHANGED = "unchanged"
    CLEAR = "clear"
    SET = "set"


# ====================
# Entities
# ====================


class TimelineEntity(BaseModel):
    """Base model for dated planner entities"""

    model_config = {"from_attributes": True}

    organization_id: str
    title: str = Field(..., min_length=1, max_length=255)
    start_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Project(TimelineEntity):
    """Top-level container of campaigns"""
    project_id: str = Field(default_factory=lambda: f"prj_{uuid4().hex[:16]}")
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v):
        return _as_utc(v)


class Campaign(TimelineEntity):
    """Campaign, optionally owned by a project"""
    campaign_id: str = Field(default_factory=lambda: f"cmp_{uuid4().hex[:16]}")
    project_id: Optional[str] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v):
        return _as_utc(v)


class Task(TimelineEntity):
    """Task owned by a campaign; due_date is its anchor"""
    task_id: str = Field(default_factory=lambda: f"tsk_{uuid4().hex[:16]}")
    campaign_id: str
    list_id: Optional[str] = None
    due_date: Optional[datetime] = None

    @field_validator("start_date", "due_date")
    @classmethod
    def normalize_dates(cls, v):
        return _as_utc(v)


TimelineChild = Union[Campaign, Task]


# ====================
# Typed partial updates
# ====================


class FieldPatch(BaseModel):
    """
    Intent for a single field in a partial update.

    Distinguishes "leave as is" (UNCHANGED), "set to empty" (CLEAR) and
    "set to value" (SET) so that an omitted field is never confused with a
    cleared one.
    """

    model_config = {"frozen": True}

    op: PatchOp = PatchOp.UNCHANGED
    value: Any = None

    @classmethod
    def unchanged(cls) -> "FieldPatch":
        return cls()

    @classmethod
    def clear(cls) -> "FieldPatch":
        return cls(op=PatchOp.CLEAR)

    @classmethod
    def set(cls, value: Any) -> "FieldPatch":
        if value is None:
            raise ValueError("FieldPatch.set() requires a value; use FieldPatch.clear() to empty a field")
        return cls(op=PatchOp.SET, value=value)

    @property
    def is_present(self) -> bool:
        return self.op != PatchOp.UNCHANGED

    def resolve(self, current: Any) -> Any:
        """Value the field has after this patch is applied to `current`"""
        if self.op == PatchOp.SET:
            return self.value
        if self.op == PatchOp.CLEAR:
            return None
        return current


def _unchanged() -> FieldPatch:
    return FieldPatch.unchanged()


class EntityPatch(BaseModel):
    """Base for per-entity patches; every field is a FieldPatch"""

    model_config = {"frozen": True}

    # Fields that may not be cleared
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def present_fields(self) -> Dict[str, FieldPatch]:
        return {
            name: patch
            for name, patch in self
            if isinstance(patch, FieldPatch) and patch.is_present
        }

    def is_empty(self) -> bool:
        return not self.present_fields()

    def to_updates(self) -> Dict[str, Any]:
        """Column updates for the store: cleared fields map to None"""
        return {name: patch.resolve(None) for name, patch in self.present_fields().items()}

    def apply(self, entity: BaseModel) -> BaseModel:
        """Return a copy of `entity` with this patch applied"""
        updates = {
            name: patch.resolve(getattr(entity, name))
            for name, patch in self.present_fields().items()
        }
        if not updates:
            return entity
        return entity.model_copy(update=updates)

    @model_validator(mode="after")
    def validate_required_not_cleared(self):
        for name in self.required_fields:
            patch = getattr(self, name, None)
            if isinstance(patch, FieldPatch) and patch.op == PatchOp.CLEAR:
                raise ValueError(f"{name} cannot be cleared")
        return self


class ProjectPatch(EntityPatch):
    required_fields: ClassVar[Tuple[str, ...]] = ("title",)

    title: FieldPatch = Field(default_factory=_unchanged)
    start_date: FieldPatch = Field(default_factory=_unchanged)
    end_date: FieldPatch = Field(default_factory=_unchanged)


class CampaignPatch(EntityPatch):
    required_fields: ClassVar[Tuple[str, ...]] = ("title",)

    title: FieldPatch = Field(default_factory=_unchanged)
    project_id: FieldPatch = Field(default_factory=_unchanged)
    start_date: FieldPatch = Field(default_factory=_unchanged)
    end_date: FieldPatch = Field(default_factory=_unchanged)


class TaskPatch(EntityPatch):
    required_fields: ClassVar[Tuple[str, ...]] = ("title", "campaign_id")

    title: FieldPatch = Field(default_factory=_unchanged)
    campaign_id: FieldPatch = Field(default_factory=_unchanged)
    list_id: FieldPatch = Field(default_factory=_unchanged)
    start_date: FieldPatch = Field(default_factory=_unchanged)
    due_date: FieldPatch = Field(default_factory=_unchanged)


def apply_patch(entity, patch: EntityPatch):
    """Apply a typed patch to an entity, returning a new entity"""
    return patch.apply(entity)


# ====================
# Engine results
# ====================


class ShiftStatistics(BaseModel):
    """Summary of a prospective shift, for confirmation prompts"""
    affected_count: int
    days_difference: int
    direction: ShiftDirection
    affected_ids: List[str] = Field(default_factory=list)


class DateValidationReport(BaseModel):
    """Children of a parent that lack anchor dates and will be skipped"""
    valid: bool
    undated_children: List[TimelineChild] = Field(default_factory=list)
    total_count: int


# ====================
# Identity
# ====================


class Actor(BaseModel):
    """Current user and the organization they act in"""
    user_id: str
    organization_id: str


# ====================
# Request / Response Models
# ====================


class ShiftPreviewRequest(BaseModel):
    """Proposed new start date for a parent"""
    new_start_date: datetime

    @field_validator("new_start_date")
    @classmethod
    def normalize_date(cls, v):
        return _as_utc(v)


class RescheduleRequest(BaseModel):
    """Move a parent's timeline and cascade to its children"""
    new_start_date: datetime
    new_end_date: Optional[datetime] = None
    clamp: Optional[bool] = None

    @field_validator("new_start_date", "new_end_date")
    @classmethod
    def normalize_dates(cls, v):
        return _as_utc(v)

    @model_validator(mode="after")
    def validate_window(self):
        if self.new_end_date is not None and self.new_end_date < self.new_start_date:
            raise ValueError("new_end_date must not precede new_start_date")
        return self


class ShiftPreview(BaseModel):
    """Statistics and skipped children for a prospective shift"""
    parent_type: EntityType
    parent_id: str
    statistics: ShiftStatistics
    validation: DateValidationReport


class CascadeResult(BaseModel):
    """Outcome of a persisted cascade"""
    parent_type: EntityType
    parent_id: str
    days_difference: int
    project: Optional[Project] = None
    campaign: Optional[Campaign] = None
    updated_campaigns: List[Campaign] = Field(default_factory=list)
    updated_tasks: List[Task] = Field(default_factory=list)
    failed_ids: List[str] = Field(default_factory=list)
    partial: bool = False

    @model_validator(mode="after")
    def derive_partial(self):
        self.partial = bool(self.failed_ids)
        return self


class SyncStatus(BaseModel):
    """Change-feed sync state of the service"""
    organization_id: Optional[str] = None
    syncing: bool
    revision: int = 0
    project_count: int = 0
    campaign_count: int = 0
    task_count: int = 0


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    port: int
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class ReadinessResponse(BaseModel):
    """Readiness check response"""
    ready: bool
    checks: Dict[str, bool] = Field(default_factory=dict)
    details: Dict[str, str] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    """Liveness check response"""
    alive: bool
    uptime_seconds: float


__all__ = [
    # Enums
    "EntityType",
    "ShiftDirection",
    "PatchOp",
    # Entities
    "TimelineEntity",
    "Project",
    "Campaign",
    "Task",
    "TimelineChild",
    # Patches
    "FieldPatch",
    "EntityPatch",
    "ProjectPatch",
    "CampaignPatch",
    "TaskPatch",
    "apply_patch",
    # Engine results
    "ShiftStatistics",
    "DateValidationReport",
    # Identity
    "Actor",
    # Request/Response
    "ShiftPreviewRequest",
    "RescheduleRequest",
    "ShiftPreview",
    "CascadeResult",
    "SyncStatus",
    "HealthResponse",
    "ReadinessResponse",
    "LivenessResponse",
]
