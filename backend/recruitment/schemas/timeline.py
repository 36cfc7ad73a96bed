"""Pydantic schemas for recruitment timelines, phases, and derived status views."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, TypeAdapter


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    """Generate a unique identifier such as ``phase_3f2a...``."""
    return f"{prefix}_{uuid.uuid4().hex}"


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# Every stored instant is UTC: naive inputs are taken as UTC, offsets are converted
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class EntityType(str, Enum):
    """Kind of organizational entity that can run recruitment."""

    PROJECT = "project"
    ACTIVITY = "activity"
    INITIATIVE = "initiative"


class RoleType(str, Enum):
    """Kind of participant being recruited."""

    CREW = "crew"
    VOLUNTEER = "volunteer"
    PARTICIPANT = "participant"


class PhaseStatus(str, Enum):
    """Cached, time-derived state of a single phase."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    EXPIRED = "expired"


class RecruitmentStatus(str, Enum):
    """Aggregate status of an (entity, role) pair. Adds FULL on top of PhaseStatus."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    EXPIRED = "expired"
    FULL = "full"


# ---------------------------------------------------------------------------
# Stored models
# ---------------------------------------------------------------------------


class PhaseSettings(BaseModel):
    require_approval: bool = True
    allow_multiple_applications: bool = False
    send_confirmation_email: bool = True


class Phase(BaseModel):
    """A single time-windowed recruitment effort for one role type.

    ``status`` is a cached value refreshed by add/update and by the status
    monitor. ``current_applications`` is advisory and may exceed
    ``max_applications``. ``submitted_count`` and ``approved_count`` split the
    same increments by the event that caused them.
    """

    id: str = Field(default_factory=lambda: new_id("phase"))
    role_type: RoleType
    title: str
    description: str = ""
    start_date: UtcDatetime
    end_date: UtcDatetime
    status: PhaseStatus = PhaseStatus.INACTIVE
    form_id: str | None = None
    max_applications: int | None = Field(default=None, ge=0)
    current_applications: int = Field(default=0, ge=0)
    submitted_count: int = Field(default=0, ge=0)
    approved_count: int = Field(default=0, ge=0)
    settings: PhaseSettings = Field(default_factory=PhaseSettings)
    created_at: UtcDatetime = Field(default_factory=utcnow)


class TimelineSettings(BaseModel):
    auto_activate: bool = False
    auto_expire: bool = False
    notify_on_status_change: bool = False


class Timeline(BaseModel):
    """All recruitment phases and settings for one entity. Keyed by entity_id."""

    id: str = Field(default_factory=lambda: new_id("timeline"))
    entity_id: str = Field(min_length=1)
    entity_type: EntityType
    entity_name: str = ""
    phases: list[Phase] = Field(default_factory=list)
    settings: TimelineSettings = Field(default_factory=TimelineSettings)
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


def _keys_match_entity_ids(timelines: dict[str, Timeline]) -> dict[str, Timeline]:
    for key, timeline in timelines.items():
        if key != timeline.entity_id:
            raise ValueError(f"Registry key {key!r} does not match entity_id {timeline.entity_id!r}")
    return timelines


# {entity_id: Timeline}, the export/import and storage shape. One timeline per entity_id.
TimelineRegistry = Annotated[dict[str, Timeline], AfterValidator(_keys_match_entity_ids)]

timeline_registry_adapter: TypeAdapter[dict[str, Timeline]] = TypeAdapter(TimelineRegistry)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class PhaseCreate(BaseModel):
    """Input for add_phase. Omitted title defaults to '<Role> Recruitment'."""

    id: str | None = None
    role_type: RoleType
    title: str | None = None
    description: str = ""
    start_date: UtcDatetime
    end_date: UtcDatetime
    form_id: str | None = None
    max_applications: int | None = Field(default=None, ge=0)
    settings: PhaseSettings = Field(default_factory=PhaseSettings)


class PhaseUpdate(BaseModel):
    """Partial phase patch. Only explicitly set fields are merged."""

    role_type: RoleType | None = None
    title: str | None = None
    description: str | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    form_id: str | None = None
    max_applications: int | None = Field(default=None, ge=0)
    settings: PhaseSettings | None = None


class TimelineCreate(BaseModel):
    """Input for create_timeline (upsert keyed by entity_id)."""

    id: str | None = None
    entity_id: str = Field(min_length=1)
    entity_type: EntityType
    entity_name: str = ""
    phases: list[PhaseCreate] | None = None
    settings: TimelineSettings = Field(default_factory=TimelineSettings)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class RoleStatus(BaseModel):
    """Recruitment status of one role for one entity at a given instant."""

    status: RecruitmentStatus
    message: str
    can_apply: bool = False
    phase: Phase | None = None
    next_phase: Phase | None = None
    timeline_configured: bool = True


class OpenFormAction(BaseModel):
    """Action bound to an enabled recruitment button."""

    action: str = "open_recruitment_form"
    entity_id: str
    role_type: str
    form_id: str | None = None


class ButtonDescriptor(BaseModel):
    """UI-facing description of a recruitment button."""

    text: str
    role_type: str
    entity_id: str
    enabled: bool = False
    css_state: str
    tooltip: str = ""
    form_reference: str | None = None
    action_handle: OpenFormAction | None = None


class RoleStatistics(BaseModel):
    phases: int = 0
    applications: int = 0


class EntityStatistics(BaseModel):
    timelines: int = 0
    phases: int = 0


class TimelineStatistics(BaseModel):
    total_timelines: int = 0
    total_phases: int = 0
    active_phases: int = 0
    inactive_phases: int = 0
    expired_phases: int = 0
    total_applications: int = 0
    by_role: dict[str, RoleStatistics] = Field(
        default_factory=lambda: {role.value: RoleStatistics() for role in RoleType}
    )
    by_entity: dict[str, EntityStatistics] = Field(
        default_factory=lambda: {entity.value: EntityStatistics() for entity in EntityType}
    )
