"""Tagged event variants exchanged over Redis Pub/Sub.

Consumed (channel ``recruitment:applications``):
  - application.submitted
  - application.approved

Produced (channels ``recruitment:events`` / ``recruitment:notifications``):
  - recruitment.status.changed
  - recruitment.buttons.refresh
  - recruitment.notification.requested

Flat envelopes with a ``type`` discriminator, like the job event channel.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from recruitment.schemas.timeline import ButtonDescriptor, Phase, PhaseStatus, RoleType, utcnow


class RecruitmentEventType:
    """Event type constants for produced events."""

    STATUS_CHANGED = "recruitment.status.changed"
    BUTTONS_REFRESH = "recruitment.buttons.refresh"
    NOTIFICATION_REQUESTED = "recruitment.notification.requested"


# ---------------------------------------------------------------------------
# Consumed application lifecycle events
# ---------------------------------------------------------------------------


class ApplicationSubmitted(BaseModel):
    """A recruitment form was submitted for (entity, role)."""

    type: Literal["application.submitted"] = "application.submitted"
    entity_id: str
    role_type: RoleType
    application_id: str | None = None


class ApplicationApproved(BaseModel):
    """An application for (entity, role) was approved."""

    type: Literal["application.approved"] = "application.approved"
    entity_id: str
    role_type: RoleType
    application_id: str | None = None


ApplicationEvent = Annotated[
    ApplicationSubmitted | ApplicationApproved,
    Field(discriminator="type"),
]

application_event_adapter: TypeAdapter[ApplicationEvent] = TypeAdapter(ApplicationEvent)


# ---------------------------------------------------------------------------
# Produced events
# ---------------------------------------------------------------------------


class StatusChangeNotification(BaseModel):
    type: Literal["recruitment.status.changed"] = RecruitmentEventType.STATUS_CHANGED
    entity_id: str
    phase: Phase
    old_status: PhaseStatus
    new_status: PhaseStatus
    timestamp: datetime = Field(default_factory=utcnow)


class NotificationRequested(BaseModel):
    """Side effect for the external notifier (timeline has notify_on_status_change)."""

    type: Literal["recruitment.notification.requested"] = RecruitmentEventType.NOTIFICATION_REQUESTED
    entity_id: str
    entity_name: str = ""
    role_type: RoleType
    phase_id: str
    phase_title: str
    old_status: PhaseStatus
    new_status: PhaseStatus
    message: str
    timestamp: datetime = Field(default_factory=utcnow)


class ButtonsRefresh(BaseModel):
    """Tells bound UI controls to re-render with fresh descriptors."""

    type: Literal["recruitment.buttons.refresh"] = RecruitmentEventType.BUTTONS_REFRESH
    buttons: list[ButtonDescriptor] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
