"""Application lifecycle events over HTTP.

POST /api/events/applications - Same payloads as the recruitment:applications
Pub/Sub channel, for producers that cannot publish to Redis.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from recruitment.api.deps import get_event_bridge
from recruitment.schemas.events import ApplicationApproved, ApplicationSubmitted
from recruitment.schemas.timeline import Phase
from recruitment.services.event_bridge import EventBridge

router = APIRouter()


class ApplicationEventResponse(BaseModel):
    """counted is False when the role had no open phase."""

    counted: bool
    phase: Phase | None = None


@router.post("/applications", response_model=ApplicationEventResponse)
async def post_application_event(
    event: Annotated[ApplicationSubmitted | ApplicationApproved, Body(discriminator="type")],
    bridge: EventBridge = Depends(get_event_bridge),
) -> ApplicationEventResponse:
    phase = await bridge.handle_event(event)
    return ApplicationEventResponse(counted=phase is not None, phase=phase)
