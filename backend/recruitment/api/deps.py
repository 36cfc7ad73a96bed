"""FastAPI dependencies resolving the components wired in the app lifespan."""

from fastapi import Request

from recruitment.services.event_bridge import EventBridge
from recruitment.services.status_monitor import StatusMonitor
from recruitment.services.timeline_service import TimelineService


def get_timeline_service(request: Request) -> TimelineService:
    return request.app.state.timeline_service


def get_status_monitor(request: Request) -> StatusMonitor:
    return request.app.state.status_monitor


def get_event_bridge(request: Request) -> EventBridge:
    return request.app.state.event_bridge
