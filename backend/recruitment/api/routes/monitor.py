"""Status monitor control endpoints.

GET  /api/monitor             - Monitor state and next scheduled transition
POST /api/monitor/visibility  - The UI regained focus: sweep immediately
POST /api/monitor/sweep       - Run one sweep synchronously and report changes
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from recruitment.api.deps import get_status_monitor
from recruitment.schemas.timeline import PhaseStatus
from recruitment.services.status_monitor import MonitorState, StatusMonitor

router = APIRouter()


class MonitorStateResponse(BaseModel):
    state: MonitorState
    interval_seconds: float
    last_sweep_at: datetime | None = None
    next_transition_at: datetime | None = None


class SweepChange(BaseModel):
    entity_id: str
    phase_id: str
    old_status: PhaseStatus
    new_status: PhaseStatus


class SweepResponse(BaseModel):
    changes: list[SweepChange] = Field(default_factory=list)


@router.get("", response_model=MonitorStateResponse)
async def get_monitor_state(monitor: StatusMonitor = Depends(get_status_monitor)) -> MonitorStateResponse:
    return MonitorStateResponse(
        state=monitor.state,
        interval_seconds=monitor.interval,
        last_sweep_at=monitor.last_sweep_at,
        next_transition_at=monitor.service.next_transition_at(datetime.now(UTC)),
    )


@router.post("/visibility", status_code=202)
async def visibility_regained(monitor: StatusMonitor = Depends(get_status_monitor)) -> dict:
    monitor.notify_visible()
    return {"status": "accepted", "running": monitor.running}


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(monitor: StatusMonitor = Depends(get_status_monitor)) -> SweepResponse:
    changes = await monitor.sweep(trigger="api")
    return SweepResponse(
        changes=[
            SweepChange(
                entity_id=change.entity_id,
                phase_id=change.phase.id,
                old_status=change.old_status,
                new_status=change.new_status,
            )
            for change in changes
        ]
    )
