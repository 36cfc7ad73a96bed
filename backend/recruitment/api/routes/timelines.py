"""Timeline API endpoints.

Timelines:
- GET    /api/timelines                       - Export every timeline ({entity_id: timeline})
- POST   /api/timelines                       - Create or replace a timeline
- DELETE /api/timelines                       - Clear the registry
- GET    /api/timelines/statistics            - Aggregate counts
- GET    /api/timelines/export                - Export all, or one with ?entity_id=
- POST   /api/timelines/import                - Replace the registry wholesale
- GET    /api/timelines/{entity_id}           - One timeline with fresh phase status

Phases:
- GET    /api/timelines/{entity_id}/phases
- POST   /api/timelines/{entity_id}/phases
- PATCH  /api/timelines/{entity_id}/phases/{phase_id}
- DELETE /api/timelines/{entity_id}/phases/{phase_id}      - Idempotent
- POST   /api/timelines/{entity_id}/phases/{phase_id}/reset-applications

Roles:
- GET    /api/timelines/{entity_id}/roles/{role_type}/status
- GET    /api/timelines/{entity_id}/roles/{role_type}/button
- GET    /api/timelines/{entity_id}/roles/{role_type}/form

TimelineNotFoundError / PhaseNotFoundError map to 404 and OverlappingPhaseError
to 409 through the app-level exception handlers.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from recruitment.api.deps import get_timeline_service
from recruitment.schemas.timeline import (
    ButtonDescriptor,
    Phase,
    PhaseCreate,
    PhaseUpdate,
    RoleStatus,
    Timeline,
    TimelineCreate,
    TimelineStatistics,
)
from recruitment.services.timeline_service import TimelineService

router = APIRouter()
logger = structlog.get_logger(__name__)


class ImportResponse(BaseModel):
    imported: int


class RemovePhaseResponse(BaseModel):
    entity_id: str
    phase_id: str
    removed: bool


class RecruitmentFormResponse(BaseModel):
    entity_id: str
    role_type: str
    form_id: str | None = None
    can_open: bool


# ──────────────────────────────────────────────────────────────────────────────
# Timelines
# ──────────────────────────────────────────────────────────────────────────────


@router.get("")
async def list_timelines(service: TimelineService = Depends(get_timeline_service)) -> dict[str, Any]:
    return service.export_data()


@router.post("", response_model=Timeline, status_code=201)
async def create_timeline(
    body: TimelineCreate,
    service: TimelineService = Depends(get_timeline_service),
) -> Timeline:
    return await service.create_timeline(body)


@router.delete("", status_code=204)
async def clear_timelines(service: TimelineService = Depends(get_timeline_service)) -> Response:
    await service.clear_all()
    return Response(status_code=204)


@router.get("/statistics", response_model=TimelineStatistics)
async def get_statistics(service: TimelineService = Depends(get_timeline_service)) -> TimelineStatistics:
    return service.get_statistics()


@router.get("/export")
async def export_timelines(
    entity_id: str | None = None,
    service: TimelineService = Depends(get_timeline_service),
) -> dict[str, Any]:
    """Export all timelines, or a single one when entity_id is given."""
    data = service.export_data(entity_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Timeline not found")
    return data


@router.post("/import", response_model=ImportResponse)
async def import_timelines(
    body: dict[str, Any],
    service: TimelineService = Depends(get_timeline_service),
) -> ImportResponse:
    """Replace the registry with ``{entity_id: timeline}``. Invalid payloads return 422."""
    imported = await service.import_data(body)
    return ImportResponse(imported=imported)


@router.get("/{entity_id}", response_model=Timeline)
async def get_timeline(
    entity_id: str,
    service: TimelineService = Depends(get_timeline_service),
) -> Timeline:
    timeline = service.get_timeline(entity_id)
    if timeline is None:
        raise HTTPException(status_code=404, detail="Timeline not found")
    return timeline


# ──────────────────────────────────────────────────────────────────────────────
# Phases
# ──────────────────────────────────────────────────────────────────────────────


@router.get("/{entity_id}/phases", response_model=list[Phase])
async def list_phases(
    entity_id: str,
    service: TimelineService = Depends(get_timeline_service),
) -> list[Phase]:
    return service.get_entity_phases(entity_id)


@router.post("/{entity_id}/phases", response_model=Phase, status_code=201)
async def add_phase(
    entity_id: str,
    body: PhaseCreate,
    service: TimelineService = Depends(get_timeline_service),
) -> Phase:
    return await service.add_phase(entity_id, body)


@router.patch("/{entity_id}/phases/{phase_id}", response_model=Phase)
async def update_phase(
    entity_id: str,
    phase_id: str,
    body: PhaseUpdate,
    service: TimelineService = Depends(get_timeline_service),
) -> Phase:
    return await service.update_phase(entity_id, phase_id, body)


@router.delete("/{entity_id}/phases/{phase_id}", response_model=RemovePhaseResponse)
async def remove_phase(
    entity_id: str,
    phase_id: str,
    service: TimelineService = Depends(get_timeline_service),
) -> RemovePhaseResponse:
    removed = await service.remove_phase(entity_id, phase_id)
    return RemovePhaseResponse(entity_id=entity_id, phase_id=phase_id, removed=removed)


@router.post("/{entity_id}/phases/{phase_id}/reset-applications", response_model=Phase)
async def reset_applications(
    entity_id: str,
    phase_id: str,
    service: TimelineService = Depends(get_timeline_service),
) -> Phase:
    return await service.reset_application_count(entity_id, phase_id)


# ──────────────────────────────────────────────────────────────────────────────
# Roles
# ──────────────────────────────────────────────────────────────────────────────


@router.get("/{entity_id}/roles/{role_type}/status", response_model=RoleStatus)
async def get_role_status(
    entity_id: str,
    role_type: str,
    service: TimelineService = Depends(get_timeline_service),
) -> RoleStatus:
    return service.get_role_status(entity_id, role_type)


@router.get("/{entity_id}/roles/{role_type}/button", response_model=ButtonDescriptor)
async def get_recruitment_button(
    entity_id: str,
    role_type: str,
    service: TimelineService = Depends(get_timeline_service),
) -> ButtonDescriptor:
    return service.get_recruitment_button(entity_id, role_type)


@router.get("/{entity_id}/roles/{role_type}/form", response_model=RecruitmentFormResponse)
async def open_recruitment_form(
    entity_id: str,
    role_type: str,
    service: TimelineService = Depends(get_timeline_service),
) -> RecruitmentFormResponse:
    """Form the public page should open, if the role is currently accepting applications."""
    form_id = service.open_recruitment_form(entity_id, role_type)
    if form_id is None:
        logger.info("recruitment_form_unavailable", entity_id=entity_id, role_type=role_type)
    return RecruitmentFormResponse(
        entity_id=entity_id,
        role_type=role_type,
        form_id=form_id,
        can_open=form_id is not None,
    )
