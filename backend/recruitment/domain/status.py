"""Phase and role status derivation.

Pure domain logic with no side effects: every function takes ``now``
explicitly and never mutates the timelines it reads.

Policies:
  - Window boundaries are inclusive: now == start or now == end is active.
  - Overlapping windows for one role are allowed; the first phase in
    insertion order whose window contains ``now`` wins.
"""

import heapq
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from recruitment.schemas.timeline import (
    Phase,
    PhaseStatus,
    RecruitmentStatus,
    RoleStatus,
    Timeline,
)

# Expiry happens strictly after end_date, so the sweep that observes it is
# scheduled this far past the boundary.
EXPIRY_GRACE = timedelta(seconds=1)


def calculate_phase_status(now: datetime, start: datetime, end: datetime) -> PhaseStatus:
    """Status of a window at ``now``: inactive before start, expired after end."""
    if now < start:
        return PhaseStatus.INACTIVE
    if now > end:
        return PhaseStatus.EXPIRED
    return PhaseStatus.ACTIVE


def phase_status(phase: Phase, now: datetime) -> PhaseStatus:
    return calculate_phase_status(now, phase.start_date, phase.end_date)


def get_current_phase(timeline: Timeline | None, role_type: str, now: datetime) -> Phase | None:
    """First phase for ``role_type`` whose window contains ``now``."""
    if timeline is None:
        return None

    return next(
        (
            phase for phase in timeline.phases
            if phase.role_type == role_type and phase.start_date <= now <= phase.end_date
        ),
        None,
    )


def get_next_phase(timeline: Timeline | None, role_type: str, now: datetime) -> Phase | None:
    """Upcoming phase for ``role_type`` with the earliest start after ``now``."""
    if timeline is None:
        return None

    upcoming = [
        phase for phase in timeline.phases
        if phase.role_type == role_type and phase.start_date > now
    ]
    if not upcoming:
        return None
    # sorted() is stable, so equal starts keep insertion order
    return sorted(upcoming, key=lambda phase: phase.start_date)[0]


def _format_date(value: datetime) -> str:
    """UTC calendar date, YYYY-MM-DD."""
    return value.astimezone(UTC).date().isoformat()


def get_role_status(timeline: Timeline | None, role_type: str, now: datetime) -> RoleStatus:
    """Aggregate recruitment status for one role of one entity.

    Pure function -- no side effects.

    Returns:
        RoleStatus with status, a human-readable message, can_apply, and the
        phase the status was derived from (or the next phase when none is open).

    Rules:
        - No timeline: inactive, "No recruitment timeline configured"
        - No open phase: inactive, pointing at the next phase if any
        - Open phase at capacity (max_applications set and reached): full
        - Otherwise: active, can_apply
    """
    if timeline is None:
        return RoleStatus(
            status=RecruitmentStatus.INACTIVE,
            message="No recruitment timeline configured",
            can_apply=False,
            timeline_configured=False,
        )

    current = get_current_phase(timeline, role_type, now)
    if current is None:
        next_phase = get_next_phase(timeline, role_type, now)
        if next_phase is not None:
            message = f"Recruitment opens on {_format_date(next_phase.start_date)}"
        else:
            message = "No recruitment scheduled"
        return RoleStatus(
            status=RecruitmentStatus.INACTIVE,
            message=message,
            can_apply=False,
            next_phase=next_phase,
        )

    if now < current.start_date:
        return RoleStatus(
            status=RecruitmentStatus.INACTIVE,
            message=f"Recruitment opens on {_format_date(current.start_date)}",
            can_apply=False,
            phase=current,
        )

    if now > current.end_date:
        return RoleStatus(
            status=RecruitmentStatus.EXPIRED,
            message=f"Recruitment closed on {_format_date(current.end_date)}",
            can_apply=False,
            phase=current,
        )

    if current.max_applications is not None and current.current_applications >= current.max_applications:
        return RoleStatus(
            status=RecruitmentStatus.FULL,
            message="Maximum applications reached",
            can_apply=False,
            phase=current,
        )

    return RoleStatus(
        status=RecruitmentStatus.ACTIVE,
        message=f"Applications close on {_format_date(current.end_date)}",
        can_apply=True,
        phase=current,
    )


def find_overlapping_phase(
    timeline: Timeline,
    role_type: str,
    start: datetime,
    end: datetime,
    exclude_phase_id: str | None = None,
) -> Phase | None:
    """First phase of the same role whose (inclusive) window intersects [start, end]."""
    for phase in timeline.phases:
        if phase.id == exclude_phase_id or phase.role_type != role_type:
            continue
        if phase.start_date <= end and start <= phase.end_date:
            return phase
    return None


def upcoming_transitions(timelines: Iterable[Timeline], now: datetime) -> list[datetime]:
    """Min-heap of future instants at which some phase changes status."""
    heap: list[datetime] = []
    for timeline in timelines:
        for phase in timeline.phases:
            if phase.start_date > now:
                heap.append(phase.start_date)
            expiry = phase.end_date + EXPIRY_GRACE
            if expiry > now:
                heap.append(expiry)
    heapq.heapify(heap)
    return heap


def next_transition_at(timelines: Iterable[Timeline], now: datetime) -> datetime | None:
    """Earliest future status transition across all phases, or None."""
    heap = upcoming_transitions(timelines, now)
    return heap[0] if heap else None
