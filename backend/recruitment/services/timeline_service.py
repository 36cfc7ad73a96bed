"""TimelineService: façade over the timeline registry.

CRUD over timelines and phases, application-count bookkeeping, role status and
button lookups, export/import, statistics, and the status sweep used by
StatusMonitor.

Mutating operations are async because they persist through the repository
before returning. They share one asyncio.Lock with the sweep, so a monitor
tick never interleaves with an API call even across Redis awaits. A write
whose save fails is rolled back in memory before the error propagates. Read
operations are synchronous and return copies with a freshly computed status;
the cached ``Phase.status`` only changes on add/update and during a sweep.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

import structlog

from recruitment.core.exceptions import (
    OverlappingPhaseError,
    PhaseNotFoundError,
    TimelineNotFoundError,
)
from recruitment.domain import status as engine
from recruitment.domain.buttons import build_button
from recruitment.schemas.timeline import (
    ButtonDescriptor,
    Phase,
    PhaseCreate,
    PhaseStatus,
    PhaseUpdate,
    RoleStatus,
    RoleType,
    Timeline,
    TimelineCreate,
    TimelineStatistics,
    new_id,
    timeline_registry_adapter,
)
from recruitment.services.timeline_repository import TimelineRepository

logger = structlog.get_logger(__name__)

ApplicationKind = Literal["submitted", "approved"]

_NULLABLE_PHASE_FIELDS = {"form_id", "max_applications"}


@dataclass
class StatusChange:
    """One phase whose cached status changed during a sweep."""

    entity_id: str
    entity_name: str
    phase: Phase
    old_status: PhaseStatus
    new_status: PhaseStatus
    notify: bool = False


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


def _default_title(role_type: RoleType) -> str:
    return f"{role_type.value.capitalize()} Recruitment"


class TimelineService:
    """Timeline CRUD and status façade.

    Uses dependency injection (takes the repository) for testability.
    """

    def __init__(self, repository: TimelineRepository, reject_overlapping_phases: bool = False):
        self.repository = repository
        self.reject_overlapping_phases = reject_overlapping_phases
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        """Serialize a write; restore the registry when it raises before or during save.

        Keeps memory equal to the stored copy: a failed save leaves nothing
        half-applied, and a failed sweep leaves cached statuses stale so the
        next sweep reports the same transitions again.
        """
        async with self._lock:
            snapshot = self.repository.snapshot()
            try:
                yield
            except BaseException:
                self.repository.restore(snapshot)
                logger.warning("timeline_write_rolled_back", timelines=len(snapshot))
                raise

    def _require_timeline(self, entity_id: str) -> Timeline:
        timeline = self.repository.get(entity_id)
        if timeline is None:
            raise TimelineNotFoundError(entity_id)
        return timeline

    @staticmethod
    def _phase_index(timeline: Timeline, phase_id: str) -> int:
        for index, phase in enumerate(timeline.phases):
            if phase.id == phase_id:
                return index
        raise PhaseNotFoundError(timeline.entity_id, phase_id)

    def _check_overlap(
        self,
        timeline: Timeline,
        role_type: RoleType,
        start: datetime,
        end: datetime,
        exclude_phase_id: str | None = None,
    ) -> None:
        if not self.reject_overlapping_phases:
            return
        conflict = engine.find_overlapping_phase(timeline, role_type, start, end, exclude_phase_id)
        if conflict is not None:
            raise OverlappingPhaseError(timeline.entity_id, role_type.value, conflict.id)

    @staticmethod
    def _build_phase(spec: PhaseCreate, now: datetime) -> Phase:
        return Phase(
            id=spec.id or new_id("phase"),
            role_type=spec.role_type,
            title=spec.title or _default_title(spec.role_type),
            description=spec.description,
            start_date=spec.start_date,
            end_date=spec.end_date,
            status=engine.calculate_phase_status(now, spec.start_date, spec.end_date),
            form_id=spec.form_id,
            max_applications=spec.max_applications,
            settings=spec.settings,
            created_at=now,
        )

    @staticmethod
    def _fresh(phase: Phase, now: datetime) -> Phase:
        return phase.model_copy(update={"status": engine.phase_status(phase, now)}, deep=True)

    # ------------------------------------------------------------------
    # Timelines
    # ------------------------------------------------------------------

    async def create_timeline(self, spec: TimelineCreate, now: datetime | None = None) -> Timeline:
        """Create or replace the timeline for ``spec.entity_id``.

        Top-level fields are replaced, not merged. An existing timeline keeps
        its phases and created_at unless the request supplies phases.
        """
        now = _now(now)
        async with self._mutation():
            existing = self.repository.get(spec.entity_id)

            timeline = Timeline(
                id=spec.id or (existing.id if existing else new_id("timeline")),
                entity_id=spec.entity_id,
                entity_type=spec.entity_type,
                entity_name=spec.entity_name,
                phases=existing.phases if existing is not None and spec.phases is None else [],
                settings=spec.settings,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            # Inline phases are checked against each other in order
            for phase_spec in spec.phases or []:
                self._check_overlap(timeline, phase_spec.role_type, phase_spec.start_date, phase_spec.end_date)
                timeline.phases.append(self._build_phase(phase_spec, now))

            self.repository.put(timeline)
            await self.repository.save()

        logger.info(
            "timeline_upserted",
            entity_id=timeline.entity_id,
            entity_type=timeline.entity_type.value,
            replaced=existing is not None,
            phases=len(timeline.phases),
        )
        return timeline.model_copy(deep=True)

    def get_timeline(self, entity_id: str, now: datetime | None = None) -> Timeline | None:
        timeline = self.repository.get(entity_id)
        if timeline is None:
            return None
        now = _now(now)
        return timeline.model_copy(
            update={"phases": [self._fresh(phase, now) for phase in timeline.phases]},
            deep=True,
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def add_phase(self, entity_id: str, spec: PhaseCreate, now: datetime | None = None) -> Phase:
        """Append a phase to the entity's timeline.

        Raises:
            TimelineNotFoundError: no timeline for entity_id
            OverlappingPhaseError: overlap rejection is on and the window collides
        """
        now = _now(now)
        async with self._mutation():
            timeline = self._require_timeline(entity_id)
            self._check_overlap(timeline, spec.role_type, spec.start_date, spec.end_date)

            phase = self._build_phase(spec, now)
            timeline.phases.append(phase)
            timeline.updated_at = now
            await self.repository.save()

        logger.info(
            "phase_added",
            entity_id=entity_id,
            phase_id=phase.id,
            role_type=phase.role_type.value,
            status=phase.status.value,
        )
        return phase.model_copy(deep=True)

    async def update_phase(
        self,
        entity_id: str,
        phase_id: str,
        patch: PhaseUpdate,
        now: datetime | None = None,
    ) -> Phase:
        """Shallow-merge the set fields of ``patch`` into the phase.

        Status is recomputed immediately when a date changes.

        Raises:
            TimelineNotFoundError: no timeline for entity_id
            PhaseNotFoundError: no phase with phase_id
        """
        now = _now(now)
        # None only clears the nullable fields; elsewhere it means "unchanged"
        changes = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or field in _NULLABLE_PHASE_FIELDS
        }

        async with self._mutation():
            timeline = self._require_timeline(entity_id)
            index = self._phase_index(timeline, phase_id)
            phase = timeline.phases[index]

            role_type = changes.get("role_type", phase.role_type)
            start = changes.get("start_date", phase.start_date)
            end = changes.get("end_date", phase.end_date)
            self._check_overlap(timeline, RoleType(role_type), start, end, exclude_phase_id=phase.id)

            updated = Phase.model_validate({**phase.model_dump(), **changes})
            if "start_date" in changes or "end_date" in changes:
                updated.status = engine.phase_status(updated, now)

            timeline.phases[index] = updated
            timeline.updated_at = now
            await self.repository.save()

        logger.info(
            "phase_updated",
            entity_id=entity_id,
            phase_id=phase_id,
            fields=sorted(changes),
            status=updated.status.value,
        )
        return updated.model_copy(deep=True)

    async def remove_phase(self, entity_id: str, phase_id: str, now: datetime | None = None) -> bool:
        """Remove a phase. Removing an absent phase is a no-op.

        Returns:
            True if a phase was removed, False if it was already absent

        Raises:
            TimelineNotFoundError: no timeline for entity_id
        """
        now = _now(now)
        async with self._mutation():
            timeline = self._require_timeline(entity_id)
            remaining = [phase for phase in timeline.phases if phase.id != phase_id]
            removed = len(remaining) != len(timeline.phases)
            timeline.phases = remaining
            timeline.updated_at = now
            await self.repository.save()

        logger.info("phase_removed", entity_id=entity_id, phase_id=phase_id, removed=removed)
        return removed

    def get_entity_phases(self, entity_id: str, now: datetime | None = None) -> list[Phase]:
        """Phases of the entity in insertion order, with fresh status.

        Raises:
            TimelineNotFoundError: no timeline for entity_id
        """
        timeline = self._require_timeline(entity_id)
        now = _now(now)
        return [self._fresh(phase, now) for phase in timeline.phases]

    # ------------------------------------------------------------------
    # Application counters
    # ------------------------------------------------------------------

    async def increment_application_count(
        self,
        entity_id: str,
        role_type: RoleType | str,
        kind: ApplicationKind = "submitted",
        now: datetime | None = None,
    ) -> Phase | None:
        """Count one application against the role's current phase.

        Not idempotent: there is no dedup key, so repeated calls for the same
        application count again. ``current_applications`` always moves by one;
        ``submitted_count`` or ``approved_count`` records which event caused it.

        Returns:
            The updated phase, or None when no phase is open for the role
        """
        now = _now(now)
        async with self._mutation():
            phase = engine.get_current_phase(self.repository.get(entity_id), role_type, now)
            if phase is None:
                logger.info(
                    "application_count_skipped_no_current_phase",
                    entity_id=entity_id,
                    role_type=str(role_type),
                    kind=kind,
                )
                return None

            phase.current_applications += 1
            if kind == "approved":
                phase.approved_count += 1
            else:
                phase.submitted_count += 1
            await self.repository.save()

        logger.info(
            "application_count_incremented",
            entity_id=entity_id,
            phase_id=phase.id,
            kind=kind,
            current_applications=phase.current_applications,
            max_applications=phase.max_applications,
        )
        return self._fresh(phase, now)

    async def reset_application_count(self, entity_id: str, phase_id: str) -> Phase:
        """Zero all application counters of a phase.

        Raises:
            TimelineNotFoundError: no timeline for entity_id
            PhaseNotFoundError: no phase with phase_id
        """
        async with self._mutation():
            timeline = self._require_timeline(entity_id)
            phase = timeline.phases[self._phase_index(timeline, phase_id)]
            phase.current_applications = 0
            phase.submitted_count = 0
            phase.approved_count = 0
            await self.repository.save()

        logger.info("application_count_reset", entity_id=entity_id, phase_id=phase_id)
        return phase.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Status and buttons
    # ------------------------------------------------------------------

    def get_current_phase(self, entity_id: str, role_type: RoleType | str, now: datetime | None = None) -> Phase | None:
        now = _now(now)
        phase = engine.get_current_phase(self.repository.get(entity_id), role_type, now)
        return self._fresh(phase, now) if phase else None

    def get_next_phase(self, entity_id: str, role_type: RoleType | str, now: datetime | None = None) -> Phase | None:
        now = _now(now)
        phase = engine.get_next_phase(self.repository.get(entity_id), role_type, now)
        return self._fresh(phase, now) if phase else None

    def get_role_status(self, entity_id: str, role_type: RoleType | str, now: datetime | None = None) -> RoleStatus:
        now = _now(now)
        result = engine.get_role_status(self.repository.get(entity_id), role_type, now)
        return result.model_copy(
            update={
                "phase": self._fresh(result.phase, now) if result.phase else None,
                "next_phase": self._fresh(result.next_phase, now) if result.next_phase else None,
            }
        )

    def get_recruitment_button(
        self,
        entity_id: str,
        role_type: RoleType | str,
        now: datetime | None = None,
    ) -> ButtonDescriptor:
        return build_button(entity_id, role_type, self.get_role_status(entity_id, role_type, now))

    def open_recruitment_form(
        self,
        entity_id: str,
        role_type: RoleType | str,
        now: datetime | None = None,
    ) -> str | None:
        """Form to open for the role, or None when it cannot take applications."""
        result = self.get_role_status(entity_id, role_type, now)
        if result.can_apply and result.phase is not None and result.phase.form_id:
            return result.phase.form_id
        return None

    def iter_role_pairs(self) -> list[tuple[str, RoleType]]:
        """Every (entity_id, role_type) with at least one phase, in registry order."""
        pairs: list[tuple[str, RoleType]] = []
        for entity_id, timeline in self.repository.items():
            seen: list[RoleType] = []
            for phase in timeline.phases:
                if phase.role_type not in seen:
                    seen.append(phase.role_type)
            pairs.extend((entity_id, role) for role in seen)
        return pairs

    def get_all_buttons(self, now: datetime | None = None) -> list[ButtonDescriptor]:
        now = _now(now)
        return [
            self.get_recruitment_button(entity_id, role_type, now)
            for entity_id, role_type in self.iter_role_pairs()
        ]

    def next_transition_at(self, now: datetime | None = None) -> datetime | None:
        return engine.next_transition_at(self.repository.values(), _now(now))

    async def refresh_statuses(self, now: datetime | None = None) -> list[StatusChange]:
        """Recompute every cached phase status; persist once if anything changed.

        When the save fails the cached statuses are restored and the error
        propagates, so the next call reports the same changes again.
        """
        now = _now(now)
        changes: list[StatusChange] = []

        async with self._mutation():
            for entity_id, timeline in self.repository.items():
                for phase in timeline.phases:
                    new_status = engine.phase_status(phase, now)
                    if phase.status == new_status:
                        continue
                    old_status = phase.status
                    phase.status = new_status
                    changes.append(StatusChange(
                        entity_id=entity_id,
                        entity_name=timeline.entity_name,
                        phase=phase.model_copy(deep=True),
                        old_status=old_status,
                        new_status=new_status,
                        notify=timeline.settings.notify_on_status_change,
                    ))

            if changes:
                await self.repository.save()

        return changes

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_data(self, entity_id: str | None = None) -> dict[str, Any] | None:
        """JSON-ready export: one timeline, or ``{entity_id: timeline}`` for all.

        Returns None when a single unknown entity is requested.
        """
        if entity_id is not None:
            timeline = self.repository.get(entity_id)
            return timeline.model_dump(mode="json") if timeline else None
        return {
            key: timeline.model_dump(mode="json")
            for key, timeline in self.repository.items()
        }

    async def import_data(self, data: dict[str, Any]) -> int:
        """Replace the whole registry with ``{entity_id: timeline}`` and persist.

        Validation happens before anything is replaced, so an invalid payload
        leaves the registry untouched.

        Returns:
            Number of timelines imported
        """
        timelines = timeline_registry_adapter.validate_python(data)
        async with self._mutation():
            self.repository.replace_all(timelines)
            await self.repository.save()

        logger.info("timelines_imported", count=len(timelines))
        return len(timelines)

    async def clear_all(self) -> None:
        async with self._mutation():
            self.repository.clear()
            await self.repository.save()
        logger.info("timelines_cleared")

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self, now: datetime | None = None) -> TimelineStatistics:
        """Counts of timelines, phases, and applications by status, role, and entity type.

        Read-only; phase status is computed at ``now`` rather than read from cache.
        """
        now = _now(now)
        stats = TimelineStatistics()

        for timeline in self.repository.values():
            stats.total_timelines += 1
            entity_stats = stats.by_entity[timeline.entity_type.value]
            entity_stats.timelines += 1

            for phase in timeline.phases:
                stats.total_phases += 1
                entity_stats.phases += 1
                role_stats = stats.by_role[phase.role_type.value]
                role_stats.phases += 1
                role_stats.applications += phase.current_applications
                stats.total_applications += phase.current_applications

                current = engine.phase_status(phase, now)
                if current == PhaseStatus.ACTIVE:
                    stats.active_phases += 1
                elif current == PhaseStatus.INACTIVE:
                    stats.inactive_phases += 1
                else:
                    stats.expired_phases += 1

        return stats
