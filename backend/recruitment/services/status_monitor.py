"""StatusMonitor: background re-evaluation of every phase status.

Runs as an asyncio.Task alongside the API, NOT a separate process.

States: stopped -> start() -> running -> stop() -> stopped (stop is idempotent).

Wake conditions for a sweep (whichever fires first):
  1. The next phase transition instant (start, or just past end) across all
     timelines, computed from a min-heap of upcoming boundaries
  2. The fixed polling interval (60s default), as a fallback for missed timers
  3. notify_visible(): the UI regained foreground focus

Each sweep recomputes every cached phase status through TimelineService,
publishes one recruitment.status.changed event per change (plus a
recruitment.notification.requested event when the timeline asks for
notifications), and, if anything changed, one recruitment.buttons.refresh
event so bound UI controls re-render. Persistence happens once per sweep
inside TimelineService.refresh_statuses.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime
from enum import Enum

import structlog

from recruitment.schemas.events import NotificationRequested, StatusChangeNotification
from recruitment.services.notification_publisher import NotificationPublisher, notification_message
from recruitment.services.timeline_service import StatusChange, TimelineService

logger = structlog.get_logger(__name__)

# Poll interval fallback in seconds
DEFAULT_INTERVAL = 60.0


class MonitorState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class StatusMonitor:
    """Periodic and edge-triggered status sweeps over the whole registry.

    Usage:
        monitor = StatusMonitor(service, publisher, interval=60)
        monitor.start()          # inside a running event loop
        monitor.notify_visible() # UI regained focus: sweep now
        await monitor.stop()
    """

    def __init__(
        self,
        service: TimelineService,
        publisher: NotificationPublisher,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.service = service
        self.publisher = publisher
        self.interval = interval
        self.state = MonitorState.STOPPED
        self.wake_event = asyncio.Event()
        self.last_sweep_at: datetime | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.state == MonitorState.RUNNING

    def start(self) -> None:
        """Start the sweep loop. No-op when already running."""
        if self.running:
            return
        self.wake_event.clear()
        self._task = asyncio.create_task(self.run())
        self.state = MonitorState.RUNNING
        logger.info("status_monitor_started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel the sweep loop. Safe to call repeatedly."""
        task, self._task = self._task, None
        self.state = MonitorState.STOPPED
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("status_monitor_stopped")

    def notify_visible(self) -> None:
        """Request an immediate sweep (application became visible again)."""
        self.wake_event.set()

    def next_delay(self, now: datetime) -> float:
        """Seconds until the next sweep: the next transition, capped by the interval."""
        delay = self.interval
        upcoming = self.service.next_transition_at(now)
        if upcoming is not None:
            delay = min(delay, max(0.0, (upcoming - now).total_seconds()))
        return delay

    async def run(self) -> None:
        """Sweep forever. Intended to run as ``asyncio.create_task(monitor.run())``."""
        while True:
            try:
                delay = self.next_delay(datetime.now(UTC))
            except Exception as exc:
                logger.error(
                    "status_schedule_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                    exc_info=True,
                )
                delay = self.interval

            try:
                await asyncio.wait_for(self.wake_event.wait(), timeout=delay)
                trigger = "visibility"
            except TimeoutError:
                trigger = "timer"
            self.wake_event.clear()

            try:
                await self.sweep(trigger=trigger)
            except Exception as exc:
                logger.error(
                    "status_sweep_failed",
                    trigger=trigger,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    exc_info=True,
                )

    async def sweep(self, now: datetime | None = None, trigger: str = "manual") -> list[StatusChange]:
        """Recompute all statuses once and publish what changed.

        Args:
            now: Current time (for deterministic testing)
            trigger: What caused the sweep, for logging

        Returns:
            The status changes detected by this sweep
        """
        now = now or datetime.now(UTC)
        changes = await self.service.refresh_statuses(now)
        self.last_sweep_at = now

        for change in changes:
            logger.info(
                "recruitment_status_changed",
                entity_id=change.entity_id,
                phase_id=change.phase.id,
                role_type=change.phase.role_type.value,
                old_status=change.old_status.value,
                new_status=change.new_status.value,
            )
            await self.publisher.publish_status_change(
                StatusChangeNotification(
                    entity_id=change.entity_id,
                    phase=change.phase,
                    old_status=change.old_status,
                    new_status=change.new_status,
                    timestamp=now,
                )
            )
            if change.notify:
                await self.publisher.request_notification(self._notification_for(change, now))

        if changes:
            await self.publisher.publish_buttons_refresh(self.service.get_all_buttons(now))

        logger.debug("status_sweep_complete", trigger=trigger, changes=len(changes))
        return changes

    @staticmethod
    def _notification_for(change: StatusChange, now: datetime) -> NotificationRequested:
        return NotificationRequested(
            entity_id=change.entity_id,
            entity_name=change.entity_name,
            role_type=change.phase.role_type,
            phase_id=change.phase.id,
            phase_title=change.phase.title,
            old_status=change.old_status,
            new_status=change.new_status,
            message=notification_message(
                change.phase.role_type.value, change.entity_id, change.new_status.value
            ),
            timestamp=now,
        )
