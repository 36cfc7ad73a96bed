"""EventBridge: feeds application lifecycle events into the counters.

Subscribes to the applications Pub/Sub channel and accepts two tagged
variants:

    {"type": "application.submitted", "entity_id": ..., "role_type": ...}
    {"type": "application.approved",  "entity_id": ..., "role_type": ...}

Both increment the role's current phase counter. A submission that is later
approved therefore counts twice in current_applications; submitted_count and
approved_count keep the two sources apart for consumers that need them.
Malformed or unknown payloads are logged and skipped.
"""

import asyncio
import contextlib

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis

from recruitment.schemas.events import (
    ApplicationApproved,
    ApplicationEvent,
    application_event_adapter,
)
from recruitment.schemas.timeline import Phase
from recruitment.services.notification_publisher import NotificationPublisher
from recruitment.services.timeline_service import TimelineService

logger = structlog.get_logger(__name__)

DEFAULT_APPLICATIONS_CHANNEL = "recruitment:applications"


class EventBridge:
    """Forwards application events from Redis Pub/Sub to TimelineService."""

    def __init__(
        self,
        service: TimelineService,
        redis: Redis,
        channel: str = DEFAULT_APPLICATIONS_CHANNEL,
        publisher: NotificationPublisher | None = None,
    ) -> None:
        self.service = service
        self.redis = redis
        self.channel = channel
        self.publisher = publisher
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def handle_event(self, event: ApplicationEvent) -> Phase | None:
        """Increment the counter for one event.

        Returns:
            The updated phase, or None when the role has no open phase
        """
        kind = "approved" if isinstance(event, ApplicationApproved) else "submitted"
        phase = await self.service.increment_application_count(event.entity_id, event.role_type, kind=kind)

        if phase is not None and self.publisher is not None:
            button = self.service.get_recruitment_button(event.entity_id, event.role_type)
            await self.publisher.publish_buttons_refresh([button])
        return phase

    async def handle_message(self, raw: str | bytes) -> Phase | None:
        """Parse a raw Pub/Sub payload and handle it. Bad payloads are skipped."""
        try:
            event = application_event_adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "application_event_rejected",
                channel=self.channel,
                error_count=exc.error_count(),
                errors=exc.errors(include_url=False, include_context=False, include_input=False),
            )
            return None

        logger.info(
            "application_event_received",
            event_type=event.type,
            entity_id=event.entity_id,
            role_type=event.role_type.value,
        )
        return await self.handle_event(event)

    async def run(self) -> None:
        """Listen on the channel until cancelled."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info("event_bridge_subscribed", channel=self.channel)

        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    await self.handle_message(message["data"])
                except Exception as exc:
                    logger.error(
                        "application_event_failed",
                        channel=self.channel,
                        error=str(exc),
                        error_type=type(exc).__name__,
                        exc_info=True,
                    )
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("event_bridge_stopped", channel=self.channel)
