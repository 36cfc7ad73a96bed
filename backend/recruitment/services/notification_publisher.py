"""NotificationPublisher: publishes produced recruitment events to Redis Pub/Sub.

Channels:
  - events channel: recruitment.status.changed, recruitment.buttons.refresh
  - notifications channel: recruitment.notification.requested (external notifier)

Non-fatal on Redis failures: delivery is the consumer's concern, so a failed
publish is logged and reported as False rather than raised.
"""

import structlog
from pydantic import BaseModel
from redis.asyncio import Redis

from recruitment.schemas.events import (
    ButtonsRefresh,
    NotificationRequested,
    StatusChangeNotification,
)
from recruitment.schemas.timeline import ButtonDescriptor

logger = structlog.get_logger(__name__)

DEFAULT_EVENTS_CHANNEL = "recruitment:events"
DEFAULT_NOTIFICATIONS_CHANNEL = "recruitment:notifications"


def notification_message(role_type: str, entity_id: str, new_status: str) -> str:
    return f"Recruitment status changed for {role_type} in {entity_id}: {new_status}"


class NotificationPublisher:
    """Publishes typed events as JSON envelopes."""

    def __init__(
        self,
        redis: Redis,
        events_channel: str = DEFAULT_EVENTS_CHANNEL,
        notifications_channel: str = DEFAULT_NOTIFICATIONS_CHANNEL,
    ) -> None:
        self.redis = redis
        self.events_channel = events_channel
        self.notifications_channel = notifications_channel

    async def _publish(self, channel: str, event: BaseModel) -> bool:
        try:
            await self.redis.publish(channel, event.model_dump_json())
        except Exception as exc:
            logger.warning(
                "recruitment_event_publish_failed",
                channel=channel,
                event_type=getattr(event, "type", None),
                error=str(exc),
            )
            return False
        return True

    async def publish_status_change(self, notification: StatusChangeNotification) -> bool:
        return await self._publish(self.events_channel, notification)

    async def request_notification(self, request: NotificationRequested) -> bool:
        """Hand a status change to the external notifier."""
        logger.info(
            "recruitment_notification_requested",
            entity_id=request.entity_id,
            phase_id=request.phase_id,
            new_status=request.new_status.value,
        )
        return await self._publish(self.notifications_channel, request)

    async def publish_buttons_refresh(self, buttons: list[ButtonDescriptor]) -> bool:
        return await self._publish(self.events_channel, ButtonsRefresh(buttons=buttons))
