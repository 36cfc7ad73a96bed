"""Tests for NotificationPublisher channel routing and failure handling."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from recruitment.schemas.events import NotificationRequested, StatusChangeNotification
from recruitment.schemas.timeline import ButtonDescriptor, Phase, PhaseStatus, RoleType
from recruitment.services.notification_publisher import NotificationPublisher, notification_message

pytestmark = pytest.mark.unit

T0 = datetime(2030, 6, 1, tzinfo=UTC)


def _phase() -> Phase:
    return Phase(
        role_type=RoleType.CREW,
        title="Crew Recruitment",
        start_date=T0,
        end_date=T0 + timedelta(days=2),
        status=PhaseStatus.ACTIVE,
    )


async def _next_message(pubsub) -> dict:
    """Skip subscribe confirmations and return the next published message."""
    for _ in range(10):
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=0.5)
        if message is not None:
            return message
    raise AssertionError("no message published")


@pytest.fixture
async def pubsub(redis):
    ps = redis.pubsub()
    await ps.subscribe("recruitment:events", "recruitment:notifications")
    yield ps
    await ps.unsubscribe()
    await ps.aclose()


def test_notification_message_format():
    assert notification_message("crew", "proj-1", "active") == (
        "Recruitment status changed for crew in proj-1: active"
    )


async def test_status_change_goes_to_events_channel(publisher, pubsub):
    notification = StatusChangeNotification(
        entity_id="proj-1",
        phase=_phase(),
        old_status=PhaseStatus.INACTIVE,
        new_status=PhaseStatus.ACTIVE,
    )

    assert await publisher.publish_status_change(notification) is True

    message = await _next_message(pubsub)
    assert message["channel"] == "recruitment:events"
    payload = json.loads(message["data"])
    assert payload["type"] == "recruitment.status.changed"
    assert payload["phase"]["role_type"] == "crew"
    assert payload["new_status"] == "active"


async def test_notification_request_goes_to_notifications_channel(publisher, pubsub):
    request = NotificationRequested(
        entity_id="proj-1",
        role_type=RoleType.CREW,
        phase_id="phase_1",
        phase_title="Crew Recruitment",
        old_status=PhaseStatus.ACTIVE,
        new_status=PhaseStatus.EXPIRED,
        message=notification_message("crew", "proj-1", "expired"),
    )

    await publisher.request_notification(request)

    message = await _next_message(pubsub)
    assert message["channel"] == "recruitment:notifications"
    assert json.loads(message["data"])["type"] == "recruitment.notification.requested"


async def test_buttons_refresh_envelope(publisher, pubsub):
    button = ButtonDescriptor(text="Join Project", role_type="crew", entity_id="proj-1", css_state="inactive")

    await publisher.publish_buttons_refresh([button])

    payload = json.loads((await _next_message(pubsub))["data"])
    assert payload["type"] == "recruitment.buttons.refresh"
    assert payload["buttons"][0]["text"] == "Join Project"


async def test_publish_failure_returns_false(redis):
    publisher = NotificationPublisher(redis)

    with patch.object(redis, "publish", new_callable=AsyncMock, side_effect=ConnectionError("down")):
        ok = await publisher.publish_buttons_refresh([])

    assert ok is False
