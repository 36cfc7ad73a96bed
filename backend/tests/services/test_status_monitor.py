"""Unit tests for StatusMonitor.

Covers:
  - sweep publishes one status change event per changed phase
  - notification requests only for timelines that ask for them
  - one buttons refresh per sweep with changes, none without
  - persistence happens once per sweep
  - next_delay uses the next transition, capped by the interval
  - start/stop lifecycle and notify_visible wake-up
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from recruitment.domain.status import EXPIRY_GRACE
from recruitment.schemas.timeline import PhaseCreate, RoleType, TimelineCreate, TimelineSettings
from recruitment.services.notification_publisher import NotificationPublisher
from recruitment.services.status_monitor import MonitorState, StatusMonitor

pytestmark = pytest.mark.unit

T0 = datetime(2030, 6, 1, 9, 0, 0, tzinfo=UTC)
DAY = timedelta(days=1)


@pytest.fixture
def mock_publisher() -> AsyncMock:
    publisher = AsyncMock(spec=NotificationPublisher)
    publisher.publish_status_change.return_value = True
    publisher.request_notification.return_value = True
    publisher.publish_buttons_refresh.return_value = True
    return publisher


@pytest.fixture
def monitor(service, mock_publisher) -> StatusMonitor:
    return StatusMonitor(service, mock_publisher, interval=60.0)


async def _seed(service, notify: bool = False) -> None:
    """Two phases created at T0: a volunteer one opening at T0+1d, a crew one open now."""
    await service.create_timeline(
        TimelineCreate(
            entity_id="proj-1",
            entity_type="project",
            entity_name="Riverbank Cleanup",
            settings=TimelineSettings(notify_on_status_change=notify),
        ),
        now=T0,
    )
    await service.add_phase(
        "proj-1",
        PhaseCreate(role_type=RoleType.VOLUNTEER, start_date=T0 + DAY, end_date=T0 + 5 * DAY),
        now=T0,
    )
    await service.add_phase(
        "proj-1",
        PhaseCreate(role_type=RoleType.CREW, start_date=T0 - DAY, end_date=T0 + 2 * DAY),
        now=T0,
    )


# ---------------------------------------------------------------------------
# sweep()
# ---------------------------------------------------------------------------


async def test_sweep_without_changes_publishes_nothing(service, monitor, mock_publisher):
    await _seed(service)

    assert await monitor.sweep(now=T0) == []

    mock_publisher.publish_status_change.assert_not_called()
    mock_publisher.publish_buttons_refresh.assert_not_called()
    assert monitor.last_sweep_at == T0


async def test_sweep_publishes_each_change(service, monitor, mock_publisher):
    await _seed(service)

    changes = await monitor.sweep(now=T0 + 3 * DAY)

    # volunteer inactive -> active, crew active -> expired
    assert len(changes) == 2
    assert mock_publisher.publish_status_change.await_count == 2
    published = [call.args[0] for call in mock_publisher.publish_status_change.await_args_list]
    assert {(n.old_status.value, n.new_status.value) for n in published} == {
        ("inactive", "active"),
        ("active", "expired"),
    }
    assert all(n.timestamp == T0 + 3 * DAY for n in published)

    mock_publisher.publish_buttons_refresh.assert_awaited_once()
    buttons = mock_publisher.publish_buttons_refresh.await_args.args[0]
    assert {b.role_type for b in buttons} == {"crew", "volunteer"}
    mock_publisher.request_notification.assert_not_called()


async def test_sweep_requests_notifications_when_enabled(service, monitor, mock_publisher):
    await _seed(service, notify=True)

    await monitor.sweep(now=T0 + DAY)

    mock_publisher.request_notification.assert_awaited_once()
    request = mock_publisher.request_notification.await_args.args[0]
    assert request.entity_id == "proj-1"
    assert request.entity_name == "Riverbank Cleanup"
    assert request.old_status.value == "inactive"
    assert request.new_status.value == "active"
    assert request.message == "Recruitment status changed for volunteer in proj-1: active"


async def test_sweep_persists_once(service, monitor):
    await _seed(service)

    with patch.object(service.repository, "save", new_callable=AsyncMock) as save:
        await monitor.sweep(now=T0 + 3 * DAY)
        save.assert_awaited_once()

        save.reset_mock()
        await monitor.sweep(now=T0 + 3 * DAY)
        save.assert_not_called()


async def test_sweep_events_reach_redis(redis, service, publisher):
    """End to end through fakeredis: produced events land on the events channel."""
    await _seed(service)
    monitor = StatusMonitor(service, publisher)

    pubsub = redis.pubsub()
    await pubsub.subscribe(publisher.events_channel)

    await monitor.sweep(now=T0 + DAY)

    types = []
    for _ in range(10):
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=0.5)
        if message is not None:
            types.append(json.loads(message["data"])["type"])
        if len(types) == 2:
            break

    assert types == ["recruitment.status.changed", "recruitment.buttons.refresh"]
    await pubsub.unsubscribe()
    await pubsub.aclose()


async def test_sweep_survives_publish_failure(redis, service):
    await _seed(service)
    failing = NotificationPublisher(redis)

    with patch.object(redis, "publish", new_callable=AsyncMock, side_effect=ConnectionError("down")):
        changes = await StatusMonitor(service, failing).sweep(now=T0 + DAY)

    assert len(changes) == 1


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


async def test_next_delay_uses_next_transition(service, monitor):
    await _seed(service)

    # Next boundary: volunteer opens at T0+1d, beyond the 60s cap
    assert monitor.next_delay(T0) == 60.0

    # Ten seconds before the volunteer phase opens
    assert monitor.next_delay(T0 + DAY - timedelta(seconds=10)) == pytest.approx(10.0)

    # Crew expiry fires just after its end date
    at = T0 + 2 * DAY
    assert monitor.next_delay(at) == pytest.approx(EXPIRY_GRACE.total_seconds())


def test_next_delay_empty_registry_is_interval(monitor):
    assert monitor.next_delay(T0) == 60.0


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def test_start_stop_lifecycle(monitor):
    assert monitor.state == MonitorState.STOPPED

    monitor.start()
    task = monitor._task
    monitor.start()  # no-op while running
    assert monitor._task is task
    assert monitor.running

    await monitor.stop()
    assert monitor.state == MonitorState.STOPPED
    assert task.cancelled()

    await monitor.stop()  # idempotent
    assert not monitor.running


async def test_notify_visible_triggers_sweep(monitor):
    swept = asyncio.Event()

    async def fake_sweep(now=None, trigger="manual"):
        fake_sweep.trigger = trigger
        swept.set()
        return []

    with patch.object(monitor, "sweep", side_effect=fake_sweep):
        monitor.start()
        monitor.notify_visible()
        await asyncio.wait_for(swept.wait(), timeout=1.0)
        await monitor.stop()

    assert fake_sweep.trigger == "visibility"
    assert not monitor.wake_event.is_set()


async def test_sweep_error_does_not_kill_loop(monitor):
    calls = 0
    second = asyncio.Event()

    async def flaky_sweep(now=None, trigger="manual"):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        second.set()
        return []

    with patch.object(monitor, "sweep", side_effect=flaky_sweep):
        monitor.start()
        monitor.notify_visible()
        await asyncio.sleep(0.05)
        monitor.notify_visible()
        await asyncio.wait_for(second.wait(), timeout=1.0)
        await monitor.stop()

    assert calls == 2


# ---------------------------------------------------------------------------
# Failure recovery
# ---------------------------------------------------------------------------


async def test_failed_save_republishes_on_next_sweep(service, monitor, mock_publisher):
    """A transition whose save failed is published by the next successful sweep."""
    await _seed(service)

    with patch.object(
        service.repository, "save", new_callable=AsyncMock, side_effect=[ConnectionError("down"), None]
    ):
        with pytest.raises(ConnectionError):
            await monitor.sweep(now=T0 + DAY)
        mock_publisher.publish_status_change.assert_not_called()

        changes = await monitor.sweep(now=T0 + DAY)

    assert [(c.old_status.value, c.new_status.value) for c in changes] == [("inactive", "active")]
    mock_publisher.publish_status_change.assert_awaited_once()
    mock_publisher.publish_buttons_refresh.assert_awaited_once()


async def test_schedule_error_does_not_kill_loop(service, monitor):
    swept = asyncio.Event()

    async def fake_sweep(now=None, trigger="manual"):
        swept.set()
        return []

    with patch.object(service, "next_transition_at", side_effect=RuntimeError("bad registry")), \
            patch.object(monitor, "sweep", side_effect=fake_sweep):
        monitor.start()
        monitor.notify_visible()
        await asyncio.wait_for(swept.wait(), timeout=1.0)
        assert not monitor._task.done()
        await monitor.stop()
