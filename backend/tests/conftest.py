"""Shared test fixtures for all test groups."""

import pytest
from fakeredis import FakeAsyncRedis

from recruitment.services.notification_publisher import NotificationPublisher
from recruitment.services.timeline_repository import TimelineRepository
from recruitment.services.timeline_service import TimelineService


@pytest.fixture
async def redis():
    """Fake Redis shared by the repository and publisher of one test."""
    fake_redis = FakeAsyncRedis(decode_responses=True)
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest.fixture
def repository(redis) -> TimelineRepository:
    return TimelineRepository(redis)


@pytest.fixture
def service(repository) -> TimelineService:
    return TimelineService(repository)


@pytest.fixture
def publisher(redis) -> NotificationPublisher:
    return NotificationPublisher(redis)
