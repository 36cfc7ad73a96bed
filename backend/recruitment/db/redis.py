"""Process-wide Redis client.

One client backs the timeline store, the event channels, and the
applications subscription. It is opened in the app lifespan and closed on
shutdown; components receive it by injection rather than calling get_redis().
"""

import redis.asyncio as redis
import structlog

from recruitment.core.config import get_settings

logger = structlog.get_logger(__name__)

_client: redis.Redis | None = None


async def init_redis(url: str | None = None) -> redis.Redis:
    """Connect once and verify with PING. Repeated calls return the open client."""
    global _client

    if _client is not None:
        return _client

    client = redis.from_url(
        url or get_settings().redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()

    _client = client
    pool_kwargs = client.connection_pool.connection_kwargs
    logger.info("redis_connected", host=pool_kwargs.get("host"), db=pool_kwargs.get("db"))
    return _client


async def close_redis() -> None:
    global _client

    client, _client = _client, None
    if client is not None:
        await client.aclose()


def get_redis() -> redis.Redis:
    """Return the open client.

    Raises RuntimeError if init_redis() has not been called.
    """
    if _client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _client


async def redis_available() -> bool:
    """PING the shared client; False when it is missing or unreachable."""
    try:
        await get_redis().ping()
    except Exception as exc:
        logger.warning("redis_ping_failed", error=str(exc), error_type=type(exc).__name__)
        return False
    return True
