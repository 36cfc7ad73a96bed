"""Redis connection shared by the timeline store and event channels."""

from recruitment.db.redis import close_redis, get_redis, init_redis, redis_available

__all__ = [
    "close_redis",
    "get_redis",
    "init_redis",
    "redis_available",
]
