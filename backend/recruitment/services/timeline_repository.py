"""TimelineRepository: in-memory timeline registry persisted to one Redis key.

The key holds a JSON list of ``[entity_id, timeline]`` pairs, in registry
order. One repository is constructed at process start and injected into
TimelineService; nothing else owns the registry.

Load policy: a missing key is an empty registry, and a payload that cannot be
decoded or validated is logged and replaced by an empty registry (never crash
on boot).
"""

import json
from collections.abc import Iterator

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis

from recruitment.schemas.timeline import Timeline, timeline_registry_adapter

logger = structlog.get_logger(__name__)

DEFAULT_STORAGE_KEY = "recruitment:timelines"


class TimelineRepository:
    """Owns the entity_id -> Timeline registry and its persisted copy."""

    def __init__(self, redis: Redis, storage_key: str = DEFAULT_STORAGE_KEY):
        self.redis = redis
        self.storage_key = storage_key
        self._timelines: dict[str, Timeline] = {}

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Replace the in-memory registry with the persisted one.

        Returns:
            Number of timelines loaded (0 on absence or corruption)
        """
        raw = await self.redis.get(self.storage_key)
        if raw is None:
            self._timelines = {}
            return 0

        try:
            self._timelines = self.deserialize(raw)
        except (ValueError, TypeError, ValidationError) as exc:
            logger.error(
                "timelines_load_failed",
                storage_key=self.storage_key,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._timelines = {}
            return 0

        logger.info("timelines_loaded", storage_key=self.storage_key, count=len(self._timelines))
        return len(self._timelines)

    async def save(self) -> None:
        """Write the whole registry under the storage key (last write wins)."""
        await self.redis.set(self.storage_key, self.serialize())

    def serialize(self) -> str:
        pairs = [
            [entity_id, timeline.model_dump(mode="json")]
            for entity_id, timeline in self._timelines.items()
        ]
        return json.dumps(pairs)

    @staticmethod
    def deserialize(raw: str | bytes) -> dict[str, Timeline]:
        """Parse the stored pair list.

        Raises:
            ValueError: payload is not JSON or not a list of pairs
            ValidationError: a timeline does not match the schema, or its key
                differs from its entity_id
        """
        pairs = json.loads(raw)
        if not isinstance(pairs, list):
            raise ValueError("Stored timelines must be a list of [entity_id, timeline] pairs")

        entries: dict[str, object] = {}
        for pair in pairs:
            if not isinstance(pair, list) or len(pair) != 2:
                raise ValueError(f"Malformed timeline entry: {pair!r}")
            entity_id, data = pair
            if entity_id in entries:
                raise ValueError(f"Duplicate timeline entry: {entity_id!r}")
            entries[entity_id] = data
        return timeline_registry_adapter.validate_python(entries)

    # ------------------------------------------------------------------
    # Registry access
    # ------------------------------------------------------------------

    def get(self, entity_id: str) -> Timeline | None:
        return self._timelines.get(entity_id)

    def put(self, timeline: Timeline) -> None:
        self._timelines[timeline.entity_id] = timeline

    def replace_all(self, timelines: dict[str, Timeline]) -> None:
        self._timelines = dict(timelines)

    def snapshot(self) -> dict[str, Timeline]:
        """Deep copy of the registry, for restore() after a failed write."""
        return {
            entity_id: timeline.model_copy(deep=True)
            for entity_id, timeline in self._timelines.items()
        }

    def restore(self, snapshot: dict[str, Timeline]) -> None:
        self._timelines = snapshot

    def clear(self) -> None:
        self._timelines.clear()

    def items(self) -> Iterator[tuple[str, Timeline]]:
        return iter(list(self._timelines.items()))

    def values(self) -> list[Timeline]:
        return list(self._timelines.values())

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._timelines

    def __len__(self) -> int:
        return len(self._timelines)
