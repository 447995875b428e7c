"""In-process TTL cache with the same surface as RedisCache."""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.infrastructure.redis import redis_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MemoryCacheEntry:
    expires_at: float | None
    payload: str


class InMemoryCache:
    """Single-process cache used when Redis is disabled.

    Values are stored as JSON text so a hit returns a fresh copy, exactly as
    a Redis round trip would. Oldest entries are evicted past ``max_entries``.
    """

    def __init__(
        self,
        *,
        prefix: str = "bms",
        max_entries: int = 2_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._prefix = prefix
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, MemoryCacheEntry] = OrderedDict()
        # counters are kept apart so page eviction never resets them
        self._counters: dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return True

    def _key(self, parts: Iterable[str]) -> str:
        return redis_key(self._prefix, *parts)

    def _live_entry(self, key: str) -> MemoryCacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, entry: MemoryCacheEntry) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("memory_cache_evicted", extra={"key": evicted})

    async def get_json(self, *parts: str) -> Any | None:
        entry = self._live_entry(self._key(parts))
        if entry is None:
            return None
        return json.loads(entry.payload)

    async def set_json(self, *, value: Any, ttl_seconds: int, parts: Iterable[str]) -> bool:
        if ttl_seconds <= 0:
            return False
        key = self._key(parts)
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            logger.warning("memory_cache_encode_failed", extra={"key": key})
            return False
        self._store(key, MemoryCacheEntry(expires_at=self._clock() + ttl_seconds, payload=payload))
        return True

    async def incr(self, *parts: str, amount: int = 1) -> int | None:
        key = self._key(parts)
        value = self._counters.get(key, 0) + amount
        self._counters[key] = value
        return value
