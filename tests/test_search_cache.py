"""Tests for the page cache, its backends and the cached search service."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import numpy as np
import pytest

from app.domain.models.search import SearchHit, SearchPage, SearchQuery
from app.infrastructure.cache.embedding_cache import EmbeddingCache
from app.infrastructure.cache.memory_cache import InMemoryCache
from app.infrastructure.cache.redis_cache import RedisCache
from app.infrastructure.cache.search_cache import SearchResultCache
from app.services.cached_search_service import CachedSearchService


class _FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self.store[key] = value
        self.ttls[key] = ex

    async def incrby(self, key: str, amount: int) -> int:
        value = int(self.store.get(key, 0)) + amount
        self.store[key] = str(value)
        return value


class _BrokenRedis:
    async def get(self, key: str) -> str | None:
        raise ConnectionError("redis down")

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        raise ConnectionError("redis down")

    async def incrby(self, key: str, amount: int) -> int:
        raise ConnectionError("redis down")


class _ManualClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class _CountingEngine:
    def __init__(self, *, delay: float = 0.0) -> None:
        self.calls = 0
        self.delay = delay

    async def search(self, query: SearchQuery, *, correlation_id: str | None = None) -> SearchPage:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return _page(f"{query.owner_id}-{self.calls}")


def _dummy_cfg(*, enabled: bool = True) -> SimpleNamespace:
    redis_cfg = SimpleNamespace(
        enabled=enabled,
        cache_enabled=True,
        required=False,
        prefix="test",
        cache_timeout_sec=0.1,
        search_cache_ttl_seconds=60,
        embedding_cache_ttl_seconds=120,
    )
    return SimpleNamespace(redis=redis_cfg)


def _page(bookmark_id: str) -> SearchPage:
    hit = SearchHit(
        id=bookmark_id,
        url=f"https://example.com/{bookmark_id}",
        title="Title",
        summary=None,
        type="ARTICLE",
        status="READY",
        starred=False,
        read=True,
        preview=None,
        favicon_url=None,
        og_image_url=None,
        og_description=None,
        created_at="2024-05-01T12:00:00+00:00",
        metadata={"k": "v"},
        matched_tags=("js",),
        score=1.0,
        match_type="EXACT_TEXT",
    )
    return SearchPage(bookmarks=(hit,), has_more=True, next_cursor=bookmark_id)


# ------------------------------------------------------------- InMemoryCache


@pytest.mark.asyncio
async def test_memory_cache_expires_entries_by_ttl():
    clock = _ManualClock()
    cache = InMemoryCache(prefix="t", clock=clock)

    assert await cache.set_json(value={"a": 1}, ttl_seconds=10, parts=("x",))
    assert await cache.get_json("x") == {"a": 1}

    clock.now += 10
    assert await cache.get_json("x") is None


@pytest.mark.asyncio
async def test_memory_cache_returns_copies_and_evicts_oldest():
    cache = InMemoryCache(prefix="t", max_entries=2)
    await cache.set_json(value={"n": 1}, ttl_seconds=60, parts=("a",))
    await cache.set_json(value={"n": 2}, ttl_seconds=60, parts=("b",))

    copy = await cache.get_json("b")
    copy["n"] = 99
    await cache.set_json(value={"n": 3}, ttl_seconds=60, parts=("c",))

    assert await cache.get_json("a") is None
    assert await cache.get_json("b") == {"n": 2}
    assert await cache.get_json("c") == {"n": 3}


@pytest.mark.asyncio
async def test_memory_cache_counters_survive_eviction():
    cache = InMemoryCache(prefix="t", max_entries=1)

    assert await cache.incr("epoch", "u1", amount=0) == 0
    assert await cache.incr("epoch", "u1") == 1
    await cache.set_json(value=1, ttl_seconds=60, parts=("a",))
    await cache.set_json(value=2, ttl_seconds=60, parts=("b",))

    assert await cache.incr("epoch", "u1", amount=0) == 1
    assert await cache.get_json("a") is None
    assert await cache.get_json("b") == 2


@pytest.mark.asyncio
async def test_memory_cache_rejects_unserializable_and_non_positive_ttl():
    cache = InMemoryCache()

    assert await cache.set_json(value={"a": object()}, ttl_seconds=60, parts=("a",)) is False
    assert await cache.set_json(value=1, ttl_seconds=0, parts=("a",)) is False


# ---------------------------------------------------------------- RedisCache


@pytest.mark.asyncio
async def test_redis_cache_set_get_roundtrip():
    cache = RedisCache(_dummy_cfg(), client=_FakeRedis())

    ok = await cache.set_json(value={"hello": "world"}, ttl_seconds=10, parts=("search", "abc"))

    assert ok
    assert await cache.get_json("search", "abc") == {"hello": "world"}
    assert cache._client.ttls["test:search:abc"] == 10


@pytest.mark.asyncio
async def test_redis_cache_incr_reads_with_zero_amount():
    cache = RedisCache(_dummy_cfg(), client=_FakeRedis())

    assert await cache.incr("search", "epoch", "u1", amount=0) == 0
    assert await cache.incr("search", "epoch", "u1") == 1
    assert await cache.incr("search", "epoch", "u1", amount=0) == 1


@pytest.mark.asyncio
async def test_redis_cache_fails_open():
    cache = RedisCache(_dummy_cfg(), client=_BrokenRedis())

    assert await cache.get_json("a") is None
    assert await cache.set_json(value=1, ttl_seconds=10, parts=("a",)) is False
    assert await cache.incr("a") is None


@pytest.mark.asyncio
async def test_disabled_redis_cache_never_connects():
    cache = RedisCache(_dummy_cfg(enabled=False), client=_FakeRedis())

    assert cache.enabled is False
    assert await cache.get_json("a") is None
    assert await cache.incr("a") is None


# ------------------------------------------------------------ EmbeddingCache


@pytest.mark.asyncio
async def test_embedding_cache_round_trip():
    cfg = _dummy_cfg()
    fake = _FakeRedis()
    cache = EmbeddingCache(RedisCache(cfg, client=fake), cfg)
    vector = np.array([0.25, -0.5, 1.0], dtype=np.float32)

    assert await cache.set("hello", "mini", vector)
    assert await cache.get("hello", "mini") == [0.25, -0.5, 1.0]
    assert await cache.get("hello", "other-model") is None
    assert set(fake.ttls.values()) == {120}


@pytest.mark.asyncio
async def test_embedding_cache_ignores_corrupt_entries():
    cfg = _dummy_cfg()
    fake = _FakeRedis()
    cache = EmbeddingCache(RedisCache(cfg, client=fake), cfg)
    key = f"test:qembed:v1:mini:{EmbeddingCache.hash_content('hello')}"

    fake.store[key] = '{"embedding": "***", "dimensions": 3}'
    assert await cache.get("hello", "mini") is None

    fake.store[key] = '{"embedding": "AACAPg==", "dimensions": 3}'
    assert await cache.get("hello", "mini") is None


# --------------------------------------------------------- SearchResultCache


def _query(owner_id: str = "u1", **overrides) -> SearchQuery:
    return SearchQuery(owner_id=owner_id, text="react", **overrides)


def test_cache_key_embeds_owner_and_epoch():
    parts = SearchResultCache.key_parts(_query(), 7)

    assert parts[:3] == ("search", "u1", "e7")
    assert len(parts[3]) == 32
    assert SearchResultCache.make_hash(_query()) != SearchResultCache.make_hash(_query(limit=5))


@pytest.mark.asyncio
async def test_search_cache_stores_pages_per_epoch():
    cache = SearchResultCache(InMemoryCache(), ttl_seconds=60)
    page = _page("A")

    assert await cache.set(_query(), 0, page)

    assert await cache.get(_query(), 0) == page
    assert await cache.get(_query(), 1) is None


@pytest.mark.asyncio
async def test_search_cache_with_zero_ttl_is_disabled():
    assert SearchResultCache(InMemoryCache(), ttl_seconds=0).enabled is False


# ------------------------------------------------------- CachedSearchService


@pytest.mark.asyncio
async def test_cached_service_serves_repeat_queries_from_cache():
    engine = _CountingEngine()
    service = CachedSearchService(engine, SearchResultCache(InMemoryCache(), ttl_seconds=60))

    first = await service.search(_query())
    second = await service.search(_query())

    assert engine.calls == 1
    assert first == second


@pytest.mark.asyncio
async def test_invalidate_owner_makes_cached_pages_stale():
    engine = _CountingEngine()
    service = CachedSearchService(engine, SearchResultCache(InMemoryCache(), ttl_seconds=60))

    await service.search(_query("u1"))
    await service.search(_query("u2"))
    await service.invalidate_owner("u1")
    refreshed = await service.search(_query("u1"))
    untouched = await service.search(_query("u2"))

    assert engine.calls == 3
    assert refreshed.bookmarks[0].id == "u1-3"
    assert untouched.bookmarks[0].id == "u2-2"


@pytest.mark.asyncio
async def test_concurrent_identical_misses_compute_once():
    engine = _CountingEngine(delay=0.05)
    service = CachedSearchService(engine, SearchResultCache(InMemoryCache(), ttl_seconds=60))

    pages = await asyncio.gather(*(service.search(_query()) for _ in range(5)))

    assert engine.calls == 1
    assert len({page.bookmarks[0].id for page in pages}) == 1


@pytest.mark.asyncio
async def test_unreadable_epoch_bypasses_cache():
    engine = _CountingEngine()
    cache = SearchResultCache(RedisCache(_dummy_cfg(), client=_BrokenRedis()), ttl_seconds=60)
    service = CachedSearchService(engine, cache)

    await service.search(_query())
    await service.search(_query())

    assert engine.calls == 2


@pytest.mark.asyncio
async def test_unreadable_epoch_still_coalesces_concurrent_misses():
    engine = _CountingEngine(delay=0.05)
    cache = SearchResultCache(RedisCache(_dummy_cfg(), client=_BrokenRedis()), ttl_seconds=60)
    service = CachedSearchService(engine, cache)

    pages = await asyncio.gather(*(service.search(_query()) for _ in range(5)))

    assert engine.calls == 1
    assert len({page.bookmarks[0].id for page in pages}) == 1


@pytest.mark.asyncio
async def test_write_through_repository_invalidates_container_cache(
    container, owner, create_bookmark
):
    await create_bookmark(owner, "https://example.com/1", title="Rust")
    before = await container.search.search(owner, {"query": "rust"})

    await create_bookmark(owner, "https://example.com/2", title="Rust again")
    after = await container.search.search(owner, {"query": "rust"})

    assert len(before.bookmarks) == 1
    assert len(after.bookmarks) == 2
