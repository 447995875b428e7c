"""Cache layer in front of the bookmark search pipeline."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.core.async_utils import SingleFlight

if TYPE_CHECKING:
    from app.domain.models.search import SearchPage, SearchQuery
    from app.infrastructure.cache.search_cache import SearchResultCache
    from app.protocols import BookmarkSearcher

logger = logging.getLogger(__name__)


class CachedSearchService:
    """Serve pages from the cache, computing each missing page at most once at a time.

    Cache keys embed the owner's epoch, so ``invalidate_owner`` makes every
    page cached for that owner unreachable in one step. If the epoch cannot
    be read the cache is bypassed, but identical concurrent misses are still
    coalesced.
    """

    def __init__(self, engine: BookmarkSearcher, cache: SearchResultCache | None = None) -> None:
        self._engine = engine
        self._cache = cache
        self._single_flight: SingleFlight[SearchPage] = SingleFlight()

    @property
    def cache_enabled(self) -> bool:
        return bool(self._cache and self._cache.enabled)

    async def search(self, query: SearchQuery, *, correlation_id: str | None = None) -> SearchPage:
        if not self._cache or not self._cache.enabled:
            return await self._engine.search(query, correlation_id=correlation_id)

        epoch = await self._cache.current_epoch(query.owner_id)
        if epoch is None:
            logger.info("search_cache_bypassed", extra={"cid": correlation_id})
            key = f"bypass:{query.owner_id}:{self._cache.make_hash(query)}"
            return await self._single_flight.run(
                key, lambda: self._engine.search(query, correlation_id=correlation_id)
            )

        cached = await self._cache.get(query, epoch)
        if cached is not None:
            logger.debug("search_cache_hit", extra={"cid": correlation_id, "epoch": epoch})
            return cached

        key = ":".join(self._cache.key_parts(query, epoch))
        return await self._single_flight.run(
            key, lambda: self._compute_and_store(query, epoch, correlation_id)
        )

    async def _compute_and_store(
        self, query: SearchQuery, epoch: int, correlation_id: str | None
    ) -> SearchPage:
        page = await self._engine.search(query, correlation_id=correlation_id)
        if self._cache is not None:
            await self._cache.set(query, epoch, page)
        return page

    async def invalidate_owner(self, owner_id: str) -> None:
        """Make every cached page for ``owner_id`` stale."""
        if self._cache is not None:
            await self._cache.bump_epoch(owner_id)
