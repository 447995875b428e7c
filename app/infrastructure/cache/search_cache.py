"""Epoch-versioned cache of bookmark search pages.

Key pattern: {prefix}:search:{owner_id}:e{epoch}:{query_hash}
Epoch key:   {prefix}:search:epoch:{owner_id}

Every write to an owner's bookmarks or tags bumps that owner's epoch, so
pages cached before the write are never read again and simply expire.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING

from app.domain.models.search import SearchPage

if TYPE_CHECKING:
    from app.domain.models.search import SearchQuery
    from app.protocols import CacheBackend

logger = logging.getLogger(__name__)


class SearchResultCache:
    """Fail-open page cache; any backend error reads as a miss."""

    def __init__(self, backend: CacheBackend, *, ttl_seconds: int) -> None:
        self._backend = backend
        self._ttl = ttl_seconds

    @property
    def enabled(self) -> bool:
        return bool(self._backend.enabled and self._ttl > 0)

    @staticmethod
    def make_hash(query: SearchQuery) -> str:
        """SHA256 (first 32 chars) of the normalized query fingerprint."""
        fingerprint = json.dumps(
            query.fingerprint(), sort_keys=True, ensure_ascii=False, separators=(",", ":")
        )
        return hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()[:32]

    @staticmethod
    def key_parts(query: SearchQuery, epoch: int) -> tuple[str, ...]:
        return ("search", query.owner_id, f"e{epoch}", SearchResultCache.make_hash(query))

    async def current_epoch(self, owner_id: str) -> int | None:
        """Read the owner's epoch; None means the cache must be bypassed."""
        try:
            return await self._backend.incr("search", "epoch", owner_id, amount=0)
        except Exception as exc:
            logger.warning(
                "search_cache_epoch_read_failed",
                extra={"owner_id": owner_id, "error": str(exc)},
            )
            return None

    async def bump_epoch(self, owner_id: str) -> int | None:
        try:
            epoch = await self._backend.incr("search", "epoch", owner_id)
        except Exception as exc:
            logger.warning(
                "search_cache_epoch_bump_failed",
                extra={"owner_id": owner_id, "error": str(exc)},
            )
            return None
        logger.debug("search_cache_invalidated", extra={"owner_id": owner_id, "epoch": epoch})
        return epoch

    async def get(self, query: SearchQuery, epoch: int) -> SearchPage | None:
        parts = self.key_parts(query, epoch)
        try:
            cached = await self._backend.get_json(*parts)
        except Exception as exc:
            logger.warning("search_cache_get_failed", extra={"error": str(exc)})
            return None

        if not isinstance(cached, dict):
            return None
        try:
            return SearchPage.from_dict(cached)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("search_cache_decode_failed", extra={"error": str(exc)})
            return None

    async def set(self, query: SearchQuery, epoch: int, page: SearchPage) -> bool:
        try:
            return await self._backend.set_json(
                value=page.to_dict(),
                ttl_seconds=self._ttl,
                parts=self.key_parts(query, epoch),
            )
        except Exception as exc:
            logger.warning("search_cache_set_failed", extra={"error": str(exc)})
            return False
