"""Protocol definitions for the seams between search stages and their backends.

These protocols let services depend on contracts rather than on the SQLite
repository or a concrete cache client, which keeps them easy to fake in tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    import numpy as np

    from app.domain.models.search import SearchCandidate, SearchPage, SearchQuery
    from app.services.search_filters import SearchFilters


class CacheBackend(Protocol):
    """Key/value store with TTL and counters (Redis or in-process)."""

    @property
    def enabled(self) -> bool: ...

    async def get_json(self, *parts: str) -> Any | None: ...

    async def set_json(self, *, value: Any, ttl_seconds: int, parts: Iterable[str]) -> bool: ...

    async def incr(self, *parts: str, amount: int = 1) -> int | None: ...


class BookmarkSearchStore(Protocol):
    """Read operations the search engine issues against the bookmark store."""

    async def async_find_lexical_candidates(
        self, filters: SearchFilters, text: str, *, domain: str | None = None
    ) -> list[SearchCandidate]:
        """Return EXACT_TEXT and TAG candidates for ``text`` within ``filters``."""
        ...

    async def async_get_embedding_rows(
        self, filters: SearchFilters
    ) -> list[tuple[str, datetime, np.ndarray | None, np.ndarray | None]]:
        """Return (id, created_at, title_vector, summary_vector) for eligible bookmarks."""
        ...

    async def async_browse(
        self, filters: SearchFilters, *, before_id: str | None, limit: int
    ) -> list[str]:
        """Return ids of eligible bookmarks newest first, strictly older than ``before_id``."""
        ...

    async def async_get_bookmarks(
        self, owner_id: str, bookmark_ids: list[str]
    ) -> dict[str, dict[str, Any]]:
        """Load full rows (with ``tags``) for ``bookmark_ids`` owned by ``owner_id``."""
        ...


class QueryEmbedder(Protocol):
    async def generate_embedding(self, text: str) -> np.ndarray: ...


class BookmarkSearcher(Protocol):
    """Anything that resolves a normalized query into a page."""

    async def search(self, query: SearchQuery, *, correlation_id: str | None = None) -> SearchPage: ...
