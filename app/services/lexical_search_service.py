"""Lexical retrieval path: substring matches on text fields and tag names."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.core.url_utils import extract_domain, looks_like_domain

if TYPE_CHECKING:
    from app.domain.models.search import SearchCandidate
    from app.protocols import BookmarkSearchStore
    from app.services.search_filters import SearchFilters

logger = logging.getLogger(__name__)


class LexicalSearchService:
    """Case-insensitive substring search over title, url, summary and tags.

    Domain-like queries (``github.com``, ``https://www.github.com/x``) also
    match bookmarks whose url contains the bare host.
    """

    def __init__(self, store: BookmarkSearchStore) -> None:
        self._store = store

    async def search(
        self,
        text: str,
        *,
        filters: SearchFilters,
        correlation_id: str | None = None,
    ) -> list[SearchCandidate]:
        if not text or not text.strip():
            return []

        text = text.strip()
        domain = extract_domain(text) if looks_like_domain(text) else None
        if domain == text.lower():
            domain = None

        candidates = await self._store.async_find_lexical_candidates(filters, text, domain=domain)

        logger.debug(
            "lexical_search_completed",
            extra={
                "cid": correlation_id,
                "query_length": len(text),
                "domain_query": bool(domain),
                "results": len(candidates),
            },
        )
        return candidates
