"""Bookmark search combining the lexical and semantic retrieval paths."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from typing import TYPE_CHECKING, Any

from app.domain.exceptions.domain_exceptions import EmbeddingUnavailableError, SearchValidationError
from app.domain.models.bookmark import MatchType
from app.domain.models.search import SearchHit, SearchPage
from app.services.search_filters import SearchFilters
from app.services.search_pagination import (
    CursorError,
    CursorPosition,
    decode_cursor,
    encode_rank_cursor,
    split_page,
    window_after,
)
from app.services.search_ranking import RankKey, merge_candidates, rank_candidates, score_for

if TYPE_CHECKING:
    from collections.abc import Iterable

    from app.domain.models.search import SearchCandidate, SearchQuery
    from app.protocols import BookmarkSearchStore
    from app.services.lexical_search_service import LexicalSearchService
    from app.services.vector_search_service import VectorSearchService

logger = logging.getLogger(__name__)


class HybridSearchService:
    """Resolve a normalized query into one page of ranked bookmarks.

    With free text, the lexical and semantic paths run concurrently and are
    merged by match precedence. Without it, results are browsed newest first.
    """

    def __init__(
        self,
        store: BookmarkSearchStore,
        lexical: LexicalSearchService,
        vector: VectorSearchService | None = None,
        *,
        semantic_timeout_sec: float = 2.0,
    ) -> None:
        if semantic_timeout_sec <= 0:
            msg = "semantic_timeout_sec must be positive"
            raise ValueError(msg)

        self._store = store
        self._lexical = lexical
        self._vector = vector
        self._semantic_timeout = semantic_timeout_sec

    async def search(self, query: SearchQuery, *, correlation_id: str | None = None) -> SearchPage:
        started = time.perf_counter()
        filters = SearchFilters.from_query(query)
        cursor = self._decode_cursor(query.cursor)

        if query.has_text:
            page = await self._search_ranked(query, filters, cursor, correlation_id)
        else:
            page = await self._browse(query, filters, cursor)

        logger.info(
            "bookmark_search_completed",
            extra={
                "cid": correlation_id,
                "mode": "ranked" if query.has_text else "browse",
                "filters": str(filters),
                "limit": query.limit,
                "returned_results": len(page.bookmarks),
                "has_more": page.has_more,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return page

    @staticmethod
    def _decode_cursor(token: str | None) -> CursorPosition | None:
        if not token:
            return None
        try:
            return decode_cursor(token)
        except CursorError as exc:
            msg = "Invalid pagination cursor"
            raise SearchValidationError(msg, details={"field": "cursor"}) from exc

    async def _browse(
        self, query: SearchQuery, filters: SearchFilters, cursor: CursorPosition | None
    ) -> SearchPage:
        window = await self._store.async_browse(
            filters,
            before_id=cursor.bookmark_id if cursor else None,
            limit=query.limit + 1,
        )
        page_ids, has_more = split_page(window, query.limit)
        rows = await self._store.async_get_bookmarks(query.owner_id, page_ids)

        hits: list[SearchHit] = []
        for bookmark_id in page_ids:
            row = rows.get(bookmark_id)
            if row is None or not filters.matches(row):
                continue
            matched = filters.matched_tags(row["tags"])
            match_type = MatchType.TAG if matched else None
            hits.append(self._to_hit(row, match_type, 0.0, matched, hide_private=query.hide_private_flags))

        return SearchPage(
            bookmarks=tuple(hits),
            has_more=has_more,
            next_cursor=page_ids[-1] if page_ids else None,
        )

    async def _search_ranked(
        self,
        query: SearchQuery,
        filters: SearchFilters,
        cursor: CursorPosition | None,
        correlation_id: str | None,
    ) -> SearchPage:
        text = query.text or ""
        lexical_task = asyncio.create_task(
            self._lexical.search(text, filters=filters, correlation_id=correlation_id)
        )
        semantic_task = asyncio.create_task(
            self._semantic_candidates(query, filters, correlation_id)
        )
        try:
            lexical, semantic = await asyncio.gather(lexical_task, semantic_task)
        finally:
            for task in (lexical_task, semantic_task):
                if not task.done():
                    task.cancel()

        ranked = rank_candidates(merge_candidates(lexical, semantic))
        try:
            window = window_after(ranked, key=RankKey.of, cursor=cursor, limit=query.limit)
        except CursorError as exc:
            logger.info("search_cursor_not_in_ranking", extra={"cid": correlation_id})
            msg = "Pagination cursor does not match this query"
            raise SearchValidationError(msg, details={"field": "cursor"}) from exc
        page, has_more = split_page(window, query.limit)
        rows = await self._store.async_get_bookmarks(query.owner_id, [c.bookmark_id for c in page])

        hits: list[SearchHit] = []
        for candidate in page:
            row = rows.get(candidate.bookmark_id)
            if row is None or not filters.matches(row):
                continue
            matched = self._union(candidate.matched_tags, filters.matched_tags(row["tags"]))
            hits.append(
                self._to_hit(
                    row,
                    candidate.match_type,
                    candidate.distance,
                    matched,
                    hide_private=query.hide_private_flags,
                )
            )

        logger.debug(
            "ranked_candidates_merged",
            extra={
                "cid": correlation_id,
                "lexical_results": len(lexical),
                "semantic_results": len(semantic),
                "combined_unique": len(ranked),
            },
        )
        return SearchPage(
            bookmarks=tuple(hits),
            has_more=has_more,
            next_cursor=encode_rank_cursor(RankKey.of(page[-1])) if page else None,
        )

    async def _semantic_candidates(
        self, query: SearchQuery, filters: SearchFilters, correlation_id: str | None
    ) -> list[SearchCandidate]:
        """Semantic path under a deadline; degrades to no candidates instead of failing."""
        if self._vector is None or not query.text:
            return []
        try:
            return await asyncio.wait_for(
                self._vector.search(
                    query.text,
                    filters=filters,
                    matching_distance=query.matching_distance,
                    correlation_id=correlation_id,
                ),
                timeout=self._semantic_timeout,
            )
        except TimeoutError:
            logger.warning(
                "semantic_search_degraded",
                extra={"cid": correlation_id, "reason": "timeout", "timeout": self._semantic_timeout},
            )
        except EmbeddingUnavailableError as exc:
            logger.warning(
                "semantic_search_degraded",
                extra={"cid": correlation_id, "reason": "embedding_unavailable", "error": exc.message},
            )
        return []

    @staticmethod
    def _union(first: Iterable[str], second: Iterable[str]) -> list[str]:
        return list(dict.fromkeys([*first, *second]))

    @staticmethod
    def _to_hit(
        row: dict[str, Any],
        match_type: MatchType | None,
        distance: float,
        matched_tags: list[str],
        *,
        hide_private: bool,
    ) -> SearchHit:
        return SearchHit(
            id=row["id"],
            url=row["url"],
            title=row.get("title"),
            summary=row.get("summary"),
            type=row.get("type"),
            status=row["status"],
            starred=False if hide_private else bool(row.get("starred")),
            read=False if hide_private else bool(row.get("read")),
            preview=row.get("preview"),
            favicon_url=row.get("favicon_url"),
            og_image_url=row.get("og_image_url"),
            og_description=row.get("og_description"),
            created_at=_format_timestamp(row["created_at"]),
            metadata=row.get("metadata"),
            matched_tags=tuple(matched_tags),
            score=score_for(match_type, distance),
            match_type=match_type.value if match_type else None,
        )


def _format_timestamp(value: Any) -> str:
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=dt.UTC)
        return value.isoformat()
    return str(value)
