"""Semantic retrieval path: cosine distance against stored bookmark embeddings."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import numpy as np

from app.domain.models.bookmark import MatchType
from app.domain.models.search import SearchCandidate
from app.services.search_ranking import rank_candidates

if TYPE_CHECKING:
    import datetime as dt

    from app.protocols import BookmarkSearchStore, QueryEmbedder
    from app.services.search_filters import SearchFilters

    EmbeddingRow = tuple[str, dt.datetime, np.ndarray | None, np.ndarray | None]

logger = logging.getLogger(__name__)


def cosine_distance(query: np.ndarray, vector: np.ndarray | None) -> float | None:
    """``1 - cos(query, vector)`` in float64; None when undefined."""
    if vector is None or vector.shape != query.shape:
        return None
    query64 = query.astype(np.float64, copy=False)
    vector64 = vector.astype(np.float64, copy=False)
    norm = float(np.linalg.norm(query64) * np.linalg.norm(vector64))
    if norm == 0.0:
        return None
    return 1.0 - float(np.dot(query64, vector64)) / norm


class VectorSearchService:
    """Semantic search using vector embeddings.

    A bookmark's distance is the smaller of its title and summary distances.
    Bookmarks with distance <= ``matching_distance`` are kept (inclusive).
    """

    def __init__(
        self,
        store: BookmarkSearchStore,
        embedder: QueryEmbedder,
        *,
        candidate_limit: int = 500,
    ) -> None:
        if candidate_limit <= 0:
            msg = "candidate_limit must be positive"
            raise ValueError(msg)
        self._store = store
        self._embedder = embedder
        self._candidate_limit = candidate_limit

    async def search(
        self,
        text: str,
        *,
        filters: SearchFilters,
        matching_distance: float,
        correlation_id: str | None = None,
    ) -> list[SearchCandidate]:
        if not text or not text.strip():
            return []

        embedding = await self._embedder.generate_embedding(text.strip())
        rows = await self._store.async_get_embedding_rows(filters)
        if not rows:
            return []

        candidates = await asyncio.to_thread(
            self._score_rows, np.asarray(embedding), rows, matching_distance
        )

        logger.info(
            "vector_search_completed",
            extra={
                "cid": correlation_id,
                "scanned": len(rows),
                "results": len(candidates),
                "matching_distance": matching_distance,
            },
        )
        return candidates

    def _score_rows(
        self,
        query: np.ndarray,
        rows: list[EmbeddingRow],
        matching_distance: float,
    ) -> list[SearchCandidate]:
        query = query.reshape(-1)
        candidates: list[SearchCandidate] = []
        skipped = 0
        for bookmark_id, created_at, title_vector, summary_vector in rows:
            distances = [
                d
                for d in (cosine_distance(query, title_vector), cosine_distance(query, summary_vector))
                if d is not None
            ]
            if not distances:
                skipped += 1
                continue
            distance = min(distances)
            if distance <= matching_distance:
                candidates.append(
                    SearchCandidate(
                        bookmark_id=bookmark_id,
                        match_type=MatchType.SEMANTIC,
                        created_at=created_at,
                        distance=distance,
                    )
                )

        if skipped:
            logger.debug("vector_rows_skipped", extra={"count": skipped, "dims": int(query.size)})
        return rank_candidates(candidates)[: self._candidate_limit]
