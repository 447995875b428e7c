"""Merge candidates from both retrieval paths and order them."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from functools import cmp_to_key
from typing import TYPE_CHECKING

from app.domain.models.bookmark import MATCH_PRECEDENCE, MatchType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from app.domain.models.search import SearchCandidate


@dataclass(frozen=True, slots=True)
class RankKey:
    """Position of a candidate in the ranked ordering."""

    precedence: int
    distance: float
    created_at: dt.datetime
    bookmark_id: str

    @classmethod
    def of(cls, candidate: SearchCandidate) -> RankKey:
        return cls(
            precedence=MATCH_PRECEDENCE[candidate.match_type],
            distance=candidate.distance,
            created_at=candidate.created_at,
            bookmark_id=candidate.bookmark_id,
        )


def compare_rank_keys(a: RankKey, b: RankKey) -> int:
    """Negative when ``a`` ranks before ``b``.

    Match precedence, then ascending distance, then newest first, then id
    descending so that no two distinct bookmarks ever compare equal.
    """
    if a.precedence != b.precedence:
        return -1 if a.precedence < b.precedence else 1
    if a.distance != b.distance:
        return -1 if a.distance < b.distance else 1
    if a.created_at != b.created_at:
        return -1 if a.created_at > b.created_at else 1
    if a.bookmark_id != b.bookmark_id:
        return -1 if a.bookmark_id > b.bookmark_id else 1
    return 0


rank_sort_key = cmp_to_key(compare_rank_keys)


def _prefer(current: SearchCandidate, incoming: SearchCandidate) -> bool:
    """True when ``incoming`` should replace ``current`` for the same bookmark."""
    current_rank = MATCH_PRECEDENCE[current.match_type]
    incoming_rank = MATCH_PRECEDENCE[incoming.match_type]
    if incoming_rank != current_rank:
        return incoming_rank < current_rank
    return incoming.distance < current.distance


def merge_candidates(*paths: Iterable[SearchCandidate]) -> list[SearchCandidate]:
    """Deduplicate by bookmark id, keeping the highest-precedence match.

    Matched tags from every path are kept on the surviving candidate.
    """
    merged: dict[str, SearchCandidate] = {}
    tags: dict[str, list[str]] = {}
    for candidates in paths:
        for candidate in candidates:
            seen = tags.setdefault(candidate.bookmark_id, [])
            seen.extend(t for t in candidate.matched_tags if t not in seen)
            current = merged.get(candidate.bookmark_id)
            if current is None or _prefer(current, candidate):
                merged[candidate.bookmark_id] = candidate

    for bookmark_id, candidate in merged.items():
        candidate.matched_tags = tags[bookmark_id]
    return list(merged.values())


def rank_candidates(candidates: Iterable[SearchCandidate]) -> list[SearchCandidate]:
    return sorted(candidates, key=lambda c: rank_sort_key(RankKey.of(c)))


def score_for(match_type: MatchType | None, distance: float) -> float:
    """Display score: 1.0 for lexical matches, 1 - distance for semantic ones."""
    if match_type is None:
        return 0.0
    if match_type is not MatchType.SEMANTIC:
        return 1.0
    return min(1.0, max(0.0, 1.0 - distance))
