"""Property-based tests for ranked cursor paging.

Small value pools for distance and timestamps force plenty of ties so the
id tie-break is exercised on most examples.
"""

from __future__ import annotations

import datetime as dt

from hypothesis import given, settings
from hypothesis import strategies as st

from app.domain.models.bookmark import MatchType
from app.domain.models.search import SearchCandidate
from app.services.search_pagination import (
    decode_cursor,
    encode_rank_cursor,
    split_page,
    window_after,
)
from app.services.search_ranking import RankKey, merge_candidates, rank_candidates

T0 = dt.datetime(2024, 5, 1, 12, 0, 0)

match_types = st.sampled_from(list(MatchType))
distances = st.sampled_from([0.0, 0.25, 0.5, 0.75])
minutes = st.integers(min_value=0, max_value=3)


@st.composite
def candidate_lists(draw):
    count = draw(st.integers(min_value=0, max_value=25))
    candidates = []
    for index in range(count):
        match_type = draw(match_types)
        distance = draw(distances) if match_type is MatchType.SEMANTIC else 0.0
        candidates.append(
            SearchCandidate(
                bookmark_id=f"B{index:03d}",
                match_type=match_type,
                created_at=T0 + dt.timedelta(minutes=draw(minutes)),
                distance=distance,
            )
        )
    return candidates


def _walk(ranked, limit):
    seen = []
    cursor = None
    for _ in range(len(ranked) + 2):
        page, has_more = split_page(
            window_after(ranked, key=RankKey.of, cursor=cursor, limit=limit), limit
        )
        seen.extend(c.bookmark_id for c in page)
        if not has_more:
            return seen
        cursor = decode_cursor(encode_rank_cursor(RankKey.of(page[-1])))
    msg = "paging did not terminate"
    raise AssertionError(msg)


@settings(max_examples=200)
@given(candidates=candidate_lists(), limit=st.integers(min_value=1, max_value=7))
def test_cursor_walk_visits_every_candidate_once_in_rank_order(candidates, limit):
    ranked = rank_candidates(candidates)

    assert _walk(ranked, limit) == [c.bookmark_id for c in ranked]


@given(candidates=candidate_lists())
def test_ranking_ignores_input_order(candidates):
    forward = [c.bookmark_id for c in rank_candidates(candidates)]
    backward = [c.bookmark_id for c in rank_candidates(list(reversed(candidates)))]

    assert forward == backward


@given(candidates=candidate_lists())
def test_merge_keeps_one_entry_per_bookmark(candidates):
    merged = merge_candidates(candidates, candidates)

    assert sorted(c.bookmark_id for c in merged) == sorted({c.bookmark_id for c in candidates})


@given(
    precedence=st.integers(min_value=0, max_value=2),
    distance=st.floats(min_value=0.0, max_value=2.0, allow_nan=False),
    offset=st.integers(min_value=-10_000, max_value=10_000),
)
def test_rank_cursor_round_trips_the_full_key(precedence, distance, offset):
    created_at = T0 + dt.timedelta(seconds=offset)
    key = RankKey(precedence, distance, created_at, "01HX0000000000000000000000")

    position = decode_cursor(encode_rank_cursor(key))

    assert position.rank_key == key
    assert position.bookmark_id == key.bookmark_id
