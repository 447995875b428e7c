"""End-to-end search behaviour against a real SQLite store."""

from __future__ import annotations

import asyncio
import json

import numpy as np
import peewee
import pytest

from app.di.search import build_search_container
from app.domain.exceptions.domain_exceptions import SearchValidationError
from app.domain.models.bookmark import BookmarkStatus, BookmarkType
from app.services.embedding_service import deserialize_embedding, serialize_embedding
from app.services.hybrid_search_service import HybridSearchService
from app.services.lexical_search_service import LexicalSearchService
from app.services.search_query import SearchContext, normalize_search_query
from app.services.vector_search_service import VectorSearchService, cosine_distance
from tests.conftest import FakeEmbedder, at, make_config, unit


@pytest.fixture
async def other_owner(users) -> str:
    return await users.async_create_user(name="Grace")


@pytest.fixture
async def scenario(owner, create_bookmark) -> dict[str, str]:
    """Three bookmarks: two articles and a video, two of them tagged js."""
    a = await create_bookmark(
        owner,
        "https://example.com/tutorials/1",
        title="React Tutorial",
        type=BookmarkType.ARTICLE,
        tags=["js"],
        created_at=at(0),
    )
    b = await create_bookmark(
        owner,
        "https://example.com/recipes/2",
        title="Cooking Pasta",
        type=BookmarkType.ARTICLE,
        created_at=at(1),
    )
    c = await create_bookmark(
        owner,
        "https://youtube.com/watch?v=3",
        title="React Video",
        type=BookmarkType.YOUTUBE,
        tags=["js"],
        created_at=at(2),
    )
    return {"A": a, "B": b, "C": c}


def hit_ids(page) -> list[str]:
    return [hit.id for hit in page.bookmarks]


# ----------------------------------------------------------------- scenarios


@pytest.mark.asyncio
async def test_text_with_type_filter_returns_only_matching_article(container, owner, scenario):
    page = await container.search.search(owner, {"query": "react", "types": ["ARTICLE"]})

    assert hit_ids(page) == [scenario["A"]]
    assert page.bookmarks[0].match_type == "EXACT_TEXT"
    assert page.bookmarks[0].score == 1.0
    assert page.has_more is False


@pytest.mark.asyncio
async def test_tag_filter_without_text_browses_newest_first(container, owner, scenario):
    page = await container.search.search(owner, {"tags": ["js"]})

    assert hit_ids(page) == [scenario["C"], scenario["A"]]
    assert [hit.match_type for hit in page.bookmarks] == ["TAG", "TAG"]
    assert page.bookmarks[0].matched_tags == ("js",)


@pytest.mark.asyncio
async def test_tag_filter_pages_one_at_a_time(container, owner, scenario):
    first = await container.search.search(owner, {"tags": ["js"], "limit": 1})

    assert hit_ids(first) == [scenario["C"]]
    assert first.has_more is True
    assert first.next_cursor == scenario["C"]

    second = await container.search.search(
        owner, {"tags": ["js"], "limit": 1, "cursor": first.next_cursor}
    )

    assert hit_ids(second) == [scenario["A"]]
    assert second.has_more is False
    assert second.next_cursor == scenario["A"]


@pytest.mark.asyncio
async def test_browse_without_filters_has_no_match_type(container, owner, scenario):
    page = await container.search.search(owner, {})

    assert hit_ids(page) == [scenario["C"], scenario["B"], scenario["A"]]
    assert {hit.match_type for hit in page.bookmarks} == {None}
    assert {hit.score for hit in page.bookmarks} == {0.0}


@pytest.mark.asyncio
async def test_empty_result_has_no_cursor(container, owner, scenario):
    page = await container.search.search(owner, {"query": "kubernetes"})

    assert page.bookmarks == ()
    assert page.has_more is False
    assert page.next_cursor is None


# ----------------------------------------------------------------- isolation


@pytest.mark.asyncio
async def test_other_owners_and_unready_bookmarks_are_invisible(
    container, owner, other_owner, create_bookmark
):
    mine = await create_bookmark(owner, "https://example.com/mine", title="Rust book")
    await create_bookmark(other_owner, "https://example.com/theirs", title="Rust book")
    await create_bookmark(
        owner, "https://example.com/pending", title="Rust book", status=BookmarkStatus.PENDING
    )

    ranked = await container.search.search(owner, {"query": "rust"})
    browsed = await container.search.search(owner, {})

    assert hit_ids(ranked) == [mine]
    assert hit_ids(browsed) == [mine]


# ----------------------------------------------------------------- ranking


@pytest.mark.asyncio
async def test_exact_text_outranks_tag_outranks_semantic(db, cache_backend, owner, create_bookmark):
    embedder = FakeEmbedder({"python": unit(1, 0, 0)})
    container = build_search_container(
        make_config(db.path), db=db, embedder=embedder, cache_backend=cache_backend
    )
    exact = await create_bookmark(
        owner, "https://example.com/1", title="Python tips", created_at=at(0)
    )
    tagged = await create_bookmark(
        owner, "https://example.com/2", title="Snakes", tags=["Python"], created_at=at(5)
    )
    semantic = await create_bookmark(
        owner,
        "https://example.com/3",
        title="Interpreters",
        title_embedding=unit(1, 0.05, 0),
        created_at=at(10),
    )

    page = await container.search.search(owner, {"query": "python"})

    assert hit_ids(page) == [exact, tagged, semantic]
    assert [hit.match_type for hit in page.bookmarks] == ["EXACT_TEXT", "TAG", "SEMANTIC"]
    assert page.bookmarks[1].matched_tags == ("Python",)
    assert 0.9 < page.bookmarks[2].score < 1.0


@pytest.mark.asyncio
async def test_bookmark_matching_both_paths_keeps_exact_text(
    db, cache_backend, owner, create_bookmark
):
    embedder = FakeEmbedder({"python": unit(1, 0, 0)})
    container = build_search_container(
        make_config(db.path), db=db, embedder=embedder, cache_backend=cache_backend
    )
    both = await create_bookmark(
        owner, "https://example.com/1", title="Python", title_embedding=unit(1, 0, 0)
    )

    page = await container.search.search(owner, {"query": "python"})

    assert hit_ids(page) == [both]
    assert page.bookmarks[0].match_type == "EXACT_TEXT"


@pytest.mark.asyncio
async def test_semantic_threshold_is_inclusive(db, cache_backend, owner, create_bookmark):
    query_vector = unit(1, 0, 0)
    near_vector = unit(0.7, 0.71, 0)
    far_vector = unit(0.69, 0.72, 0)
    stored = deserialize_embedding(serialize_embedding(near_vector))
    threshold = cosine_distance(query_vector, stored)
    assert threshold is not None and 0.1 <= threshold <= 2.0

    container = build_search_container(
        make_config(db.path),
        db=db,
        embedder=FakeEmbedder({"zzz": query_vector}),
        cache_backend=cache_backend,
    )
    near = await create_bookmark(owner, "https://example.com/near", summary_embedding=near_vector)
    await create_bookmark(owner, "https://example.com/far", summary_embedding=far_vector)

    page = await container.search.search(owner, {"query": "zzz", "matchingDistance": threshold})

    assert hit_ids(page) == [near]
    assert page.bookmarks[0].match_type == "SEMANTIC"


@pytest.mark.asyncio
async def test_smaller_of_title_and_summary_distance_is_used(
    db, cache_backend, owner, create_bookmark
):
    container = build_search_container(
        make_config(db.path),
        db=db,
        embedder=FakeEmbedder({"zzz": unit(1, 0, 0)}),
        cache_backend=cache_backend,
    )
    bookmark_id = await create_bookmark(
        owner,
        "https://example.com/x",
        title_embedding=unit(0, 1, 0),
        summary_embedding=unit(1, 0, 0),
    )

    page = await container.search.search(owner, {"query": "zzz"})

    assert hit_ids(page) == [bookmark_id]
    assert page.bookmarks[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_domain_query_matches_bare_host(container, owner, create_bookmark):
    repo = await create_bookmark(owner, "https://github.com/pallets/flask", title="Flask")
    await create_bookmark(owner, "https://gitlab.com/x/y", title="Elsewhere")

    page = await container.search.search(owner, {"query": "https://www.github.com/"})

    assert hit_ids(page) == [repo]


@pytest.mark.asyncio
async def test_text_match_is_case_and_unicode_insensitive(container, owner, create_bookmark):
    bookmark_id = await create_bookmark(
        owner, "https://example.com/s", title="STRASSE im Überblick"
    )

    page = await container.search.search(owner, {"query": "überblick"})

    assert hit_ids(page) == [bookmark_id]


# --------------------------------------------------------------- pagination


@pytest.mark.asyncio
async def test_ranked_pages_cover_every_match_once_despite_ties(container, owner, create_bookmark):
    expected = []
    for i in range(5):
        expected.append(
            await create_bookmark(
                owner, f"https://example.com/n{i}", title="Note", created_at=at(0)
            )
        )
    for i in range(4):
        expected.append(
            await create_bookmark(
                owner, f"https://example.com/t{i}", title="Other", tags=["notes"], created_at=at(0)
            )
        )

    seen: list[str] = []
    cursor = None
    for _ in range(10):
        params = {"query": "note", "limit": 2}
        if cursor:
            params["cursor"] = cursor
        page = await container.search.search(owner, params)
        seen.extend(hit_ids(page))
        if not page.has_more:
            break
        cursor = page.next_cursor

    assert len(seen) == len(set(seen)) == 9
    assert set(seen) == set(expected)
    # exact text matches first, each group newest id first on equal timestamps
    assert seen[:5] == sorted(expected[:5], reverse=True)
    assert seen[5:] == sorted(expected[5:], reverse=True)


@pytest.mark.asyncio
async def test_ranked_cursor_survives_deleted_anchor(container, bookmarks, owner, create_bookmark):
    ids = [
        await create_bookmark(owner, f"https://example.com/{i}", title="Guide", created_at=at(i))
        for i in range(4)
    ]
    first = await container.search.search(owner, {"query": "guide", "limit": 2})
    assert hit_ids(first) == [ids[3], ids[2]]

    await bookmarks.async_delete_bookmark(owner, ids[2])
    second = await container.search.search(
        owner, {"query": "guide", "limit": 2, "cursor": first.next_cursor}
    )

    assert hit_ids(second) == [ids[1], ids[0]]
    assert second.has_more is False


@pytest.mark.asyncio
async def test_malformed_cursor_is_a_validation_error(container, owner):
    with pytest.raises(SearchValidationError):
        await container.search.search(owner, {"query": "x", "cursor": "rk1.@@@"})


@pytest.mark.asyncio
async def test_browse_cursor_reused_with_query_text_is_rejected(container, owner, scenario):
    browse = await container.search.search(owner, {"tags": ["js"], "limit": 1})
    assert browse.next_cursor == scenario["C"]

    with pytest.raises(SearchValidationError) as excinfo:
        await container.search.search(
            owner, {"query": "pasta", "limit": 1, "cursor": browse.next_cursor}
        )

    assert excinfo.value.details == {"field": "cursor"}


@pytest.mark.asyncio
async def test_repeated_search_is_byte_identical(db, owner, scenario):
    cfg = make_config(db.path)
    cached = build_search_container(cfg, db=db, embedder=FakeEmbedder())
    uncached = HybridSearchService(
        cached.bookmarks,
        LexicalSearchService(cached.bookmarks),
        VectorSearchService(cached.bookmarks, FakeEmbedder()),
    )
    query = normalize_search_query(
        owner, {"query": "react"}, context=SearchContext.APP, config=cfg.search
    )

    def dump(page) -> str:
        return json.dumps(page.to_dict(), sort_keys=True)

    first = dump(await cached.search.search(owner, {"query": "react"}))
    from_cache = dump(await cached.search.search(owner, {"query": "react"}))
    direct = dump(await uncached.search(query))

    assert first == from_cache == direct


# ------------------------------------------------------------------ privacy


@pytest.mark.asyncio
async def test_public_context_hides_private_flags(container, owner, create_bookmark):
    await create_bookmark(owner, "https://example.com/p", title="Shared", starred=True, read=True)

    page = await container.search.search(owner, {"query": "shared"}, context=SearchContext.PUBLIC)
    own = await container.search.search(owner, {"query": "shared"})

    assert (page.bookmarks[0].starred, page.bookmarks[0].read) == (False, False)
    assert (own.bookmarks[0].starred, own.bookmarks[0].read) == (True, True)


@pytest.mark.asyncio
async def test_special_filters_combine_with_other_categories(container, owner, create_bookmark):
    starred = await create_bookmark(
        owner,
        "https://example.com/1",
        title="A",
        type=BookmarkType.ARTICLE,
        starred=True,
        read=True,
    )
    unread = await create_bookmark(
        owner, "https://example.com/2", title="B", type=BookmarkType.ARTICLE
    )
    await create_bookmark(owner, "https://example.com/3", title="C", type=BookmarkType.PDF)
    await create_bookmark(
        owner, "https://example.com/4", title="D", type=BookmarkType.ARTICLE, read=True
    )

    page = await container.search.search(
        owner, {"types": "ARTICLE", "specialFilters": "STAR,UNREAD"}
    )

    assert hit_ids(page) == [unread, starred]


# ------------------------------------------------------------- degradation


@pytest.mark.asyncio
async def test_slow_embedding_degrades_to_lexical(db, cache_backend, owner, create_bookmark):
    embedder = FakeEmbedder({"rust": unit(1, 0, 0)}, delay=1.0)
    container = build_search_container(
        make_config(db.path, search={"semantic_timeout_sec": 0.05}),
        db=db,
        embedder=embedder,
        cache_backend=cache_backend,
    )
    lexical = await create_bookmark(owner, "https://example.com/1", title="Rust")
    await create_bookmark(owner, "https://example.com/2", title_embedding=unit(1, 0, 0))

    page = await asyncio.wait_for(container.search.search(owner, {"query": "rust"}), timeout=0.9)

    assert hit_ids(page) == [lexical]
    assert embedder.calls == ["rust"]


class _CancellationAwareEmbedder(FakeEmbedder):
    def __init__(self) -> None:
        super().__init__(delay=5.0)
        self.started = asyncio.Event()
        self.cancelled = asyncio.Event()

    async def generate_embedding(self, text: str) -> np.ndarray:
        self.started.set()
        try:
            return await super().generate_embedding(text)
        except asyncio.CancelledError:
            self.cancelled.set()
            raise


@pytest.mark.asyncio
async def test_cancelling_the_caller_cancels_the_semantic_path(
    db, cache_backend, owner, create_bookmark
):
    embedder = _CancellationAwareEmbedder()
    container = build_search_container(
        make_config(db.path, search={"semantic_timeout_sec": 10}),
        db=db,
        embedder=embedder,
        cache_backend=cache_backend,
    )
    await create_bookmark(owner, "https://example.com/1", title="Rust")

    task = asyncio.create_task(container.search.search(owner, {"query": "rust"}))
    await asyncio.wait_for(embedder.started.wait(), timeout=2)
    await asyncio.sleep(0.2)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=2)
    await asyncio.wait_for(embedder.cancelled.wait(), timeout=1)


@pytest.mark.asyncio
async def test_unavailable_embedding_model_degrades_to_lexical(
    db, cache_backend, owner, create_bookmark
):
    container = build_search_container(
        make_config(db.path), db=db, embedder=FakeEmbedder(fail=True), cache_backend=cache_backend
    )
    lexical = await create_bookmark(owner, "https://example.com/1", title="Rust")

    page = await container.search.search(owner, {"query": "rust"})

    assert hit_ids(page) == [lexical]


@pytest.mark.asyncio
async def test_semantic_disabled_skips_embedder(db, cache_backend, owner, create_bookmark):
    embedder = FakeEmbedder()
    container = build_search_container(
        make_config(db.path, search={"semantic_enabled": False}),
        db=db,
        embedder=embedder,
        cache_backend=cache_backend,
    )
    await create_bookmark(owner, "https://example.com/1", title="Rust")

    page = await container.search.search(owner, {"query": "rust"})

    assert len(page.bookmarks) == 1
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_store_failure_propagates(container, bookmarks, owner, monkeypatch):
    async def broken(*args, **kwargs):
        raise peewee.OperationalError("disk I/O error")

    monkeypatch.setattr(bookmarks, "async_find_lexical_candidates", broken)

    with pytest.raises(peewee.OperationalError):
        await container.search.search(owner, {"query": "anything"})


def test_semantic_timeout_must_be_positive(bookmarks) -> None:
    with pytest.raises(ValueError, match="semantic_timeout_sec"):
        HybridSearchService(bookmarks, LexicalSearchService(bookmarks), semantic_timeout_sec=0)


def test_vector_rows_with_mismatched_dimensions_are_skipped(bookmarks) -> None:
    service = VectorSearchService(bookmarks, FakeEmbedder())
    rows = [
        ("A", at(0), np.ones(4, dtype=np.float32), None),
        ("B", at(0), None, unit(1, 0, 0)),
        ("C", at(0), None, None),
    ]

    candidates = service._score_rows(unit(1, 0, 0), rows, 0.5)

    assert [c.bookmark_id for c in candidates] == ["B"]
