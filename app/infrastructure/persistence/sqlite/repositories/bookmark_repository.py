"""SQLite implementation of the bookmark store used by search.

Reads serve the search engine. Writes exist for seeding and maintenance and
notify a listener with the owner id so cached search pages can be invalidated.
"""

from __future__ import annotations

import operator
from functools import reduce
from typing import TYPE_CHECKING, Any

import peewee
from peewee import fn

from app.db.models import Bookmark, BookmarkTag, Tag, _utcnow, to_naive_utc
from app.domain.models.bookmark import MatchType, SpecialFilter, TagType
from app.domain.models.search import SearchCandidate
from app.infrastructure.persistence.sqlite.base import SqliteBaseRepository
from app.services.embedding_service import deserialize_embedding, serialize_embedding

if TYPE_CHECKING:
    import datetime as dt
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    import numpy as np

    from app.db.session import DatabaseSessionManager
    from app.services.search_filters import SearchFilters

    OwnerWriteListener = Callable[[str], Awaitable[Any]]

_UPDATABLE_FIELDS = frozenset(
    {
        "url",
        "title",
        "summary",
        "preview",
        "type",
        "status",
        "starred",
        "read",
        "favicon_url",
        "og_image_url",
        "og_description",
        "metadata",
        "title_embedding",
        "summary_embedding",
    }
)
_EMBEDDING_FIELDS = frozenset({"title_embedding", "summary_embedding"})


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _prepare_fields(fields: dict[str, Any]) -> dict[str, Any]:
    prepared: dict[str, Any] = {}
    for name, value in fields.items():
        if name in _EMBEDDING_FIELDS and value is not None and not isinstance(value, bytes):
            value = serialize_embedding(value)
        prepared[name] = _enum_value(value)
    return prepared


def _filter_conditions(filters: SearchFilters) -> peewee.Expression:
    """Translate search filters into a WHERE clause over Bookmark."""
    conditions = (Bookmark.owner == filters.owner_id) & Bookmark.status.in_(
        [s.value for s in filters.statuses]
    )

    if filters.types:
        conditions &= Bookmark.type.in_([t.value for t in filters.types])

    if filters.tags:
        tagged = (
            BookmarkTag.select(BookmarkTag.bookmark)
            .join(Tag, on=(BookmarkTag.tag == Tag.id))
            .where((Tag.owner == filters.owner_id) & fn.casefold(Tag.name).in_(sorted(filters.folded_tags)))
        )
        conditions &= Bookmark.id.in_(tagged)

    if filters.special_filters:
        special = {
            SpecialFilter.STAR: Bookmark.starred == True,  # noqa: E712
            SpecialFilter.READ: Bookmark.read == True,  # noqa: E712
            SpecialFilter.UNREAD: Bookmark.read == False,  # noqa: E712
        }
        conditions &= reduce(operator.or_, [special[s] for s in filters.special_filters])

    return conditions


class SqliteBookmarkRepositoryAdapter(SqliteBaseRepository):
    """Adapter for bookmark reads (search) and writes (maintenance)."""

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        *,
        on_owner_write: OwnerWriteListener | None = None,
    ) -> None:
        super().__init__(session_manager)
        self._on_owner_write = on_owner_write

    def set_write_listener(self, listener: OwnerWriteListener | None) -> None:
        self._on_owner_write = listener

    async def _notify_write(self, owner_id: str) -> None:
        if self._on_owner_write is not None:
            await self._on_owner_write(owner_id)

    # ------------------------------------------------------------------ reads

    async def async_find_lexical_candidates(
        self, filters: SearchFilters, text: str, *, domain: str | None = None
    ) -> list[SearchCandidate]:
        """Substring matches of ``text`` on title/url/summary and on tag names."""

        def _query() -> list[SearchCandidate]:
            conditions = _filter_conditions(filters)
            text_match = (
                (fn.icontains(Bookmark.title, text) == 1)
                | (fn.icontains(Bookmark.url, text) == 1)
                | (fn.icontains(Bookmark.summary, text) == 1)
            )
            if domain:
                text_match |= fn.icontains(Bookmark.url, domain) == 1

            candidates = [
                SearchCandidate(bookmark_id=bookmark_id, match_type=MatchType.EXACT_TEXT, created_at=created_at)
                for bookmark_id, created_at in Bookmark.select(Bookmark.id, Bookmark.created_at)
                .where(conditions & text_match)
                .tuples()
            ]

            by_tag: dict[str, SearchCandidate] = {}
            tag_rows = (
                Bookmark.select(Bookmark.id, Bookmark.created_at, Tag.name)
                .join(BookmarkTag, on=(BookmarkTag.bookmark == Bookmark.id))
                .join(Tag, on=(BookmarkTag.tag == Tag.id))
                .where(conditions & (fn.icontains(Tag.name, text) == 1))
                .order_by(Tag.name)
                .tuples()
            )
            for bookmark_id, created_at, tag_name in tag_rows:
                candidate = by_tag.setdefault(
                    bookmark_id,
                    SearchCandidate(bookmark_id=bookmark_id, match_type=MatchType.TAG, created_at=created_at),
                )
                candidate.matched_tags.append(tag_name)

            return candidates + list(by_tag.values())

        return await self._execute(_query, operation_name="find_lexical_candidates", read_only=True)

    async def async_get_embedding_rows(
        self, filters: SearchFilters
    ) -> list[tuple[str, dt.datetime, np.ndarray | None, np.ndarray | None]]:
        """Eligible bookmarks that have at least one embedding."""

        def _query() -> list[tuple[str, dt.datetime, np.ndarray | None, np.ndarray | None]]:
            query = (
                Bookmark.select(
                    Bookmark.id,
                    Bookmark.created_at,
                    Bookmark.title_embedding,
                    Bookmark.summary_embedding,
                )
                .where(
                    _filter_conditions(filters)
                    & (Bookmark.title_embedding.is_null(False) | Bookmark.summary_embedding.is_null(False))
                )
                .tuples()
            )
            return [
                (bookmark_id, created_at, deserialize_embedding(title_blob), deserialize_embedding(summary_blob))
                for bookmark_id, created_at, title_blob, summary_blob in query
            ]

        return await self._execute(_query, operation_name="get_embedding_rows", read_only=True)

    async def async_browse(
        self, filters: SearchFilters, *, before_id: str | None, limit: int
    ) -> list[str]:
        """Ids of eligible bookmarks, newest first, strictly older than ``before_id``."""

        def _query() -> list[str]:
            conditions = _filter_conditions(filters)
            if before_id:
                conditions &= Bookmark.id < before_id
            query = (
                Bookmark.select(Bookmark.id)
                .where(conditions)
                .order_by(Bookmark.id.desc())
                .limit(limit)
                .tuples()
            )
            return [bookmark_id for (bookmark_id,) in query]

        return await self._execute(_query, operation_name="browse_bookmarks", read_only=True)

    async def async_get_bookmarks(
        self, owner_id: str, bookmark_ids: Sequence[str]
    ) -> dict[str, dict[str, Any]]:
        """Full rows for ``bookmark_ids`` owned by ``owner_id``, keyed by id."""
        if not bookmark_ids:
            return {}
        ids = list(dict.fromkeys(bookmark_ids))

        def _query() -> dict[str, dict[str, Any]]:
            rows: dict[str, dict[str, Any]] = {}
            for bookmark in Bookmark.select().where((Bookmark.owner == owner_id) & Bookmark.id.in_(ids)):
                rows[bookmark.id] = {
                    "id": bookmark.id,
                    "owner_id": bookmark.owner_id,
                    "url": bookmark.url,
                    "title": bookmark.title,
                    "summary": bookmark.summary,
                    "preview": bookmark.preview,
                    "type": bookmark.type,
                    "status": bookmark.status,
                    "starred": bool(bookmark.starred),
                    "read": bool(bookmark.read),
                    "favicon_url": bookmark.favicon_url,
                    "og_image_url": bookmark.og_image_url,
                    "og_description": bookmark.og_description,
                    "metadata": bookmark.metadata,
                    "created_at": bookmark.created_at,
                    "tags": [],
                }

            tag_rows = (
                BookmarkTag.select(BookmarkTag.bookmark, Tag.name)
                .join(Tag, on=(BookmarkTag.tag == Tag.id))
                .where(BookmarkTag.bookmark.in_(list(rows)))
                .order_by(Tag.name)
                .tuples()
            )
            for bookmark_id, tag_name in tag_rows:
                rows[bookmark_id]["tags"].append(tag_name)
            return rows

        return await self._execute(_query, operation_name="get_bookmarks", read_only=True)

    # ----------------------------------------------------------------- writes

    async def async_create_bookmark(
        self,
        owner_id: str,
        url: str,
        *,
        tags: Iterable[str] = (),
        tag_type: TagType = TagType.USER,
        **fields: Any,
    ) -> str:
        """Insert a bookmark; ``fields`` may include ``id`` and ``created_at``."""
        unknown = set(fields) - _UPDATABLE_FIELDS - {"id", "created_at"}
        if unknown:
            msg = f"Unknown bookmark fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        values = _prepare_fields(fields)
        if values.get("created_at") is not None:
            values["created_at"] = to_naive_utc(values["created_at"])
        tag_names = list(tags)

        def _insert() -> str:
            with self._session.database.atomic():
                bookmark = Bookmark.create(owner=owner_id, url=url, **values)
                if tag_names:
                    self._link_tags(owner_id, bookmark.id, tag_names, tag_type)
                return bookmark.id

        bookmark_id = await self._execute(_insert, operation_name="create_bookmark")
        await self._notify_write(owner_id)
        return bookmark_id

    async def async_update_bookmark(self, owner_id: str, bookmark_id: str, **fields: Any) -> bool:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown bookmark fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        if not fields:
            return False
        values = _prepare_fields(fields)
        values["updated_at"] = _utcnow()

        def _update() -> int:
            return (
                Bookmark.update(**values)
                .where((Bookmark.id == bookmark_id) & (Bookmark.owner == owner_id))
                .execute()
            )

        updated = await self._execute(_update, operation_name="update_bookmark")
        if updated:
            await self._notify_write(owner_id)
        return bool(updated)

    async def async_delete_bookmark(self, owner_id: str, bookmark_id: str) -> bool:
        def _delete() -> int:
            return (
                Bookmark.delete()
                .where((Bookmark.id == bookmark_id) & (Bookmark.owner == owner_id))
                .execute()
            )

        deleted = await self._execute(_delete, operation_name="delete_bookmark")
        if deleted:
            await self._notify_write(owner_id)
        return bool(deleted)

    async def async_set_bookmark_tags(
        self,
        owner_id: str,
        bookmark_id: str,
        tag_names: Iterable[str],
        *,
        tag_type: TagType = TagType.USER,
    ) -> list[str]:
        """Replace the bookmark's tags, creating missing tags for the owner."""
        names = list(dict.fromkeys(name.strip() for name in tag_names if name and name.strip()))

        def _replace() -> list[str]:
            with self._session.database.atomic():
                exists = (
                    Bookmark.select(Bookmark.id)
                    .where((Bookmark.id == bookmark_id) & (Bookmark.owner == owner_id))
                    .exists()
                )
                if not exists:
                    msg = f"Bookmark {bookmark_id} not found"
                    raise LookupError(msg)
                BookmarkTag.delete().where(BookmarkTag.bookmark == bookmark_id).execute()
                return self._link_tags(owner_id, bookmark_id, names, tag_type)

        linked = await self._execute(_replace, operation_name="set_bookmark_tags")
        await self._notify_write(owner_id)
        return linked

    async def async_delete_tag(self, owner_id: str, name: str) -> bool:
        def _delete() -> int:
            return Tag.delete().where((Tag.owner == owner_id) & (Tag.name == name)).execute()

        deleted = await self._execute(_delete, operation_name="delete_tag")
        if deleted:
            await self._notify_write(owner_id)
        return bool(deleted)

    @staticmethod
    def _link_tags(owner_id: str, bookmark_id: str, names: Sequence[str], tag_type: TagType) -> list[str]:
        linked: list[str] = []
        for name in names:
            tag, _ = Tag.get_or_create(
                owner=owner_id, name=name, defaults={"type": _enum_value(tag_type)}
            )
            BookmarkTag.insert(bookmark=bookmark_id, tag=tag.id).on_conflict_ignore().execute()
            linked.append(tag.name)
        return linked
