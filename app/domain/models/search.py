"""Value objects passed between the stages of a bookmark search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from app.domain.models.bookmark import BookmarkType, MatchType, SpecialFilter


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """Normalized, strictly typed search request for a single owner."""

    owner_id: str
    text: str | None = None
    tags: tuple[str, ...] = ()
    types: tuple[BookmarkType, ...] = ()
    special_filters: tuple[SpecialFilter, ...] = ()
    cursor: str | None = None
    limit: int = 20
    matching_distance: float = 0.1
    hide_private_flags: bool = False

    @property
    def has_text(self) -> bool:
        return bool(self.text)

    def fingerprint(self) -> dict[str, Any]:
        """Deterministic representation used to build cache keys."""
        return {
            "owner": self.owner_id,
            "text": self.text,
            "tags": sorted(self.tags),
            "types": sorted(t.value for t in self.types),
            "special": sorted(s.value for s in self.special_filters),
            "cursor": self.cursor,
            "limit": self.limit,
            "distance": self.matching_distance,
            "private": self.hide_private_flags,
        }


@dataclass(slots=True)
class SearchCandidate:
    """Unranked match produced by one retrieval path."""

    bookmark_id: str
    match_type: MatchType
    created_at: datetime
    distance: float = 0.0
    matched_tags: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A bookmark as returned to search callers."""

    id: str
    url: str
    title: str | None
    summary: str | None
    type: str | None
    status: str
    starred: bool
    read: bool
    preview: str | None
    favicon_url: str | None
    og_image_url: str | None
    og_description: str | None
    created_at: str
    metadata: dict[str, Any] | None
    matched_tags: tuple[str, ...]
    score: float
    match_type: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "type": self.type,
            "status": self.status,
            "starred": self.starred,
            "read": self.read,
            "preview": self.preview,
            "faviconUrl": self.favicon_url,
            "ogImageUrl": self.og_image_url,
            "ogDescription": self.og_description,
            "createdAt": self.created_at,
            "metadata": self.metadata,
            "matchedTags": list(self.matched_tags),
            "score": self.score,
            "matchType": self.match_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchHit:
        return cls(
            id=data["id"],
            url=data["url"],
            title=data.get("title"),
            summary=data.get("summary"),
            type=data.get("type"),
            status=data["status"],
            starred=bool(data.get("starred")),
            read=bool(data.get("read")),
            preview=data.get("preview"),
            favicon_url=data.get("faviconUrl"),
            og_image_url=data.get("ogImageUrl"),
            og_description=data.get("ogDescription"),
            created_at=data["createdAt"],
            metadata=data.get("metadata"),
            matched_tags=tuple(data.get("matchedTags") or ()),
            score=float(data.get("score", 0.0)),
            match_type=data.get("matchType"),
        )


@dataclass(frozen=True, slots=True)
class SearchPage:
    """One page of search results plus the resume point for the next one."""

    bookmarks: tuple[SearchHit, ...]
    has_more: bool
    next_cursor: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "bookmarks": [hit.to_dict() for hit in self.bookmarks],
            "hasMore": self.has_more,
            "nextCursor": self.next_cursor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchPage:
        return cls(
            bookmarks=tuple(SearchHit.from_dict(item) for item in data.get("bookmarks") or ()),
            has_more=bool(data.get("hasMore")),
            next_cursor=data.get("nextCursor"),
        )
