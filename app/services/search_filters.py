"""Structural filters applied to bookmark search candidates."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.domain.models.bookmark import BookmarkStatus, BookmarkType, SpecialFilter

if TYPE_CHECKING:
    from app.domain.models.search import SearchQuery

SEARCHABLE_STATUSES: tuple[BookmarkStatus, ...] = (BookmarkStatus.READY,)


@dataclass(frozen=True, slots=True)
class SearchFilters:
    """Filters for bookmark search.

    Ownership and status always apply. Each optional category (types, tags,
    special filters) is OR within itself; categories are ANDed together.
    The store pushes these into its SQL; ``matches`` re-checks loaded rows.
    """

    owner_id: str
    types: tuple[BookmarkType, ...] = ()
    tags: tuple[str, ...] = ()
    special_filters: tuple[SpecialFilter, ...] = ()
    statuses: tuple[BookmarkStatus, ...] = SEARCHABLE_STATUSES

    @classmethod
    def from_query(cls, query: SearchQuery) -> SearchFilters:
        return cls(
            owner_id=query.owner_id,
            types=query.types,
            tags=query.tags,
            special_filters=query.special_filters,
        )

    @property
    def folded_tags(self) -> frozenset[str]:
        return frozenset(tag.casefold() for tag in self.tags)

    def matches(self, record: Mapping[str, Any]) -> bool:
        """Check if a loaded bookmark row satisfies every filter.

        ``record`` needs ``owner_id``, ``status``, ``type``, ``starred``,
        ``read`` and ``tags`` (list of tag names).
        """
        if record.get("owner_id") != self.owner_id:
            return False

        if record.get("status") not in {s.value for s in self.statuses}:
            return False

        if self.types and record.get("type") not in {t.value for t in self.types}:
            return False

        if self.tags and not self.matched_tags(record.get("tags") or ()):
            return False

        return not self.special_filters or self._matches_special(record)

    def _matches_special(self, record: Mapping[str, Any]) -> bool:
        for special in self.special_filters:
            if special is SpecialFilter.STAR and record.get("starred"):
                return True
            if special is SpecialFilter.READ and record.get("read"):
                return True
            if special is SpecialFilter.UNREAD and not record.get("read"):
                return True
        return False

    def matched_tags(self, tag_names: Iterable[str]) -> list[str]:
        """Tag names from ``tag_names`` selected by the tag filter."""
        wanted = self.folded_tags
        return [name for name in tag_names if name.casefold() in wanted]

    def has_filters(self) -> bool:
        return bool(self.types or self.tags or self.special_filters)

    def __str__(self) -> str:
        """String representation of active filters."""
        parts = []
        if self.types:
            parts.append(f"types={','.join(t.value for t in self.types)}")
        if self.tags:
            parts.append(f"tags={','.join(self.tags)}")
        if self.special_filters:
            parts.append(f"special={','.join(s.value for s in self.special_filters)}")

        return f"SearchFilters({', '.join(parts)})" if parts else "SearchFilters(none)"
