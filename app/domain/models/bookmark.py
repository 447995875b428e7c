"""Bookmark domain vocabulary shared by the store and the search engine."""

from __future__ import annotations

from enum import Enum


class BookmarkType(str, Enum):
    """Content type assigned to a bookmark by enrichment."""

    ARTICLE = "ARTICLE"
    BLOG = "BLOG"
    PAGE = "PAGE"
    YOUTUBE = "YOUTUBE"
    TWEET = "TWEET"
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    PDF = "PDF"
    PRODUCT = "PRODUCT"


class BookmarkStatus(str, Enum):
    """Enrichment lifecycle. Only READY bookmarks are searchable."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


class TagType(str, Enum):
    USER = "USER"
    IA = "IA"


class MatchType(str, Enum):
    """Why a bookmark matched a query, in precedence order."""

    EXACT_TEXT = "EXACT_TEXT"
    TAG = "TAG"
    SEMANTIC = "SEMANTIC"


class SpecialFilter(str, Enum):
    READ = "READ"
    UNREAD = "UNREAD"
    STAR = "STAR"


MATCH_PRECEDENCE: dict[MatchType, int] = {
    MatchType.EXACT_TEXT: 0,
    MatchType.TAG: 1,
    MatchType.SEMANTIC: 2,
}
