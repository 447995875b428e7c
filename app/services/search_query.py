"""Turn loosely typed search input into a normalized SearchQuery.

Each caller context carries its own page-size and distance policy. External
contexts reject out-of-range values; the internal assistant context clamps
them instead.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from app.config.search import MAX_MATCHING_DISTANCE, MIN_MATCHING_DISTANCE
from app.domain.exceptions.domain_exceptions import SearchValidationError
from app.domain.models.bookmark import BookmarkType, SpecialFilter
from app.domain.models.search import SearchQuery
from app.services.search_pagination import CursorError, decode_cursor

if TYPE_CHECKING:
    from app.config import SearchConfig

E = TypeVar("E", bound=Enum)


class SearchContext(str, Enum):
    """Who is asking; selects defaults and validation strictness."""

    APP = "app"
    API = "api"
    PUBLIC = "public"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class ContextPolicy:
    default_limit: int
    max_limit: int
    matching_distance: float
    allow_distance_override: bool
    allow_special_filters: bool
    strict: bool
    hide_private_flags: bool


def context_policy(context: SearchContext, config: SearchConfig) -> ContextPolicy:
    if context is SearchContext.APP:
        return ContextPolicy(
            default_limit=config.default_limit,
            max_limit=config.app_max_limit,
            matching_distance=config.app_matching_distance,
            allow_distance_override=True,
            allow_special_filters=True,
            strict=True,
            hide_private_flags=False,
        )
    if context is SearchContext.API:
        return ContextPolicy(
            default_limit=config.default_limit,
            max_limit=config.api_max_limit,
            matching_distance=config.app_matching_distance,
            allow_distance_override=True,
            allow_special_filters=True,
            strict=True,
            hide_private_flags=False,
        )
    if context is SearchContext.PUBLIC:
        return ContextPolicy(
            default_limit=config.default_limit,
            max_limit=config.api_max_limit,
            matching_distance=config.public_matching_distance,
            allow_distance_override=False,
            allow_special_filters=False,
            strict=True,
            hide_private_flags=True,
        )
    return ContextPolicy(
        default_limit=config.assistant_default_limit,
        max_limit=config.assistant_max_limit,
        matching_distance=config.assistant_matching_distance,
        allow_distance_override=True,
        allow_special_filters=True,
        strict=False,
        hide_private_flags=False,
    )


@dataclass(slots=True)
class RawSearchParams:
    """Search input exactly as a caller supplied it."""

    query: Any = None
    tags: Any = None
    types: Any = None
    special_filters: Any = None
    cursor: Any = None
    limit: Any = None
    matching_distance: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RawSearchParams:
        return cls(
            query=data.get("query"),
            tags=data.get("tags"),
            types=data.get("types"),
            special_filters=data.get("special_filters", data.get("specialFilters")),
            cursor=data.get("cursor"),
            limit=data.get("limit"),
            matching_distance=data.get("matching_distance", data.get("matchingDistance")),
        )


def split_list(value: Any) -> list[str]:
    """Split comma-joined strings (or lists of them) into trimmed, non-empty items."""
    if value is None:
        return []
    items: Iterable[Any] = [value] if isinstance(value, str) else value
    result: list[str] = []
    for item in items:
        if item is None:
            continue
        result.extend(part.strip() for part in str(item).split(",") if part.strip())
    return result


def _parse_enum_list(value: Any, enum_type: type[E]) -> tuple[E, ...]:
    members = {member.value.upper(): member for member in enum_type}
    parsed = {members[item.upper()] for item in split_list(value) if item.upper() in members}
    return tuple(sorted(parsed, key=lambda member: member.value))


def _parse_tags(value: Any) -> tuple[str, ...]:
    return tuple(sorted(set(split_list(value))))


def _parse_text(value: Any, *, policy: ContextPolicy, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        if policy.strict:
            msg = f"Query must be at most {max_length} characters"
            raise SearchValidationError(msg, details={"field": "query", "max_length": max_length})
        text = text[:max_length].rstrip()
    return text


def _parse_limit(value: Any, *, policy: ContextPolicy) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return policy.default_limit

    try:
        if isinstance(value, bool):
            raise TypeError
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError
            parsed = int(value)
        else:
            parsed = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        if policy.strict:
            msg = "Limit must be an integer"
            raise SearchValidationError(msg, details={"field": "limit", "value": str(value)}) from exc
        return policy.default_limit

    if 1 <= parsed <= policy.max_limit:
        return parsed
    if policy.strict:
        msg = f"Limit must be between 1 and {policy.max_limit}"
        raise SearchValidationError(
            msg, details={"field": "limit", "value": parsed, "max": policy.max_limit}
        )
    return min(max(parsed, 1), policy.max_limit)


def _parse_distance(value: Any, *, policy: ContextPolicy) -> float:
    if not policy.allow_distance_override:
        return policy.matching_distance
    if value is None or (isinstance(value, str) and not value.strip()):
        return policy.matching_distance

    try:
        if isinstance(value, bool):
            raise TypeError
        parsed = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError) as exc:
        if policy.strict:
            msg = "Matching distance must be a number"
            raise SearchValidationError(
                msg, details={"field": "matchingDistance", "value": str(value)}
            ) from exc
        return policy.matching_distance

    if math.isnan(parsed):
        if policy.strict:
            msg = "Matching distance must be a number"
            raise SearchValidationError(msg, details={"field": "matchingDistance"})
        return policy.matching_distance

    if MIN_MATCHING_DISTANCE <= parsed <= MAX_MATCHING_DISTANCE:
        return parsed
    if policy.strict:
        msg = (
            f"Matching distance must be between {MIN_MATCHING_DISTANCE} "
            f"and {MAX_MATCHING_DISTANCE}"
        )
        raise SearchValidationError(
            msg, details={"field": "matchingDistance", "value": parsed}
        )
    return min(max(parsed, MIN_MATCHING_DISTANCE), MAX_MATCHING_DISTANCE)


def _parse_cursor(value: Any) -> str | None:
    if value is None:
        return None
    cursor = str(value).strip()
    if not cursor:
        return None
    try:
        decode_cursor(cursor)
    except CursorError as exc:
        msg = "Invalid pagination cursor"
        raise SearchValidationError(msg, details={"field": "cursor"}) from exc
    return cursor


def normalize_search_query(
    owner_id: str,
    raw: RawSearchParams | Mapping[str, Any],
    *,
    context: SearchContext,
    config: SearchConfig,
) -> SearchQuery:
    """Validate and canonicalize ``raw`` into a SearchQuery for ``owner_id``.

    Raises:
        SearchValidationError: If a value is malformed or out of range for a
            context that rejects rather than clamps.
    """
    if not owner_id:
        msg = "Search requires an owner"
        raise SearchValidationError(msg, details={"field": "owner_id"})

    params = raw if isinstance(raw, RawSearchParams) else RawSearchParams.from_mapping(raw)
    policy = context_policy(context, config)

    special_filters: tuple[SpecialFilter, ...] = ()
    if policy.allow_special_filters:
        special_filters = _parse_enum_list(params.special_filters, SpecialFilter)

    return SearchQuery(
        owner_id=owner_id,
        text=_parse_text(params.query, policy=policy, max_length=config.max_query_length),
        tags=_parse_tags(params.tags),
        types=_parse_enum_list(params.types, BookmarkType),
        special_filters=special_filters,
        cursor=_parse_cursor(params.cursor),
        limit=_parse_limit(params.limit, policy=policy),
        matching_distance=_parse_distance(params.matching_distance, policy=policy),
        hide_private_flags=policy.hide_private_flags,
    )
