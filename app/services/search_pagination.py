"""Cursor encoding and forward paging over an ordered result list.

Browse ordering (no free text) is id-descending, so its cursor is simply
the last bookmark id. Ranked ordering needs the whole rank key to resume
"strictly after" the last row even if that row has since disappeared, so
its cursor is an opaque url-safe token.
"""

from __future__ import annotations

import base64
import binascii
import bisect
import datetime as dt
import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from app.services.search_ranking import RankKey, rank_sort_key

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

T = TypeVar("T")

RANKED_CURSOR_PREFIX = "rk1."
_ID_PATTERN = re.compile(r"^[0-9A-Za-z_-]{1,64}$")


class CursorError(ValueError):
    """Raised for cursors that cannot be decoded."""


@dataclass(frozen=True, slots=True)
class CursorPosition:
    bookmark_id: str
    rank_key: RankKey | None = None


def encode_rank_cursor(key: RankKey) -> str:
    payload = json.dumps(
        {
            "p": key.precedence,
            "d": key.distance,
            "c": key.created_at.isoformat(),
            "i": key.bookmark_id,
        },
        separators=(",", ":"),
    )
    token = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")
    return RANKED_CURSOR_PREFIX + token


def decode_cursor(token: str) -> CursorPosition:
    if not token.startswith(RANKED_CURSOR_PREFIX):
        if not _ID_PATTERN.match(token):
            msg = "cursor is not a bookmark id"
            raise CursorError(msg)
        return CursorPosition(bookmark_id=token)

    body = token[len(RANKED_CURSOR_PREFIX) :]
    try:
        raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
        data = json.loads(raw)
        created_at = dt.datetime.fromisoformat(data["c"])
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(dt.UTC).replace(tzinfo=None)
        key = RankKey(
            precedence=int(data["p"]),
            distance=float(data["d"]),
            created_at=created_at,
            bookmark_id=str(data["i"]),
        )
    except (binascii.Error, UnicodeDecodeError, KeyError, TypeError, ValueError) as exc:
        msg = "cursor token is malformed"
        raise CursorError(msg) from exc
    if not _ID_PATTERN.match(key.bookmark_id):
        msg = "cursor token is malformed"
        raise CursorError(msg)
    return CursorPosition(bookmark_id=key.bookmark_id, rank_key=key)


def window_after(
    ranked: Sequence[T],
    *,
    key: Callable[[T], RankKey],
    cursor: CursorPosition | None,
    limit: int,
) -> list[T]:
    """Up to ``limit + 1`` items of ``ranked`` strictly after ``cursor``.

    A plain id cursor must name a row of ``ranked``; one left over from a
    browse page raises CursorError rather than silently restarting.
    """
    start = 0
    if cursor is not None and cursor.rank_key is not None:
        start = bisect.bisect_right(
            ranked, rank_sort_key(cursor.rank_key), key=lambda item: rank_sort_key(key(item))
        )
    elif cursor is not None:
        ids = [key(item).bookmark_id for item in ranked]
        if cursor.bookmark_id not in ids:
            msg = "cursor does not belong to this ranking"
            raise CursorError(msg)
        start = ids.index(cursor.bookmark_id) + 1
    return list(ranked[start : start + limit + 1])


def split_page(window: Sequence[T], limit: int) -> tuple[list[T], bool]:
    """Drop the lookahead row; ``has_more`` is true iff it existed."""
    return list(window[:limit]), len(window) > limit
