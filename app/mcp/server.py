"""MCP server exposing bookmark search to AI assistants.

The server is scoped to a single owner (``MCP_USER_ID`` or ``--user-id``);
every tool call searches that owner's bookmarks with the assistant defaults
(smaller pages, looser semantic threshold, out-of-range values clamped).

Usage (stdio transport - default for desktop assistants):
    python -m app.cli.mcp_server --user-id 01J...

Usage (SSE transport - for HTTP-based integrations):
    python -m app.cli.mcp_server --transport sse --user-id 01J...
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import peewee
from mcp.server.fastmcp import FastMCP

from app.config import load_config
from app.core.logging_utils import generate_correlation_id
from app.di.search import build_search_container
from app.domain.exceptions.domain_exceptions import SearchValidationError
from app.services.search_query import RawSearchParams, SearchContext

if TYPE_CHECKING:
    from app.config import AppConfig
    from app.di.search import SearchContainer

logger = logging.getLogger("bms.mcp")

mcp = FastMCP(
    "bookmark-search",
    instructions=(
        "Search a personal collection of saved bookmarks (articles, videos, tweets, "
        "products and more). Results are ranked: exact text matches first, then tag "
        "matches, then semantically similar bookmarks."
    ),
)

_container: SearchContainer | None = None
_container_lock = asyncio.Lock()
_MCP_USER_ID: str | None = None


def configure(*, user_id: str | None, container: SearchContainer | None = None) -> None:
    """Set the owner scope and, optionally, a prebuilt search stack."""
    global _MCP_USER_ID, _container
    _MCP_USER_ID = user_id
    _container = container


async def _get_container() -> SearchContainer:
    global _container
    if _container is not None:
        return _container
    async with _container_lock:
        if _container is None:
            _container = await asyncio.to_thread(build_search_container, load_config())
        return _container


def _error(message: str, **fields: Any) -> str:
    return json.dumps({"error": message, **fields})


@mcp.tool()
async def search_bookmarks(
    query: str | None = None,
    tags: list[str] | None = None,
    types: list[str] | None = None,
    special_filters: list[str] | None = None,
    limit: int | None = None,
    cursor: str | None = None,
    matching_distance: float | None = None,
) -> str:
    """Search saved bookmarks by text, tags, type and read/star state.

    Args:
        query: Free text matched against titles, URLs, summaries and tag names,
            and semantically against bookmark content. A bare domain such as
            "github.com" matches bookmarks saved from that site.
        tags: Tag names; a bookmark matches if it carries any of them.
        types: Bookmark types (ARTICLE, BLOG, PAGE, YOUTUBE, TWEET, VIDEO,
            IMAGE, PDF, PRODUCT); any one matches.
        special_filters: READ, UNREAD and/or STAR; any one matches.
        limit: Page size (default 6, at most 20).
        cursor: ``nextCursor`` from a previous call to fetch the next page.
        matching_distance: Cosine distance threshold for semantic matches
            (default 0.8; lower is stricter).
    """
    if _MCP_USER_ID is None:
        return _error("MCP server is not scoped to a user; set MCP_USER_ID or --user-id")

    correlation_id = generate_correlation_id()
    container = await _get_container()
    try:
        page = await container.search.search(
            _MCP_USER_ID,
            RawSearchParams(
                query=query,
                tags=tags,
                types=types,
                special_filters=special_filters,
                cursor=cursor,
                limit=limit,
                matching_distance=matching_distance,
            ),
            context=SearchContext.ASSISTANT,
            correlation_id=correlation_id,
        )
    except SearchValidationError as exc:
        return _error(exc.message, details=exc.details, query=query)
    except (peewee.DatabaseError, TimeoutError):
        logger.exception("search_bookmarks failed", extra={"cid": correlation_id})
        return _error("Bookmark store is temporarily unavailable", query=query)

    payload = page.to_dict()
    payload["query"] = query
    payload["total"] = len(payload["bookmarks"])
    return json.dumps(payload, default=str)


def _is_loopback_host(host: str) -> bool:
    return host in {"127.0.0.1", "localhost", "::1"}


def run_server(
    cfg: AppConfig,
    *,
    transport: str = "stdio",
    host: str = "127.0.0.1",
    port: int = 8200,
    user_id: str | None = None,
    allow_remote_sse: bool = False,
) -> None:
    """Start the MCP server.

    Args:
        cfg: Application configuration used to build the search stack.
        transport: "stdio" (default) or "sse".
        host: Bind address for SSE transport (default 127.0.0.1).
        port: Port for SSE transport (default 8200).
        user_id: Owner whose bookmarks the tools search.
        allow_remote_sse: Allow non-loopback SSE bind host.
    """
    if transport == "sse" and not allow_remote_sse and not _is_loopback_host(host):
        msg = (
            "Refusing to bind MCP SSE to non-loopback host without explicit opt-in "
            "(--allow-remote-sse)."
        )
        raise ValueError(msg)
    if user_id is None:
        msg = "MCP server requires a user scope. Set MCP_USER_ID or --user-id."
        raise ValueError(msg)

    configure(user_id=user_id, container=build_search_container(cfg))
    logger.info(
        "Starting bookmark MCP server (transport=%s, user_scope=%s)", transport, user_id
    )

    if transport == "sse":
        mcp.settings.host = host
        mcp.settings.port = port
        mcp.run(transport="sse")
    else:
        mcp.run(transport="stdio")
