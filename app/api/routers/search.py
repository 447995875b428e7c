"""Bookmark search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Request

from app.api.auth import get_current_user
from app.api.dependencies.search_resources import (
    get_bookmark_search_service,
    get_user_repository,
)
from app.api.exceptions import ResourceNotFoundError
from app.api.models.responses import BookmarkSearchResponse, success_response
from app.core.logging_utils import get_logger
from app.infrastructure.persistence.sqlite.repositories.user_repository import (
    SqliteUserRepositoryAdapter,
)
from app.services.bookmark_search_service import BookmarkSearchService
from app.services.search_query import RawSearchParams, SearchContext

logger = get_logger(__name__)
router = APIRouter()

_QUERY_DESCRIPTION = "Free text matched against title, URL, summary and tag names"
_TAGS_DESCRIPTION = "Tag names, comma separated or repeated; any one matches"
_TYPES_DESCRIPTION = "Bookmark types, comma separated or repeated; any one matches"
_CURSOR_DESCRIPTION = "Opaque cursor from a previous page's nextCursor"


@router.get("/bookmarks", response_model=BookmarkSearchResponse)
async def search_bookmarks(
    request: Request,
    query: str | None = Query(None, description=_QUERY_DESCRIPTION),
    tags: list[str] | None = Query(None, description=_TAGS_DESCRIPTION),
    types: list[str] | None = Query(None, description=_TYPES_DESCRIPTION),
    special_filters: list[str] | None = Query(
        None, alias="specialFilters", description="READ, UNREAD and/or STAR; any one matches"
    ),
    cursor: str | None = Query(None, description=_CURSOR_DESCRIPTION),
    limit: int | None = Query(None),
    matching_distance: float | None = Query(None, alias="matchingDistance"),
    user=Depends(get_current_user),
    search_service: BookmarkSearchService = Depends(get_bookmark_search_service),
):
    """Search the caller's bookmarks from the app."""
    page = await search_service.search(
        user["user_id"],
        RawSearchParams(
            query=query,
            tags=tags,
            types=types,
            special_filters=special_filters,
            cursor=cursor,
            limit=limit,
            matching_distance=matching_distance,
        ),
        context=SearchContext.APP,
        correlation_id=request.state.correlation_id,
    )
    return success_response(page.to_dict())


@router.get("/v1/bookmarks", response_model=BookmarkSearchResponse)
async def search_bookmarks_v1(
    request: Request,
    query: str | None = Query(None, description=_QUERY_DESCRIPTION),
    tags: list[str] | None = Query(None, description=_TAGS_DESCRIPTION),
    types: list[str] | None = Query(None, description=_TYPES_DESCRIPTION),
    special: str | None = Query(None, description="READ, UNREAD or STAR, or a comma list"),
    cursor: str | None = Query(None, description=_CURSOR_DESCRIPTION),
    limit: int | None = Query(None),
    matching_distance: float | None = Query(None, alias="matchingDistance"),
    user=Depends(get_current_user),
    search_service: BookmarkSearchService = Depends(get_bookmark_search_service),
):
    """Versioned search API for third-party clients."""
    page = await search_service.search(
        user["user_id"],
        RawSearchParams(
            query=query,
            tags=tags,
            types=types,
            special_filters=special,
            cursor=cursor,
            limit=limit,
            matching_distance=matching_distance,
        ),
        context=SearchContext.API,
        correlation_id=request.state.correlation_id,
    )
    return success_response(page.to_dict())


@router.get("/v1/public/{slug}/bookmarks", response_model=BookmarkSearchResponse)
async def search_public_bookmarks(
    request: Request,
    slug: str = Path(..., min_length=1, max_length=128),
    query: str | None = Query(None, description=_QUERY_DESCRIPTION),
    tags: list[str] | None = Query(None, description=_TAGS_DESCRIPTION),
    types: list[str] | None = Query(None, description=_TYPES_DESCRIPTION),
    cursor: str | None = Query(None, description=_CURSOR_DESCRIPTION),
    limit: int | None = Query(None),
    users: SqliteUserRepositoryAdapter = Depends(get_user_repository),
    search_service: BookmarkSearchService = Depends(get_bookmark_search_service),
):
    """Search the bookmarks behind a public share link.

    Read and starred state is never exposed, and special filters and the
    matching distance cannot be chosen by the caller.
    """
    owner_id = await users.async_get_public_owner_id(slug)
    if owner_id is None:
        logger.info(
            "public_link_not_found",
            extra={"correlation_id": request.state.correlation_id, "slug": slug},
        )
        raise ResourceNotFoundError("Public link", slug)

    page = await search_service.search(
        owner_id,
        RawSearchParams(query=query, tags=tags, types=types, cursor=cursor, limit=limit),
        context=SearchContext.PUBLIC,
        correlation_id=request.state.correlation_id,
    )
    return success_response(page.to_dict())
