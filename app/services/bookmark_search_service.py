"""Single search operation shared by HTTP routes, the MCP tool and the CLI."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from app.services.search_query import RawSearchParams, SearchContext, normalize_search_query

if TYPE_CHECKING:
    from app.config import SearchConfig
    from app.domain.models.search import SearchPage
    from app.services.cached_search_service import CachedSearchService


class BookmarkSearchService:
    """Normalize caller input for its context, then run the cached pipeline."""

    def __init__(self, searcher: CachedSearchService, config: SearchConfig) -> None:
        self._searcher = searcher
        self._config = config

    @property
    def config(self) -> SearchConfig:
        return self._config

    async def search(
        self,
        owner_id: str,
        params: RawSearchParams | Mapping[str, Any],
        *,
        context: SearchContext = SearchContext.APP,
        correlation_id: str | None = None,
    ) -> SearchPage:
        """Search ``owner_id``'s bookmarks.

        Raises:
            SearchValidationError: If ``params`` are invalid for ``context``.
            peewee.DatabaseError: If the bookmark store fails.
        """
        query = normalize_search_query(owner_id, params, context=context, config=self._config)
        return await self._searcher.search(query, correlation_id=correlation_id)

    async def invalidate_owner(self, owner_id: str) -> None:
        await self._searcher.invalidate_owner(owner_id)
