"""Search dependency management with explicit lifecycle."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from app.config import AppConfig, load_config
from app.core.logging_utils import get_logger
from app.di.search import SearchContainer, build_search_container
from app.infrastructure.redis import close_redis

if TYPE_CHECKING:
    from collections.abc import Callable

    from app.infrastructure.persistence.sqlite.repositories.user_repository import (
        SqliteUserRepositoryAdapter,
    )
    from app.services.bookmark_search_service import BookmarkSearchService

logger = get_logger(__name__)


def _default_container_factory(cfg: AppConfig) -> SearchContainer:
    return build_search_container(cfg)


class _SearchResourceManager:
    _lock = asyncio.Lock()
    _config: AppConfig | None = None
    _container: SearchContainer | None = None
    _config_factory: Callable[[], AppConfig] = load_config
    _container_factory: Callable[[AppConfig], SearchContainer] = _default_container_factory

    @classmethod
    def get_config(cls) -> AppConfig:
        if cls._config is None:
            cls._config = cls._config_factory()
        return cls._config

    @classmethod
    async def get_container(cls) -> SearchContainer:
        if cls._container:
            return cls._container

        async with cls._lock:
            if cls._container:
                return cls._container

            cfg = cls.get_config()
            # Building migrates the database; keep that off the event loop.
            cls._container = await asyncio.to_thread(cls._container_factory, cfg)
            logger.info(
                "search_resources_initialized",
                extra={"semantic_enabled": cfg.search.semantic_enabled},
            )
            return cls._container

    @classmethod
    async def shutdown(cls) -> None:
        async with cls._lock:
            container = cls._container
            cls._container = None

        if container is not None:
            container.db.close()
            logger.info("search_resources_shutdown")
        await close_redis()

    @classmethod
    def set_factories_for_tests(
        cls,
        *,
        config_factory: Callable[[], AppConfig] | None = None,
        container_factory: Callable[[AppConfig], SearchContainer] | None = None,
    ) -> None:
        """Override factories for tests and reset cached instances."""
        cls._config_factory = config_factory or load_config
        cls._container_factory = container_factory or _default_container_factory
        cls._config = None
        cls._container = None


def get_app_config() -> AppConfig:
    """FastAPI dependency for the process-wide configuration."""
    return _SearchResourceManager.get_config()


async def get_search_container() -> SearchContainer:
    """FastAPI dependency for the singleton search stack."""
    return await _SearchResourceManager.get_container()


async def get_bookmark_search_service() -> BookmarkSearchService:
    return (await get_search_container()).search


async def get_user_repository() -> SqliteUserRepositoryAdapter:
    return (await get_search_container()).users


async def shutdown_search_resources() -> None:
    """Shutdown hook to release the database and Redis connections."""
    await _SearchResourceManager.shutdown()


def set_search_factories_for_tests(
    *,
    config_factory: Callable[[], AppConfig] | None = None,
    container_factory: Callable[[AppConfig], SearchContainer] | None = None,
) -> None:
    """Test helper to override factories."""
    _SearchResourceManager.set_factories_for_tests(
        config_factory=config_factory,
        container_factory=container_factory,
    )
