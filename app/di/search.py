"""Wiring for the bookmark search stack."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.config import AppConfig, load_config
from app.db.session import DatabaseSessionManager
from app.infrastructure.cache.embedding_cache import EmbeddingCache
from app.infrastructure.cache.memory_cache import InMemoryCache
from app.infrastructure.cache.redis_cache import RedisCache
from app.infrastructure.cache.search_cache import SearchResultCache
from app.infrastructure.persistence.sqlite.repositories.bookmark_repository import (
    SqliteBookmarkRepositoryAdapter,
)
from app.infrastructure.persistence.sqlite.repositories.user_repository import (
    SqliteUserRepositoryAdapter,
)
from app.services.bookmark_search_service import BookmarkSearchService
from app.services.cached_search_service import CachedSearchService
from app.services.embedding_service import EmbeddingService
from app.services.hybrid_search_service import HybridSearchService
from app.services.lexical_search_service import LexicalSearchService
from app.services.vector_search_service import VectorSearchService

if TYPE_CHECKING:
    from app.protocols import CacheBackend, QueryEmbedder

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SearchContainer:
    """Everything a caller needs to search and to keep the cache honest."""

    db: DatabaseSessionManager
    bookmarks: SqliteBookmarkRepositoryAdapter
    users: SqliteUserRepositoryAdapter
    search: BookmarkSearchService


def build_database(cfg: AppConfig) -> DatabaseSessionManager:
    db = DatabaseSessionManager(
        path=cfg.runtime.db_path,
        operation_timeout=cfg.database.operation_timeout,
        max_retries=cfg.database.max_retries,
    )
    db.migrate()
    return db


def build_cache_backend(cfg: AppConfig) -> CacheBackend:
    """Redis when enabled, otherwise an in-process TTL cache."""
    if cfg.redis.enabled and cfg.redis.cache_enabled:
        return RedisCache(cfg)
    return InMemoryCache(prefix=cfg.redis.prefix, max_entries=cfg.search.cache_max_entries)


def build_search_container(
    cfg: AppConfig | None = None,
    *,
    db: DatabaseSessionManager | None = None,
    embedder: QueryEmbedder | None = None,
    cache_backend: CacheBackend | None = None,
) -> SearchContainer:
    """Construct the search stack with DI-friendly overrides.

    Args:
        cfg: Application configuration. If None, loads from environment.
        db: Database session manager. If None, creates and migrates one from config.
        embedder: Query embedder. If None, uses sentence-transformers (with a
            Redis-backed embedding cache when Redis is enabled).
        cache_backend: Page cache backend. If None, picks Redis or in-process.
    """
    cfg = cfg or load_config()
    db = db or build_database(cfg)

    bookmarks = SqliteBookmarkRepositoryAdapter(db)
    users = SqliteUserRepositoryAdapter(db)

    vector: VectorSearchService | None = None
    if cfg.search.semantic_enabled:
        if embedder is None:
            embedding_cache = None
            if cfg.redis.enabled and cfg.redis.cache_enabled:
                embedding_cache = EmbeddingCache(RedisCache(cfg), cfg)
            embedder = EmbeddingService(cfg.embedding.model_name, cache=embedding_cache)
        vector = VectorSearchService(
            bookmarks, embedder, candidate_limit=cfg.search.semantic_candidate_limit
        )

    engine = HybridSearchService(
        bookmarks,
        LexicalSearchService(bookmarks),
        vector,
        semantic_timeout_sec=cfg.search.semantic_timeout_sec,
    )

    backend = cache_backend if cache_backend is not None else build_cache_backend(cfg)
    cache = SearchResultCache(backend, ttl_seconds=cfg.redis.search_cache_ttl_seconds)
    cached = CachedSearchService(engine, cache)
    bookmarks.set_write_listener(cached.invalidate_owner)

    logger.info(
        "search_container_built",
        extra={
            "semantic_enabled": vector is not None,
            "cache_backend": type(backend).__name__,
            "cache_ttl": cfg.redis.search_cache_ttl_seconds,
        },
    )
    return SearchContainer(
        db=db,
        bookmarks=bookmarks,
        users=users,
        search=BookmarkSearchService(cached, cfg.search),
    )
