"""Cache helpers."""

from app.infrastructure.cache.embedding_cache import EmbeddingCache
from app.infrastructure.cache.memory_cache import InMemoryCache
from app.infrastructure.cache.redis_cache import RedisCache
from app.infrastructure.cache.search_cache import SearchResultCache

__all__ = [
    "EmbeddingCache",
    "InMemoryCache",
    "RedisCache",
    "SearchResultCache",
]
