"""Redis cache for query embedding vectors.

Repeated searches for the same text skip the embedding model entirely.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from app.config import AppConfig
    from app.infrastructure.cache.redis_cache import RedisCache

logger = logging.getLogger(__name__)


class EmbeddingCache:
    """Cache query embeddings in Redis.

    Key pattern: {prefix}:qembed:v1:{model_name}:{text_hash}
    Value: {"embedding": base64_encoded_float32_array, "dimensions": int}
    TTL: REDIS_EMBEDDING_CACHE_TTL_SECONDS
    """

    def __init__(self, cache: RedisCache, cfg: AppConfig) -> None:
        self._cache = cache
        self._cfg = cfg

    @property
    def enabled(self) -> bool:
        return self._cache.enabled

    @staticmethod
    def hash_content(text: str) -> str:
        """SHA256 truncated to 32 chars for reasonable key length."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()[:32]

    @staticmethod
    def serialize_embedding(embedding: Any) -> str:
        packed = np.asarray(embedding, dtype="<f4").tobytes()
        return base64.b64encode(packed).decode("ascii")

    @staticmethod
    def deserialize_embedding(encoded: str) -> list[float]:
        packed = base64.b64decode(encoded, validate=True)
        return np.frombuffer(packed, dtype="<f4").tolist()

    async def get(self, text: str, model_name: str) -> list[float] | None:
        """Return the cached embedding for ``text`` or None."""
        if not self._cache.enabled:
            return None

        text_hash = self.hash_content(text)
        cached = await self._cache.get_json("qembed", "v1", model_name, text_hash)
        if not isinstance(cached, dict):
            return None

        embedding_b64 = cached.get("embedding")
        if not isinstance(embedding_b64, str):
            return None

        try:
            embedding = self.deserialize_embedding(embedding_b64)
        except (binascii.Error, ValueError) as exc:
            logger.warning(
                "embedding_cache_deserialize_failed",
                extra={"hash": text_hash[:8], "error": str(exc)},
            )
            return None

        if cached.get("dimensions") not in (None, len(embedding)):
            logger.warning("embedding_cache_dimension_mismatch", extra={"hash": text_hash[:8]})
            return None

        logger.debug(
            "embedding_cache_hit",
            extra={"model": model_name, "hash": text_hash[:8], "dimensions": len(embedding)},
        )
        return embedding

    async def set(self, text: str, model_name: str, embedding: Any) -> bool:
        if not self._cache.enabled:
            return False

        text_hash = self.hash_content(text)
        value = {
            "embedding": self.serialize_embedding(embedding),
            "dimensions": int(np.asarray(embedding).size),
            "model": model_name,
        }
        return await self._cache.set_json(
            value=value,
            ttl_seconds=self._cfg.redis.embedding_cache_ttl_seconds,
            parts=("qembed", "v1", model_name, text_hash),
        )
