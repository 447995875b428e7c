"""Service for turning search queries into embedding vectors."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from app.domain.exceptions.domain_exceptions import EmbeddingUnavailableError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sentence_transformers import SentenceTransformer

    from app.infrastructure.cache.embedding_cache import EmbeddingCache

logger = logging.getLogger(__name__)

EMBEDDING_DTYPE = np.dtype("<f4")


def serialize_embedding(embedding: Sequence[float] | np.ndarray) -> bytes:
    """Pack a vector as little-endian float32 bytes for blob storage."""
    return np.asarray(embedding, dtype=EMBEDDING_DTYPE).tobytes()


def deserialize_embedding(blob: bytes | None) -> np.ndarray | None:
    if not blob:
        return None
    return np.frombuffer(blob, dtype=EMBEDDING_DTYPE)


class EmbeddingService:
    """Generate query embeddings with a lazily loaded sentence-transformers model."""

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        *,
        cache: EmbeddingCache | None = None,
    ) -> None:
        self._model_name = model_name
        self._model: SentenceTransformer | None = None
        self._dimensions: int | None = None
        self._cache = cache
        self._load_lock = asyncio.Lock()

    def _ensure_model(self) -> SentenceTransformer:
        """Lazy load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name)
            self._dimensions = int(self._model.get_sentence_embedding_dimension() or 0)
            logger.info(
                "embedding_model_loaded",
                extra={"model": self._model_name, "dims": self._dimensions},
            )
        return self._model

    async def generate_embedding(self, text: str) -> np.ndarray:
        """Embed ``text``; raises EmbeddingUnavailableError when the model cannot run."""
        if self._cache is not None:
            cached = await self._cache.get(text, self._model_name)
            if cached is not None:
                return np.asarray(cached, dtype=EMBEDDING_DTYPE)

        try:
            async with self._load_lock:
                model = await asyncio.to_thread(self._ensure_model)
            vector: Any = await asyncio.to_thread(
                model.encode, text, convert_to_numpy=True, show_progress_bar=False
            )
        except (ImportError, OSError, RuntimeError, ValueError) as exc:
            logger.warning(
                "embedding_generation_failed",
                extra={"model": self._model_name, "error": str(exc)},
            )
            msg = f"Embedding model {self._model_name} is unavailable"
            raise EmbeddingUnavailableError(msg, details={"model": self._model_name}) from exc

        embedding = np.asarray(vector, dtype=EMBEDDING_DTYPE)
        if self._cache is not None:
            await self._cache.set(text, self._model_name, embedding)
        return embedding

    @property
    def model_name(self) -> str:
        return self._model_name
