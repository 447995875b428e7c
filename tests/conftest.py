"""Pytest configuration and shared fixtures.

Tests run against real temporary SQLite databases; the embedding model and
Redis are replaced by small deterministic fakes.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import pytest

from app.config import AppConfig, load_config
from app.db.session import DatabaseSessionManager
from app.di.search import SearchContainer, build_search_container
from app.domain.exceptions.domain_exceptions import EmbeddingUnavailableError
from app.domain.models.bookmark import BookmarkStatus
from app.infrastructure.cache.memory_cache import InMemoryCache
from app.infrastructure.persistence.sqlite.repositories import (
    SqliteBookmarkRepositoryAdapter,
    SqliteUserRepositoryAdapter,
)

logger = logging.getLogger("peewee")
logger.setLevel(logging.WARNING)

TEST_JWT_SECRET = "test-secret-at-least-32-chars-long-string"

BASE_TIME = dt.datetime(2024, 5, 1, 12, 0, 0)


def at(minutes: int) -> dt.datetime:
    """Naive UTC timestamp ``minutes`` after a fixed base time."""
    return BASE_TIME + dt.timedelta(minutes=minutes)


def unit(*components: float) -> np.ndarray:
    vector = np.asarray(components, dtype=np.float32)
    return vector / np.linalg.norm(vector)


class FakeEmbedder:
    """Deterministic query embedder.

    Known texts map to fixed vectors; anything else gets ``default``.
    """

    def __init__(
        self,
        vectors: Mapping[str, Sequence[float]] | None = None,
        *,
        default: Sequence[float] = (0.0, 0.0, 1.0),
        delay: float = 0.0,
        fail: bool = False,
    ) -> None:
        self.vectors = {k: np.asarray(v, dtype=np.float32) for k, v in (vectors or {}).items()}
        self.default = np.asarray(default, dtype=np.float32)
        self.delay = delay
        self.fail = fail
        self.calls: list[str] = []

    async def generate_embedding(self, text: str) -> np.ndarray:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise EmbeddingUnavailableError("embedding model offline")
        return self.vectors.get(text, self.default)


def make_config(db_path: str, **overrides: Any) -> AppConfig:
    search = {"semantic_timeout_sec": 2.0, **overrides.pop("search", {})}
    runtime = {
        "db_path": db_path,
        "jwt_secret_key": TEST_JWT_SECRET,
        **overrides.pop("runtime", {}),
    }
    redis = {"enabled": False, **overrides.pop("redis", {})}
    return load_config(runtime=runtime, search=search, redis=redis, **overrides)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "bookmarks.db")


@pytest.fixture
def db(db_path):
    session = DatabaseSessionManager(path=db_path, operation_timeout=10.0)
    session.migrate()
    yield session
    session.close()


@pytest.fixture
def config(db_path) -> AppConfig:
    return make_config(db_path)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def cache_backend() -> InMemoryCache:
    return InMemoryCache(prefix="test", max_entries=100)


@pytest.fixture
def container(config, db, embedder, cache_backend) -> SearchContainer:
    return build_search_container(config, db=db, embedder=embedder, cache_backend=cache_backend)


@pytest.fixture
def bookmarks(container) -> SqliteBookmarkRepositoryAdapter:
    return container.bookmarks


@pytest.fixture
def users(container) -> SqliteUserRepositoryAdapter:
    return container.users


@pytest.fixture
def create_bookmark(bookmarks):
    """Insert a READY bookmark unless told otherwise; returns its id."""

    async def _create(owner_id: str, url: str, **fields: Any) -> str:
        fields.setdefault("status", BookmarkStatus.READY)
        return await bookmarks.async_create_bookmark(owner_id, url, **fields)

    return _create


@pytest.fixture
async def owner(users) -> str:
    return await users.async_create_user(name="Ada")
