from __future__ import annotations

from .database import DatabaseConfig
from .infrastructure import McpConfig
from .redis import RedisConfig
from .search import MAX_MATCHING_DISTANCE, MIN_MATCHING_DISTANCE, EmbeddingConfig, SearchConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config

__all__ = [
    "MAX_MATCHING_DISTANCE",
    "MIN_MATCHING_DISTANCE",
    "AppConfig",
    "DatabaseConfig",
    "EmbeddingConfig",
    "McpConfig",
    "RedisConfig",
    "RuntimeConfig",
    "SearchConfig",
    "Settings",
    "load_config",
]
