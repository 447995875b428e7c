"""SQLite repository adapters.

This package contains repository adapters that implement the search store
contracts using SQLite/Peewee as the persistence layer.
"""

from app.infrastructure.persistence.sqlite.repositories.bookmark_repository import (
    SqliteBookmarkRepositoryAdapter,
)
from app.infrastructure.persistence.sqlite.repositories.user_repository import (
    SqliteUserRepositoryAdapter,
)

__all__ = [
    "SqliteBookmarkRepositoryAdapter",
    "SqliteUserRepositoryAdapter",
]
