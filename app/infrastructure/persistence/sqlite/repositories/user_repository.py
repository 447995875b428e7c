"""SQLite implementation of the user lookups search needs."""

from __future__ import annotations

from typing import Any

from app.db.models import User, model_to_dict
from app.infrastructure.persistence.sqlite.base import SqliteBaseRepository


class SqliteUserRepositoryAdapter(SqliteBaseRepository):
    """Adapter for user creation and public share-link resolution."""

    async def async_create_user(
        self,
        *,
        name: str | None = None,
        public_link_slug: str | None = None,
        public_link_enabled: bool = False,
        user_id: str | None = None,
    ) -> str:
        def _insert() -> str:
            values: dict[str, Any] = {
                "name": name,
                "public_link_slug": public_link_slug,
                "public_link_enabled": public_link_enabled,
            }
            if user_id:
                values["id"] = user_id
            return User.create(**values).id

        return await self._execute(_insert, operation_name="create_user")

    async def async_get_user(self, user_id: str) -> dict[str, Any] | None:
        def _query() -> dict[str, Any] | None:
            return model_to_dict(User.get_or_none(User.id == user_id))

        return await self._execute(_query, operation_name="get_user", read_only=True)

    async def async_get_public_owner_id(self, slug: str) -> str | None:
        """Owner id behind an enabled public share link, or None."""

        def _query() -> str | None:
            user = User.get_or_none(
                (User.public_link_slug == slug) & (User.public_link_enabled == True)  # noqa: E712
            )
            return user.id if user else None

        return await self._execute(_query, operation_name="get_public_owner", read_only=True)
