from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class McpConfig(BaseModel):
    """MCP (Model Context Protocol) server configuration.

    Controls the MCP server that exposes bookmark search to AI assistants.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str | None = Field(
        default=None,
        validation_alias="MCP_USER_ID",
        description="Owner whose bookmarks the assistant tools search",
    )
    transport: str = Field(
        default="stdio",
        validation_alias="MCP_TRANSPORT",
        description="Transport protocol: 'stdio' or 'sse'",
    )
    host: str = Field(
        default="127.0.0.1",
        validation_alias="MCP_HOST",
        description="Bind address for SSE transport",
    )
    port: int = Field(
        default=8200,
        validation_alias="MCP_PORT",
        description="Port for SSE transport",
    )

    @field_validator("user_id", mode="before")
    @classmethod
    def _normalize_user_id(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        return str(value).strip() or None

    @field_validator("transport", mode="before")
    @classmethod
    def _validate_transport(cls, value: Any) -> str:
        if value in (None, ""):
            return "stdio"
        value = str(value).strip().lower()
        if value not in ("stdio", "sse"):
            msg = "MCP transport must be 'stdio' or 'sse'"
            raise ValueError(msg)
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _validate_port(cls, value: Any) -> int:
        if value in (None, ""):
            return 8200
        try:
            parsed = int(str(value))
        except ValueError as exc:
            msg = "MCP port must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 65535:
            msg = "MCP port must be between 1 and 65535"
            raise ValueError(msg)
        return parsed
