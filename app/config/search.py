from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from ._validators import parse_bounded_float, parse_bounded_int

MIN_MATCHING_DISTANCE = 0.1
MAX_MATCHING_DISTANCE = 2.0


class SearchConfig(BaseModel):
    """Per-caller defaults and limits for bookmark search."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    default_limit: int = Field(default=20, validation_alias="SEARCH_DEFAULT_LIMIT")
    app_max_limit: int = Field(default=50, validation_alias="SEARCH_APP_MAX_LIMIT")
    api_max_limit: int = Field(default=100, validation_alias="SEARCH_API_MAX_LIMIT")
    assistant_default_limit: int = Field(
        default=6, validation_alias="SEARCH_ASSISTANT_DEFAULT_LIMIT"
    )
    assistant_max_limit: int = Field(default=20, validation_alias="SEARCH_ASSISTANT_MAX_LIMIT")

    app_matching_distance: float = Field(
        default=0.1,
        validation_alias="SEARCH_APP_MATCHING_DISTANCE",
        description="Default threshold for in-app and API search",
    )
    public_matching_distance: float = Field(
        default=0.3,
        validation_alias="SEARCH_PUBLIC_MATCHING_DISTANCE",
        description="Threshold for public share-link search",
    )
    assistant_matching_distance: float = Field(
        default=0.8,
        validation_alias="SEARCH_ASSISTANT_MATCHING_DISTANCE",
        description="Threshold for assistant tool search (wider recall)",
    )

    semantic_enabled: bool = Field(default=True, validation_alias="SEARCH_SEMANTIC_ENABLED")
    semantic_timeout_sec: float = Field(
        default=2.0,
        validation_alias="SEARCH_SEMANTIC_TIMEOUT_SEC",
        description="Deadline for the semantic path before falling back to lexical results",
    )
    semantic_candidate_limit: int = Field(
        default=500, validation_alias="SEARCH_SEMANTIC_CANDIDATE_LIMIT"
    )
    max_query_length: int = Field(default=500, validation_alias="SEARCH_MAX_QUERY_LENGTH")
    cache_max_entries: int = Field(
        default=2_000,
        validation_alias="SEARCH_CACHE_MAX_ENTRIES",
        description="Size of the in-process cache used when Redis is disabled",
    )

    @field_validator(
        "default_limit",
        "app_max_limit",
        "api_max_limit",
        "assistant_default_limit",
        "assistant_max_limit",
        mode="before",
    )
    @classmethod
    def _validate_limits(cls, value: Any, info: ValidationInfo) -> int:
        return parse_bounded_int(
            value,
            default=cls.model_fields[info.field_name].default,
            name=info.field_name.replace("_", " "),
            min_val=1,
            max_val=500,
        )

    @field_validator(
        "app_matching_distance",
        "public_matching_distance",
        "assistant_matching_distance",
        mode="before",
    )
    @classmethod
    def _validate_distance(cls, value: Any, info: ValidationInfo) -> float:
        return parse_bounded_float(
            value,
            default=cls.model_fields[info.field_name].default,
            name=info.field_name.replace("_", " "),
            min_val=MIN_MATCHING_DISTANCE,
            max_val=MAX_MATCHING_DISTANCE,
        )

    @field_validator("semantic_timeout_sec", mode="before")
    @classmethod
    def _validate_semantic_timeout(cls, value: Any) -> float:
        return parse_bounded_float(
            value,
            default=2.0,
            name="semantic timeout",
            min_val=0.01,
            max_val=60.0,
        )

    @field_validator("semantic_candidate_limit", "max_query_length", "cache_max_entries", mode="before")
    @classmethod
    def _validate_sizes(cls, value: Any, info: ValidationInfo) -> int:
        return parse_bounded_int(
            value,
            default=cls.model_fields[info.field_name].default,
            name=info.field_name.replace("_", " "),
            min_val=1,
            max_val=100_000,
        )

    @model_validator(mode="after")
    def _check_defaults_within_caps(self) -> SearchConfig:
        if self.default_limit > min(self.app_max_limit, self.api_max_limit):
            msg = "SEARCH_DEFAULT_LIMIT must not exceed the app or API page cap"
            raise ValueError(msg)
        if self.assistant_default_limit > self.assistant_max_limit:
            msg = "SEARCH_ASSISTANT_DEFAULT_LIMIT must not exceed SEARCH_ASSISTANT_MAX_LIMIT"
            raise ValueError(msg)
        return self


class EmbeddingConfig(BaseModel):
    """Query embedding model settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    model_name: str = Field(
        default="all-MiniLM-L6-v2",
        validation_alias="EMBEDDING_MODEL",
        description="sentence-transformers model used to embed search queries",
    )

    @field_validator("model_name", mode="before")
    @classmethod
    def _validate_model_name(cls, value: Any) -> str:
        name = str(value or "all-MiniLM-L6-v2").strip()
        if len(name) > 200 or ".." in name:
            msg = "Embedding model name is invalid"
            raise ValueError(msg)
        return name
