"""
Configuration - Environment-driven settings.

Every setting has a default that works for local play against the
in-memory store; deployments override them with PAIRPLAY_* environment
variables (ALLOWED_ORIGINS is shared with the other services and has no
prefix).
"""

from __future__ import annotations
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class SyncSettings(BaseSettings):
    """Settings shared by the coordinator, the HTTP adapters and the API."""

    model_config = SettingsConfigDict(env_prefix="PAIRPLAY_", populate_by_name=True)

    env: str = "development"
    log_level: str = "INFO"

    # Hosted store and webhook (unset means in-memory / logging only)
    api_url: str | None = None
    notify_url: str | None = None
    http_timeout: float = 10.0

    # Coordinator tuning
    min_refetch_interval: float = 0.25
    read_retries: int = 3
    read_backoff: float = 0.1

    # Comma-separated in the environment
    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        validation_alias="ALLOWED_ORIGINS",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("api_url", "notify_url", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_env(cls) -> SyncSettings:
        """Read settings from the environment."""
        return cls()

    @property
    def is_production(self) -> bool:
        return self.env == "production"
