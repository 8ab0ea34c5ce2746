"""Pydantic models describing forumpost configuration."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from forumpost.util.retry import RetryPolicy


class ApiConfig(BaseModel):
    """Discord REST endpoint and credentials."""

    model_config = ConfigDict(extra="allow")

    base_url: str = "https://discord.com/api/v10"
    token: str = ""
    timeout_seconds: float = Field(default=30, ge=1)
    user_agent: str = "DiscordBot (https://github.com/forumpost/forumpost, 0.1.0)"


class RetryConfig(BaseModel):
    """Rate-limit retry tuning; the defaults match Discord's guidance."""

    model_config = ConfigDict(extra="allow")

    max_retries: int = Field(default=5, ge=1)
    base_backoff_seconds: float = Field(default=1.0, gt=0)
    max_backoff_seconds: float = Field(default=120.0, gt=0)
    retry_after_buffer_seconds: float = Field(default=0.5, ge=0)
    default_retry_after_seconds: float = Field(default=5.0, gt=0)

    @model_validator(mode="after")
    def _validate_ceiling(self) -> "RetryConfig":
        """Ensure the ceiling is not below the base delay."""

        if self.max_backoff_seconds < self.base_backoff_seconds:
            raise ValueError("max_backoff_seconds must be >= base_backoff_seconds.")
        return self

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_backoff=timedelta(seconds=self.base_backoff_seconds),
            max_backoff=timedelta(seconds=self.max_backoff_seconds),
            retry_after_buffer=timedelta(seconds=self.retry_after_buffer_seconds),
            default_retry_after=timedelta(seconds=self.default_retry_after_seconds),
        )


class RuntimeConfig(BaseModel):
    """Execution-time settings such as where run records and logs go."""

    model_config = ConfigDict(extra="allow")

    state_root: Path = Path("./state")
    log_path: Optional[Path] = None
    log_level: str = "INFO"


class ProviderConfig(BaseModel):
    """Root configuration object for the provider."""

    model_config = ConfigDict(extra="allow")

    api: ApiConfig = Field(default_factory=ApiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)


__all__ = [
    "ApiConfig",
    "ProviderConfig",
    "RetryConfig",
    "RuntimeConfig",
]
