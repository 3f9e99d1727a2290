"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Solana activity service, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class HeliusSettings(BaseSettings):
    """Helius API and RPC settings."""

    model_config = SettingsConfigDict(env_prefix="HELIUS_", extra="ignore")

    api_key: SecretStr | None = Field(
        default=None,
        alias="HELIUS_API_KEY",
        description="Helius API key (required to fetch transactions and assets)",
    )
    api_url: str = Field(
        default="https://api.helius.xyz/v0",
        alias="HELIUS_API_URL",
        description="Helius REST API base URL (parsed transaction history)",
    )
    rpc_url: str = Field(
        default="https://mainnet.helius-rpc.com",
        alias="HELIUS_RPC_URL",
        description="Helius JSON-RPC endpoint (DAS asset lookups)",
    )
    max_requests_per_second: float = Field(
        default=10.0,
        alias="HELIUS_MAX_REQUESTS_PER_SECOND",
        gt=0.0,
        le=1000.0,
        description="Client-side rate limit for Helius requests",
    )
    max_retries: int = Field(
        default=3,
        alias="HELIUS_MAX_RETRIES",
        ge=0,
        le=10,
        description="Retry attempts on transient errors (429/5xx, network)",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        alias="HELIUS_RETRY_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Initial retry delay; doubles on each attempt",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        alias="HELIUS_REQUEST_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="HTTP request timeout",
    )

    @field_validator("api_url", "rpc_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Helius URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Helius URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class RedisSettings(BaseSettings):
    """Redis connection settings (asset metadata cache)."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; unset disables asset caching",
    )
    asset_cache_ttl_seconds: int = Field(
        default=24 * 3600,
        alias="REDIS_ASSET_CACHE_TTL_SECONDS",
        ge=60,
        le=90 * 24 * 3600,
        description="TTL for cached asset metadata",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class HistorySettings(BaseSettings):
    """Transaction history paging and asset lookup settings."""

    model_config = SettingsConfigDict(env_prefix="HISTORY_", extra="ignore")

    page_limit: int = Field(
        default=100,
        alias="HISTORY_PAGE_LIMIT",
        ge=1,
        le=100,
        description="Transactions requested per history page",
    )
    lookback_days: int = Field(
        default=30,
        alias="HISTORY_LOOKBACK_DAYS",
        ge=1,
        le=3650,
        description="Default history window when no explicit start is given",
    )
    asset_batch_size: int = Field(
        default=1000,
        alias="HISTORY_ASSET_BATCH_SIZE",
        ge=1,
        le=1000,
        description="Asset ids per getAssetBatch request",
    )
    commitment: Literal["confirmed", "finalized"] = Field(
        default="confirmed",
        alias="HISTORY_COMMITMENT",
        description="Commitment level for history queries",
    )
    fee_payer_only: bool = Field(
        default=True,
        alias="HISTORY_FEE_PAYER_ONLY",
        description="Only keep transactions paid for by the observed address (filters spam)",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from solana_activity.config import get_settings

        settings = get_settings()
        print(settings.helius.api_url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    helius: HeliusSettings = Field(
        default_factory=lambda: HeliusSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    history: HistorySettings = Field(
        default_factory=lambda: HistorySettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "helius": {
                "api_key": "(set)" if self.helius.api_key else "(not set)",
                "api_url": self.helius.api_url,
                "rpc_url": self.helius.rpc_url,
                "max_requests_per_second": str(self.helius.max_requests_per_second),
                "max_retries": str(self.helius.max_retries),
            },
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "history": {
                "page_limit": str(self.history.page_limit),
                "lookback_days": str(self.history.lookback_days),
                "asset_batch_size": str(self.history.asset_batch_size),
                "commitment": self.history.commitment,
                "fee_payer_only": str(self.history.fee_payer_only),
            },
            "log_level": self.log_level,
        }

    def validate_requirements(self, *, command: Literal["fetch", "filter"]) -> None:
        """Validate command-specific requirements.

        Filtering already-summarized data needs no credentials; anything
        that talks to Helius does.
        """
        if command == "fetch" and not self.helius.api_key:
            raise ValueError("HELIUS_API_KEY is required to fetch transactions and assets")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
