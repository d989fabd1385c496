"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import DEFAULT_FILTER_TAG


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing or invalid."""


class Settings(BaseModel):
    """Schema for mintscope runtime configuration."""

    model_config = ConfigDict(frozen=True)

    yellowstone_endpoint: str
    yellowstone_token: str
    solana_rpc_url: AnyUrl = Field("https://api.mainnet-beta.solana.com", validate_default=True)

    success_ttl: float = Field(60 * 60.0, gt=0)
    failed_ttl: float = Field(24 * 60 * 60.0, gt=0)
    retry_delay: float = Field(5 * 60.0, ge=0)
    sweep_interval: float = Field(60 * 60.0, gt=0)
    stats_interval: float = Field(5 * 60.0, gt=0)

    max_retries: int = Field(3, ge=1)
    retry_interval: float = Field(2.0, ge=0)
    workers: int = Field(8, ge=1)
    queue_size: int = Field(1024, ge=1)
    offchain_timeout: float = Field(5.0, gt=0)

    filter_tag: str = DEFAULT_FILTER_TAG
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("yellowstone_endpoint", "yellowstone_token", "filter_tag")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must be a non-empty string")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


# environment variable -> settings field
ENV_VARS: Dict[str, str] = {
    "YELLOWSTONE_ENDPOINT": "yellowstone_endpoint",
    "YELLOWSTONE_TOKEN": "yellowstone_token",
    "SOLANA_RPC_URL": "solana_rpc_url",
    "METADATA_SUCCESS_TTL": "success_ttl",
    "METADATA_FAILED_TTL": "failed_ttl",
    "METADATA_RETRY_DELAY": "retry_delay",
    "METADATA_SWEEP_INTERVAL": "sweep_interval",
    "METADATA_STATS_INTERVAL": "stats_interval",
    "ENRICH_MAX_RETRIES": "max_retries",
    "ENRICH_RETRY_INTERVAL": "retry_interval",
    "ENRICH_WORKERS": "workers",
    "ENRICH_QUEUE_SIZE": "queue_size",
    "OFFCHAIN_TIMEOUT": "offchain_timeout",
    "STREAM_FILTER_TAG": "filter_tag",
    "LOG_LEVEL": "log_level",
    "LOG_JSON": "log_json",
}

REQUIRED_ENV_VARS = ("YELLOWSTONE_ENDPOINT", "YELLOWSTONE_TOKEN")


def load_settings(env: Optional[Mapping[str, str]] = None, **overrides: Any) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``).

    Raises :class:`ConfigurationError` when a required variable is missing or
    a value fails validation.
    """

    source = os.environ if env is None else env
    missing = [name for name in REQUIRED_ENV_VARS if not (source.get(name) or "").strip()]
    if missing and not all(ENV_VARS[name] in overrides for name in missing):
        raise ConfigurationError(
            f"{' and '.join(REQUIRED_ENV_VARS)} must be set in environment variables "
            f"(missing: {', '.join(missing)})"
        )

    data: Dict[str, Any] = {}
    for name, field in ENV_VARS.items():
        raw = source.get(name)
        if raw is None or not raw.strip():
            continue
        data[field] = raw.strip()
    data.update(overrides)
    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


__all__ = ["ConfigurationError", "ENV_VARS", "REQUIRED_ENV_VARS", "Settings", "load_settings"]
