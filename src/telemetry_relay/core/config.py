# src/telemetry_relay/core/config.py
"""Configuration schema and loading.

Settings are pydantic models, frozen after validation. load_settings()
layers a YAML file, RELAY_* environment variables, and ${VAR} expansion
before validating.

Example settings.yaml:

    transport:
      endpoint: https://metric-api.example.com/metric/v1
      api_key: ${RELAY_API_KEY}
    retry:
      initial_delay_seconds: 1.0
      max_delay_seconds: 15.0
    dispatcher:
      max_workers: 8
"""

import os
import re
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator


class RetrySettings(BaseModel):
    """Backoff configuration for transient delivery failures.

    There is deliberately no max_attempts: a stream retries until it
    succeeds, is permanently rejected, or is cancelled.
    """

    model_config = {"frozen": True}

    initial_delay_seconds: float = Field(default=1.0, gt=0, description="Delay after the first backoff")
    max_delay_seconds: float = Field(default=15.0, gt=0, description="Cap on any single backoff delay")
    exponential_base: float = Field(default=2.0, gt=1.0, description="Backoff multiplier")
    jitter_seconds: float = Field(default=0.5, ge=0, description="Upper bound of additive random jitter")

    @model_validator(mode="after")
    def validate_delay_bounds(self) -> "RetrySettings":
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise ValueError(
                f"max_delay_seconds ({self.max_delay_seconds}) must be >= initial_delay_seconds ({self.initial_delay_seconds})"
            )
        return self


class DispatcherSettings(BaseModel):
    """Worker pool and shutdown behaviour of the BatchDispatcher."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=8, gt=0, description="Threads available for concurrent sends")
    shutdown_timeout_seconds: float = Field(default=10.0, gt=0, description="How long close() waits for live streams")


class TransportSettings(BaseModel):
    """HTTP ingest endpoint configuration."""

    model_config = {"frozen": True}

    endpoint: str = Field(description="Full ingest URL, http or https")
    api_key: str | None = Field(default=None, description="Sent as the Api-Key header")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    gzip: bool = Field(default=True, description="gzip-compress request bodies")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra request headers")

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"endpoint must be an absolute http(s) URL, got {v!r}")
        return v


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class RelaySettings(BaseModel):
    """Top-level configuration."""

    model_config = {"frozen": True}

    transport: TransportSettings
    retry: RetrySettings = Field(default_factory=RetrySettings)
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values.

    Unset variables without a default are left as-is so validation
    reports them against the field that needed them.
    """
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _lower_keys(value: Any) -> Any:
    """Lowercase mapping keys at every level (Dynaconf uppercases env-derived keys)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> RelaySettings:
    """Load settings from a YAML file with environment overrides.

    Precedence, highest first:
    1. Environment variables (RELAY_*), nested with __:
       RELAY_DISPATCHER__MAX_WORKERS=4
    2. The YAML file
    3. Model defaults

    Args:
        config_path: Path to the YAML settings file

    Returns:
        Validated RelaySettings

    Raises:
        FileNotFoundError: If config_path does not exist
        pydantic.ValidationError: If the merged configuration is invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="RELAY",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(_lower_keys(raw_config))

    return RelaySettings(**raw_config)
