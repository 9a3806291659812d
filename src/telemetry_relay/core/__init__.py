# src/telemetry_relay/core/__init__.py
"""Core infrastructure: Configuration, Logging."""

from telemetry_relay.core.config import (
    DispatcherSettings,
    LoggingSettings,
    RelaySettings,
    RetrySettings,
    TransportSettings,
    load_settings,
)
from telemetry_relay.core.logging import configure_logging

__all__ = [
    "DispatcherSettings",
    "LoggingSettings",
    "RelaySettings",
    "RetrySettings",
    "TransportSettings",
    "configure_logging",
    "load_settings",
]
