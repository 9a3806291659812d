# tests/fixtures/__init__.py
"""Shared test doubles for telemetry-relay tests."""

from tests.fixtures.dispatch import (
    RaisingTransport,
    ScriptedTransport,
    SendRecord,
    SynchronousExecutor,
    make_batch,
    make_metric,
)

__all__ = [
    "RaisingTransport",
    "ScriptedTransport",
    "SendRecord",
    "SynchronousExecutor",
    "make_batch",
    "make_metric",
]
