# src/telemetry_relay/contracts/signals.py
"""Closed set of send-attempt outcomes returned by a Transport.

Signals are plain frozen values, consumed by structural pattern matching
in the retry policy. Transports return them; they never raise them.

    match signal:
        case Success(): ...
        case RequestedWait(duration_seconds=d): ...
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar

from telemetry_relay.contracts.enums import SignalKind


@dataclass(frozen=True, slots=True)
class Success:
    """Batch accepted by the remote endpoint."""

    kind: ClassVar[SignalKind] = SignalKind.SUCCESS

    reason: str | None = None


@dataclass(frozen=True, slots=True)
class BackoffRequested:
    """Transient failure; retry after an exponentially increasing delay."""

    kind: ClassVar[SignalKind] = SignalKind.BACKOFF_REQUESTED

    reason: str | None = None


@dataclass(frozen=True, slots=True)
class RequestedWait:
    """The endpoint named how long to wait before retrying.

    Attributes:
        duration_seconds: Exact delay to honour, overriding backoff
        reason: Optional diagnostic (e.g. "429 Retry-After")

    Raises:
        ValueError: If duration_seconds is negative or not finite.
    """

    kind: ClassVar[SignalKind] = SignalKind.REQUESTED_WAIT

    duration_seconds: float
    reason: str | None = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.duration_seconds) or self.duration_seconds < 0:
            raise ValueError(f"RequestedWait duration must be a finite value >= 0, got {self.duration_seconds}")


@dataclass(frozen=True, slots=True)
class SplitRequested:
    """Batch exceeds a size or payload limit and must be divided."""

    kind: ClassVar[SignalKind] = SignalKind.SPLIT_REQUESTED

    reason: str | None = None


@dataclass(frozen=True, slots=True)
class PermanentFailure:
    """Batch will never succeed; do not retry.

    Attributes:
        reason: Human-readable cause
        status_code: HTTP status, when the failure came from a response
        error: Exception that caused the failure, when there was one
    """

    kind: ClassVar[SignalKind] = SignalKind.PERMANENT_FAILURE

    reason: str | None = None
    status_code: int | None = None
    error: BaseException | None = None


Signal = Success | BackoffRequested | RequestedWait | SplitRequested | PermanentFailure
