# src/telemetry_relay/contracts/dispatch.py
"""Dispatch-stream value types.

These cross the boundary between the retry policy, the dispatcher, and
observers. All are immutable; a stream advances by replacing its
DispatchAttempt, never by mutating one.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Any

from telemetry_relay.contracts.batch import TelemetryBatch
from telemetry_relay.contracts.enums import DispatchStatus, RetryAction
from telemetry_relay.contracts.signals import Signal


@dataclass(frozen=True, slots=True)
class Lineage:
    """Identity of a dispatch stream within its split tree.

    The root stream has an empty path. A split appends 0 for the first half
    and 1 for the second, so "3f2a.../1/0" is the first half of the second
    half of the root batch.
    """

    root_id: str
    path: tuple[int, ...] = ()

    @classmethod
    def new_root(cls) -> Lineage:
        return cls(root_id=uuid.uuid4().hex)

    def child(self, index: int) -> Lineage:
        """Lineage of the index-th half produced by splitting this stream."""
        if index not in (0, 1):
            raise ValueError(f"Split child index must be 0 or 1, got {index}")
        return Lineage(root_id=self.root_id, path=(*self.path, index))

    @property
    def depth(self) -> int:
        return len(self.path)

    def __str__(self) -> str:
        return "/".join([self.root_id, *(str(p) for p in self.path)])


@dataclass(frozen=True, slots=True)
class DispatchAttempt:
    """State of one stream at the moment of a send attempt.

    Owned exclusively by its stream.

    Attributes:
        batch: Batch being sent
        lineage: Stream identity within the split tree
        attempt: 1-based count of sends made by this stream, including this one
        backoff_count: Exponent for the next exponential backoff delay.
            Only BackoffRequested advances it.
        next_delay_seconds: Delay scheduled before this attempt, if any
    """

    batch: TelemetryBatch[Any]
    lineage: Lineage
    attempt: int = 1
    backoff_count: int = 0
    next_delay_seconds: float | None = None

    def next(self, *, delay_seconds: float | None, advance_backoff: bool) -> DispatchAttempt:
        """Attempt that follows this one for the same batch."""
        return replace(
            self,
            attempt=self.attempt + 1,
            backoff_count=self.backoff_count + 1 if advance_backoff else self.backoff_count,
            next_delay_seconds=delay_seconds,
        )

    def children(self) -> tuple[DispatchAttempt, DispatchAttempt]:
        """Fresh first attempts for the two halves of this batch.

        Raises:
            BatchSplitError: If the batch has fewer than 2 records.
        """
        first, second = self.batch.split()
        return (
            DispatchAttempt(batch=first, lineage=self.lineage.child(0)),
            DispatchAttempt(batch=second, lineage=self.lineage.child(1)),
        )


@dataclass(frozen=True, slots=True)
class RetryDecision:
    """Output of RetryPolicy.decide().

    Attributes:
        action: What to do with the stream
        delay_seconds: Wait before the next send (RETRY_AFTER_DELAY only)
        advances_backoff: Whether the next attempt moves one step up the
            exponential sequence
        reason: Diagnostic carried from the signal
    """

    action: RetryAction
    delay_seconds: float = 0.0
    advances_backoff: bool = False
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class TerminalOutcome:
    """Reported once per leaf stream when it ends.

    Attributes:
        status: SUCCEEDED, FAILED, or CANCELLED
        batch: Batch the stream owned
        lineage: Stream identity
        attempts: Number of sends the stream made
        signal: Last signal received, if any send happened
        reason: Human-readable cause for FAILED/CANCELLED
    """

    status: DispatchStatus
    batch: TelemetryBatch[Any]
    lineage: Lineage
    attempts: int
    signal: Signal | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == DispatchStatus.SUCCEEDED
