# src/telemetry_relay/engine/dispatcher.py
"""BatchDispatcher: non-blocking delivery with adaptive retry.

Every dispatch() starts a dispatch stream: an independent lineage of send
attempts for one batch, ending in exactly one terminal outcome. Streams
run their sends on executor workers and wait out retry delays on the
scheduler, so a parked stream holds no worker.

Signal handling per stream:
- Success: stream ends SUCCEEDED
- BackoffRequested: same batch again after the next exponential delay
- RequestedWait(d): same batch again after exactly d, backoff exponent unchanged
- SplitRequested: batch is halved; each half becomes a new stream with a
  fresh attempt counter and the parent retires without a notification
- PermanentFailure: stream ends FAILED

A single-record batch that is asked to split cannot make progress. It is
logged as a policy violation and ends FAILED.

Thread Safety:
    Stream state (current attempt, timer, cancellation flag) belongs to its
    stream and is guarded by the stream's own lock. Streams share only the
    transport (read-only) and the dispatcher's bookkeeping (live set and
    health counters, guarded by _state_lock). The retry path never reads
    the bookkeeping.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

import structlog

from telemetry_relay.contracts.batch import TelemetryBatch
from telemetry_relay.contracts.dispatch import DispatchAttempt, Lineage, RetryDecision, TerminalOutcome
from telemetry_relay.contracts.enums import DispatchStatus, RetryAction
from telemetry_relay.contracts.errors import BatchSplitError, DispatcherClosedError
from telemetry_relay.contracts.signals import (
    BackoffRequested,
    PermanentFailure,
    RequestedWait,
    Signal,
    SplitRequested,
    Success,
)
from telemetry_relay.engine.clock import Scheduler, SystemScheduler, TimerHandle
from telemetry_relay.engine.retry import RetryConfig, RetryPolicy

if TYPE_CHECKING:
    from telemetry_relay.contracts.protocols import ObserverSink, Transport
    from telemetry_relay.core.config import RelaySettings

logger = structlog.get_logger(__name__)

_SIGNAL_TYPES = (Success, BackoffRequested, RequestedWait, SplitRequested, PermanentFailure)


class DispatchHandle:
    """Caller-side reference to one dispatch stream.

    After a split the handle's own stream is finished (done() is True) and
    ``children`` holds the handles of the two halves. Cancelling a handle
    never reaches its children.
    """

    __slots__ = ("_stream",)

    def __init__(self, stream: _DispatchStream) -> None:
        self._stream = stream

    @property
    def lineage_id(self) -> str:
        return str(self._stream.lineage)

    @property
    def children(self) -> tuple[DispatchHandle, DispatchHandle] | None:
        """Handles of the split halves, or None if this stream never split."""
        children = self._stream.children
        if children is None:
            return None
        return DispatchHandle(children[0]), DispatchHandle(children[1])

    @property
    def outcome(self) -> TerminalOutcome | None:
        """Terminal outcome, once reported. None while running or after a split."""
        return self._stream.outcome

    def cancel(self) -> bool:
        """Request cooperative cancellation.

        Takes effect before the next retry delay or the next send. A send
        already in progress is allowed to finish; if it succeeds, the stream
        still ends SUCCEEDED.

        Returns:
            False if the stream had already finished, True otherwise.
        """
        return self._stream.cancel()

    def done(self) -> bool:
        return self._stream.finished.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until this stream finishes. Returns False on timeout."""
        return self._stream.finished.wait(timeout)

    def __repr__(self) -> str:
        return f"DispatchHandle({self.lineage_id!r}, done={self.done()})"


class _DispatchStream:
    """One retry lineage. Owns its DispatchAttempt exclusively."""

    def __init__(self, dispatcher: BatchDispatcher, attempt: DispatchAttempt) -> None:
        self._dispatcher = dispatcher
        self._attempt = attempt
        # Reentrant: ManualScheduler(auto_advance=True) resumes on the parking thread
        self._lock = threading.RLock()
        self._cancel_requested = False
        self._timer: TimerHandle | None = None
        self._sends = 0
        self._last_signal: Signal | None = None
        self.children: tuple[_DispatchStream, _DispatchStream] | None = None
        self.outcome: TerminalOutcome | None = None
        self.finished = threading.Event()

    @property
    def lineage(self) -> Lineage:
        return self._attempt.lineage

    def run_attempt(self) -> None:
        """Worker entry point: one send, then act on the decision.

        The executor's Future is never inspected; an unexpected error here
        ends the stream FAILED.
        """
        try:
            self._run_attempt()
        except Exception as e:
            logger.exception("Dispatch stream crashed", lineage=str(self.lineage))
            self._finish(DispatchStatus.FAILED, reason=f"dispatcher error {type(e).__name__}: {e}")

    def _run_attempt(self) -> None:
        with self._lock:
            if self.finished.is_set():
                return
            if self._cancel_requested:
                self._finish(DispatchStatus.CANCELLED, reason="cancelled before send")
                return
            attempt = self._attempt

        signal = self._dispatcher._send(attempt)
        with self._lock:
            self._sends += 1
            self._last_signal = signal
        decision = self._dispatcher._policy.decide(signal, attempt.backoff_count)
        self._dispatcher._count_signal(signal)

        match decision.action:
            case RetryAction.COMPLETE:
                self._finish(DispatchStatus.SUCCEEDED)
            case RetryAction.GIVE_UP:
                self._finish(DispatchStatus.FAILED, reason=decision.reason or "permanent failure")
            case RetryAction.SPLIT:
                self._split(attempt, decision)
            case RetryAction.RETRY_NOW:
                self._retry(attempt.next(delay_seconds=None, advance_backoff=False), decision)
            case RetryAction.RETRY_AFTER_DELAY:
                self._retry(
                    attempt.next(delay_seconds=decision.delay_seconds, advance_backoff=decision.advances_backoff),
                    decision,
                )

    def _retry(self, next_attempt: DispatchAttempt, decision: RetryDecision) -> None:
        delay = next_attempt.next_delay_seconds
        with self._lock:
            if self._cancel_requested:
                self._finish(DispatchStatus.CANCELLED, reason="cancelled before retry")
                return
            self._attempt = next_attempt
            logger.debug(
                "Retrying batch",
                lineage=str(next_attempt.lineage),
                attempt=next_attempt.attempt,
                backoff_count=next_attempt.backoff_count,
                delay_seconds=delay,
                reason=decision.reason,
            )
            if delay is None:
                self._dispatcher._submit(self)
                return
            handle = self._dispatcher._scheduler.call_later(delay, self._resume)
            # An inline scheduler may already have resumed (and re-parked) this stream
            if not handle.fired:
                self._timer = handle

    def _resume(self) -> None:
        with self._lock:
            self._timer = None
        self._dispatcher._submit(self)

    def _split(self, attempt: DispatchAttempt, decision: RetryDecision) -> None:
        try:
            first, second = attempt.children()
        except BatchSplitError as e:
            logger.warning(
                "Split requested for a batch that cannot be split; treating as permanent failure",
                lineage=str(attempt.lineage),
                batch_size=attempt.batch.size,
                reason=decision.reason,
            )
            self._dispatcher._count("policy_violations")
            self._finish(DispatchStatus.FAILED, reason=str(e))
            return

        with self._lock:
            if self._cancel_requested:
                self._finish(DispatchStatus.CANCELLED, reason="cancelled before split")
                return
            children = (_DispatchStream(self._dispatcher, first), _DispatchStream(self._dispatcher, second))
            if not self._dispatcher._register_split(self, children):
                self._finish(DispatchStatus.CANCELLED, reason="dispatcher closed before split")
                return
            self.children = children
            logger.debug(
                "Split batch",
                lineage=str(attempt.lineage),
                depth=attempt.lineage.depth,
                batch_size=attempt.batch.size,
                first_size=first.batch.size,
                second_size=second.batch.size,
            )
            # Parent retires before children start: no notification for non-leaf streams
            self.finished.set()
        for child in children:
            self._dispatcher._submit(child)

    def cancel(self) -> bool:
        with self._lock:
            if self.finished.is_set():
                return False
            self._cancel_requested = True
            timer, self._timer = self._timer, None
            # Parked: nothing else will run this stream, end it here
            if timer is not None and timer.cancel():
                self._finish(DispatchStatus.CANCELLED, reason="cancelled while waiting to retry")
        return True

    def _finish(self, status: DispatchStatus, *, reason: str | None = None) -> None:
        with self._lock:
            if self.finished.is_set():
                return
            self.outcome = TerminalOutcome(
                status=status,
                batch=self._attempt.batch,
                lineage=self._attempt.lineage,
                attempts=self._sends,
                signal=self._last_signal,
                reason=reason,
            )
        self._dispatcher._report(self, self.outcome)
        self.finished.set()


class BatchDispatcher:
    """Delivers batches through a Transport without blocking the caller.

    Example:
        dispatcher = BatchDispatcher(transport, observer, policy=RetryPolicy())
        handle = dispatcher.dispatch(TelemetryBatch.of(metrics, {"host": "web-1"}))
        ...
        dispatcher.close()

    Args:
        transport: Shared, thread-safe sender
        observer: Receives one terminal outcome per leaf stream
        policy: RetryPolicy, or a RetryConfig to build one from
        scheduler: Delay scheduler; a SystemScheduler is created (and owned) if omitted
        executor: Worker pool; a ThreadPoolExecutor is created (and owned) if omitted
        max_workers: Size of the owned ThreadPoolExecutor
        shutdown_timeout: Default wait used by close()
    """

    def __init__(
        self,
        transport: Transport,
        observer: ObserverSink,
        *,
        policy: RetryPolicy | RetryConfig | None = None,
        scheduler: Scheduler | None = None,
        executor: Executor | None = None,
        max_workers: int = 8,
        shutdown_timeout: float = 10.0,
    ) -> None:
        self._transport = transport
        self._observer = observer
        if isinstance(policy, RetryConfig):
            policy = RetryPolicy(policy)
        self._policy = policy if policy is not None else RetryPolicy()

        self._owns_scheduler = scheduler is None
        self._scheduler: Scheduler = scheduler if scheduler is not None else SystemScheduler()
        self._owns_executor = executor is None
        self._executor: Executor = (
            executor if executor is not None else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="relay-dispatch")
        )
        self._shutdown_timeout = shutdown_timeout

        self._state_lock = threading.Lock()
        self._idle = threading.Condition(self._state_lock)
        self._live: set[_DispatchStream] = set()
        self._closed = False
        self._metrics: dict[str, int] = {
            "dispatched": 0,
            "attempts": 0,
            "succeeded": 0,
            "failed": 0,
            "cancelled": 0,
            "splits": 0,
            "backoffs": 0,
            "requested_waits": 0,
            "policy_violations": 0,
        }

    @classmethod
    def from_settings(
        cls,
        settings: RelaySettings,
        transport: Transport,
        observer: ObserverSink,
        *,
        scheduler: Scheduler | None = None,
    ) -> BatchDispatcher:
        """Build a dispatcher from validated settings."""
        return cls(
            transport,
            observer,
            policy=RetryConfig.from_settings(settings.retry),
            scheduler=scheduler,
            max_workers=settings.dispatcher.max_workers,
            shutdown_timeout=settings.dispatcher.shutdown_timeout_seconds,
        )

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def dispatch(self, batch: TelemetryBatch[Any]) -> DispatchHandle:
        """Start delivering a batch. Returns immediately.

        Remote failures never raise here; they surface only through the
        observer. Only batch preconditions are checked synchronously.

        Raises:
            TypeError: If batch is None or not a TelemetryBatch.
            ValueError: If batch has no records.
            DispatcherClosedError: If close() has been called.
        """
        if batch is None:
            raise TypeError("batch must not be None")
        if not isinstance(batch, TelemetryBatch):
            raise TypeError(f"batch must be a TelemetryBatch, got {type(batch).__name__}")
        if batch.is_empty():
            raise ValueError("batch must contain at least one record")

        stream = _DispatchStream(self, DispatchAttempt(batch=batch, lineage=Lineage.new_root()))
        with self._state_lock:
            if self._closed:
                raise DispatcherClosedError("dispatch() called after close()")
            self._live.add(stream)
            self._metrics["dispatched"] += 1
        logger.debug("Dispatching batch", lineage=str(stream.lineage), batch_size=batch.size)
        self._submit(stream)
        return DispatchHandle(stream)

    # -- stream callbacks -------------------------------------------------

    def _submit(self, stream: _DispatchStream) -> None:
        try:
            self._executor.submit(stream.run_attempt)
        except RuntimeError:
            # Executor shut down under a parked stream
            stream._finish(DispatchStatus.CANCELLED, reason="dispatcher closed")

    def _send(self, attempt: DispatchAttempt) -> Signal:
        with self._state_lock:
            self._metrics["attempts"] += 1
        try:
            signal = self._transport.send(attempt.batch)
        except Exception as e:
            logger.exception(
                "Transport raised instead of returning a signal",
                lineage=str(attempt.lineage),
                attempt=attempt.attempt,
            )
            return PermanentFailure(reason=f"transport raised {type(e).__name__}: {e}", error=e)
        if not isinstance(signal, _SIGNAL_TYPES):
            logger.error(
                "Transport returned a non-signal value",
                lineage=str(attempt.lineage),
                returned=type(signal).__name__,
            )
            return PermanentFailure(reason=f"transport returned {type(signal).__name__}")
        return signal

    def _count(self, key: str) -> None:
        with self._state_lock:
            self._metrics[key] += 1

    def _count_signal(self, signal: Signal) -> None:
        match signal:
            case BackoffRequested():
                self._count("backoffs")
            case RequestedWait():
                self._count("requested_waits")
            case SplitRequested():
                self._count("splits")

    def _register_split(self, parent: _DispatchStream, children: tuple[_DispatchStream, _DispatchStream]) -> bool:
        # Children join the live set before the parent leaves it, so wait_idle()
        # never observes an empty set mid-split.
        with self._state_lock:
            if self._closed:
                return False
            self._live.update(children)
            self._live.discard(parent)
            self._idle.notify_all()
            return True

    def _report(self, stream: _DispatchStream, outcome: TerminalOutcome) -> None:
        lineage_id = str(outcome.lineage)
        if outcome.status == DispatchStatus.FAILED:
            logger.error(
                "Batch permanently failed",
                lineage=lineage_id,
                batch_size=outcome.batch.size,
                attempts=outcome.attempts,
                reason=outcome.reason,
            )
        try:
            self._observer.on_terminal_outcome(lineage_id, outcome)
        except Exception:
            logger.exception("Observer failed handling terminal outcome", lineage=lineage_id)
        with self._state_lock:
            self._metrics[outcome.status.value] += 1
            self._live.discard(stream)
            self._idle.notify_all()

    # -- lifecycle --------------------------------------------------------

    @property
    def in_flight(self) -> int:
        """Number of streams not yet finished."""
        with self._state_lock:
            return len(self._live)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no stream is live. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._live, timeout=timeout)

    @property
    def health_metrics(self) -> dict[str, int]:
        """Snapshot of dispatcher counters.

        - dispatched: top-level dispatch() calls accepted
        - attempts: Transport.send calls across all streams
        - succeeded / failed / cancelled: leaf streams by terminal status
        - splits / backoffs / requested_waits: signals received
        - policy_violations: single-record batches asked to split
        - in_flight: streams still running
        """
        with self._state_lock:
            return {**self._metrics, "in_flight": len(self._live)}

    def close(self, timeout: float | None = None) -> None:
        """Stop accepting batches, cancel live streams, and release owned resources.

        Cancelled streams report CANCELLED to the observer. Sends already in
        progress are allowed to finish; if the timeout expires first, they and
        any attempts still queued behind them report once the workers get to
        them. Idempotent.
        """
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            streams = list(self._live)
        for stream in streams:
            stream.cancel()

        wait_timeout = self._shutdown_timeout if timeout is None else timeout
        idle = self.wait_idle(wait_timeout)
        if not idle:
            logger.warning("Dispatch streams still running at close", in_flight=self.in_flight, timeout=wait_timeout)

        if self._owns_executor:
            assert isinstance(self._executor, ThreadPoolExecutor)
            # Queued attempts still run: cancelled streams finish without sending
            self._executor.shutdown(wait=idle)
        if self._owns_scheduler:
            self._scheduler.close()
        logger.info("Batch dispatcher closed", **self.health_metrics)

    def __enter__(self) -> BatchDispatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
