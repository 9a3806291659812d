# src/telemetry_relay/engine/clock.py
"""Clock and delay-scheduler abstractions.

The dispatcher never sleeps. When a stream must wait, it asks a Scheduler
to call it back after a delay and releases its worker. Production code
uses SystemScheduler, a single timer thread over SystemClock. Tests inject
ManualScheduler with a MockClock to control time without real waits.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class Clock(Protocol):
    """Abstract monotonic clock."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds. Never goes backwards."""
        ...


class SystemClock:
    """Production clock using time.monotonic()."""

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        clock.advance(1.5)
        assert clock.monotonic() == 1.5
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start

    def monotonic(self) -> float:
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


DEFAULT_CLOCK: Clock = SystemClock()


class TimerHandle:
    """Cancellable reference to a scheduled callback.

    Cancellation and firing race under a lock: once cancel() returns True
    the callback will not run, and once the callback has started cancel()
    returns False.
    """

    __slots__ = ("_callback", "_cancelled", "_fired", "_lock")

    def __init__(self, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._cancelled = False
        self._fired = False
        self._lock = threading.Lock()

    def cancel(self) -> bool:
        """Prevent the callback from running. Returns False if it already ran."""
        with self._lock:
            if self._fired:
                return False
            self._cancelled = True
            return True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    def _fire(self) -> None:
        with self._lock:
            if self._cancelled or self._fired:
                return
            self._fired = True
        self._callback()


class Scheduler(Protocol):
    """Runs a callback once a delay has elapsed.

    Callbacks must be short: they run on the scheduler's own thread (or,
    for ManualScheduler, on the caller's thread) and should only hand work
    off to an executor.
    """

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule callback to run after delay_seconds."""
        ...

    def close(self) -> None:
        """Stop the scheduler. Pending callbacks are discarded."""
        ...


class SystemScheduler:
    """Timer thread serving a heap of due callbacks.

    One daemon thread for all dispatch streams, so a parked stream costs a
    heap entry rather than a blocked worker thread.

    Thread Safety:
        call_later() and close() are safe from any thread. Callbacks run
        on the "relay-scheduler" thread, outside the heap lock.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()
        self._condition = threading.Condition()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name="relay-scheduler", daemon=True)
        self._thread.start()

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule callback after delay_seconds.

        Raises:
            ValueError: If delay_seconds is negative.
            RuntimeError: If the scheduler has been closed.
        """
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        handle = TimerHandle(callback)
        with self._condition:
            if self._closed:
                raise RuntimeError("Scheduler is closed")
            due = self._clock.monotonic() + delay_seconds
            heapq.heappush(self._heap, (due, next(self._sequence), handle))
            self._condition.notify()
        return handle

    def _run(self) -> None:
        while True:
            with self._condition:
                while not self._closed:
                    now = self._clock.monotonic()
                    if self._heap and self._heap[0][0] <= now:
                        break
                    timeout = self._heap[0][0] - now if self._heap else None
                    self._condition.wait(timeout)
                if self._closed:
                    return
                _, _, handle = heapq.heappop(self._heap)
            try:
                handle._fire()
            except Exception:
                # Timer thread must survive a failing callback
                logger.exception("Scheduled callback raised")

    @property
    def pending(self) -> int:
        with self._condition:
            return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def close(self) -> None:
        with self._condition:
            if self._closed:
                return
            self._closed = True
            discarded = len(self._heap)
            self._heap.clear()
            self._condition.notify_all()
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=5.0)
        if discarded:
            logger.debug("Scheduler closed with pending callbacks", discarded=discarded)


class ManualScheduler:
    """Scheduler driven by a MockClock, for tests.

    Every requested delay is recorded in ``delays``. With auto_advance=True
    each call_later() advances the clock by the delay and runs the callback
    immediately on the calling thread. Otherwise callbacks wait until
    advance() or run_all() moves the clock past their due time.

    Example:
        scheduler = ManualScheduler(auto_advance=True)
        dispatcher = BatchDispatcher(transport, observer, scheduler=scheduler, executor=inline)
        dispatcher.dispatch(batch)
        assert scheduler.delays == [1.0]
    """

    def __init__(self, clock: MockClock | None = None, *, auto_advance: bool = False) -> None:
        self.clock = clock if clock is not None else MockClock()
        self.auto_advance = auto_advance
        self.delays: list[float] = []
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()
        self._lock = threading.RLock()
        self._closed = False

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        handle = TimerHandle(callback)
        with self._lock:
            if self._closed:
                raise RuntimeError("Scheduler is closed")
            self.delays.append(delay_seconds)
            if not self.auto_advance:
                due = self.clock.monotonic() + delay_seconds
                heapq.heappush(self._heap, (due, next(self._sequence), handle))
                return handle
            self.clock.advance(delay_seconds)
        handle._fire()
        return handle

    def advance(self, seconds: float) -> int:
        """Advance the clock and run every callback now due, in due order.

        Returns:
            Number of callbacks run.
        """
        target = self.clock.monotonic() + seconds
        fired = 0
        while True:
            with self._lock:
                if not self._heap or self._heap[0][0] > target:
                    break
                due, _, handle = heapq.heappop(self._heap)
                self.clock.advance(max(0.0, due - self.clock.monotonic()))
            if not handle.cancelled:
                handle._fire()
                fired += 1
        with self._lock:
            self.clock.advance(max(0.0, target - self.clock.monotonic()))
        return fired

    def run_all(self, max_callbacks: int = 10_000) -> int:
        """Advance to each pending due time until nothing is scheduled.

        Raises:
            RuntimeError: If more than max_callbacks run (runaway retry loop).
        """
        fired = 0
        while True:
            with self._lock:
                if not self._heap:
                    return fired
                next_due = self._heap[0][0]
            fired += self.advance(max(0.0, next_due - self.clock.monotonic()))
            if fired > max_callbacks:
                raise RuntimeError(f"run_all exceeded {max_callbacks} callbacks")

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._heap.clear()
