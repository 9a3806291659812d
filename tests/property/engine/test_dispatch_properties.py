# tests/property/engine/test_dispatch_properties.py
"""Property-based tests for retry delays and dispatch streams.

Every test drives the dispatcher with ManualScheduler(auto_advance=True)
and an inline executor, so a whole split tree runs on the test thread and
the retry delays it asked for are recorded.

Properties tested:
1. Backoff delays never decrease and never exceed the cap plus jitter
2. Every record of a dispatched batch appears in exactly one terminal outcome
3. Exactly one notification per leaf stream, none for split parents
4. Nothing is left in flight once the script is exhausted
5. A stream never waits longer than the cap unless the endpoint asked it to
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from telemetry_relay.contracts import (
    DispatchStatus,
    RequestedWait,
    Signal,
    TelemetryBatch,
)
from telemetry_relay.engine.clock import ManualScheduler
from telemetry_relay.engine.dispatcher import BatchDispatcher
from telemetry_relay.engine.retry import RetryConfig, RetryPolicy
from telemetry_relay.plugins.observers import CollectingObserver
from tests.fixtures.dispatch import ScriptedTransport, SynchronousExecutor
from tests.property.conftest import backoff_counts, batches, signal_scripts


def _run(batch: TelemetryBatch, script: list[Signal]) -> tuple[BatchDispatcher, CollectingObserver, ManualScheduler]:
    scheduler = ManualScheduler(auto_advance=True)
    observer = CollectingObserver()
    dispatcher = BatchDispatcher(
        ScriptedTransport(script, clock=scheduler.clock),
        observer,
        policy=RetryConfig.without_jitter(base_delay=1.0, max_delay=15.0),
        scheduler=scheduler,
        executor=SynchronousExecutor(),
    )
    dispatcher.dispatch(batch)
    return dispatcher, observer, scheduler


class TestBackoffProperties:
    @given(n=backoff_counts)
    def test_delays_monotonic_and_capped(self, n: int) -> None:
        """Property: delay(n) <= delay(n+1) <= max_delay."""
        policy = RetryPolicy(RetryConfig.without_jitter(base_delay=1.0, max_delay=15.0))

        current = policy.backoff_delay(n)
        following = policy.backoff_delay(n + 1)

        assert 1.0 <= current <= following <= 15.0

    @given(
        n=backoff_counts,
        base=st.floats(min_value=0.01, max_value=5.0),
        jitter=st.floats(min_value=0.0, max_value=2.0),
    )
    def test_jittered_delay_bounds(self, n: int, base: float, jitter: float) -> None:
        """Property: min(base*2^n, cap) <= delay <= min(base*2^n, cap) + jitter."""
        cap = 30.0
        policy = RetryPolicy(RetryConfig(base_delay=base, max_delay=cap, jitter=jitter))

        delay = policy.backoff_delay(n)

        exact = min(base * 2.0**n, cap)
        assert exact <= delay <= exact + jitter


class TestDispatchProperties:
    @given(batch=batches(), script=signal_scripts)
    def test_every_record_reported_exactly_once(self, batch: TelemetryBatch, script: list[Signal]) -> None:
        """Property: leaf outcomes partition the original records, in order."""
        _, observer, _ = _run(batch, script)

        reported = tuple(r for _, outcome in observer.outcomes for r in outcome.batch.records)
        assert reported == batch.records

    @given(batch=batches(), script=signal_scripts)
    def test_one_notification_per_leaf(self, batch: TelemetryBatch, script: list[Signal]) -> None:
        """Property: lineage ids are unique and no reported stream is an ancestor of another."""
        _, observer, _ = _run(batch, script)

        lineage_ids = [lineage_id for lineage_id, _ in observer.outcomes]
        assert len(lineage_ids) == len(set(lineage_ids))
        for lineage_id in lineage_ids:
            assert not any(other.startswith(lineage_id + "/") for other in lineage_ids)

    @given(batch=batches(), script=signal_scripts)
    def test_terminal_states_only(self, batch: TelemetryBatch, script: list[Signal]) -> None:
        """Property: with no cancellation, every leaf ends SUCCEEDED or FAILED and nothing is live."""
        dispatcher, observer, _ = _run(batch, script)

        statuses = {outcome.status for _, outcome in observer.outcomes}
        assert statuses <= {DispatchStatus.SUCCEEDED, DispatchStatus.FAILED}
        assert dispatcher.in_flight == 0
        metrics = dispatcher.health_metrics
        assert metrics["succeeded"] + metrics["failed"] == len(observer)

    @given(batch=batches(), script=signal_scripts)
    def test_delays_bounded_by_cap_or_request(self, batch: TelemetryBatch, script: list[Signal]) -> None:
        """Property: no delay exceeds max(cap, largest requested wait)."""
        _, _, scheduler = _run(batch, script)

        requested = [s.duration_seconds for s in script if isinstance(s, RequestedWait)]
        ceiling = max([15.0, *requested])
        assert all(0.0 < delay <= ceiling for delay in scheduler.delays)

    @given(batch=batches(), script=signal_scripts)
    def test_attempts_match_sends(self, batch: TelemetryBatch, script: list[Signal]) -> None:
        """Property: attempts reported by leaves never exceed total sends."""
        dispatcher, observer, _ = _run(batch, script)

        total_attempts = dispatcher.health_metrics["attempts"]
        assert sum(outcome.attempts for _, outcome in observer.outcomes) <= total_attempts
        assert total_attempts >= 1
