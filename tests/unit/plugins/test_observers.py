# tests/unit/plugins/test_observers.py
"""Tests for built-in observers."""

import threading

from telemetry_relay.contracts import (
    DispatchStatus,
    Lineage,
    ObserverSink,
    Success,
    TerminalOutcome,
)
from telemetry_relay.plugins.observers import CollectingObserver, CompositeObserver, LoggingObserver
from tests.fixtures.dispatch import make_batch


def _outcome(status: DispatchStatus = DispatchStatus.SUCCEEDED, root_id: str = "root") -> TerminalOutcome:
    return TerminalOutcome(
        status=status,
        batch=make_batch(2),
        lineage=Lineage(root_id=root_id),
        attempts=1,
        signal=Success() if status == DispatchStatus.SUCCEEDED else None,
        reason=None if status == DispatchStatus.SUCCEEDED else "gave up",
    )


class TestCollectingObserver:
    def test_records_outcomes_in_order(self) -> None:
        observer = CollectingObserver()
        first = _outcome(root_id="a")
        second = _outcome(DispatchStatus.FAILED, root_id="b")

        observer.on_terminal_outcome("a", first)
        observer.on_terminal_outcome("b", second)

        assert observer.outcomes == [("a", first), ("b", second)]
        assert len(observer) == 2

    def test_by_status(self) -> None:
        observer = CollectingObserver()
        observer.on_terminal_outcome("a", _outcome())
        observer.on_terminal_outcome("b", _outcome(DispatchStatus.CANCELLED, root_id="b"))

        assert len(observer.by_status(DispatchStatus.SUCCEEDED)) == 1
        assert len(observer.by_status(DispatchStatus.CANCELLED)) == 1
        assert observer.by_status(DispatchStatus.FAILED) == []

    def test_outcomes_returns_copy(self) -> None:
        observer = CollectingObserver()
        observer.on_terminal_outcome("a", _outcome())

        observer.outcomes.clear()

        assert len(observer) == 1

    def test_wait_for_times_out(self) -> None:
        assert CollectingObserver().wait_for(1, timeout=0.01) is False

    def test_wait_for_wakes_on_other_thread(self) -> None:
        observer = CollectingObserver()
        thread = threading.Thread(target=observer.on_terminal_outcome, args=("a", _outcome()))

        thread.start()
        assert observer.wait_for(1, timeout=5.0) is True
        thread.join()

    def test_satisfies_protocol(self) -> None:
        assert isinstance(CollectingObserver(), ObserverSink)


class TestCompositeObserver:
    def test_fans_out(self) -> None:
        first = CollectingObserver()
        second = CollectingObserver()
        composite = CompositeObserver([first, second])

        composite.on_terminal_outcome("a", _outcome())

        assert len(first) == 1
        assert len(second) == 1

    def test_failing_observer_isolated(self) -> None:
        class Exploding:
            def on_terminal_outcome(self, lineage_id: str, outcome: TerminalOutcome) -> None:
                raise RuntimeError("boom")

        collector = CollectingObserver()
        composite = CompositeObserver([Exploding(), collector])

        composite.on_terminal_outcome("a", _outcome())

        assert len(collector) == 1


class TestLoggingObserver:
    def test_logs_without_raising(self) -> None:
        observer = LoggingObserver()

        observer.on_terminal_outcome("a", _outcome())
        observer.on_terminal_outcome("b", _outcome(DispatchStatus.FAILED, root_id="b"))
