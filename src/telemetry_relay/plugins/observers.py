# src/telemetry_relay/plugins/observers.py
"""Built-in ObserverSink implementations.

- LoggingObserver: one structured log line per terminal outcome
- CollectingObserver: keeps outcomes in memory (CLI summaries, tests)
- CompositeObserver: fans out to several observers with failure isolation
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import structlog

from telemetry_relay.contracts.enums import DispatchStatus

if TYPE_CHECKING:
    from telemetry_relay.contracts.dispatch import TerminalOutcome
    from telemetry_relay.contracts.protocols import ObserverSink

logger = structlog.get_logger(__name__)


class LoggingObserver:
    """Logs successes at info, failures at error, cancellations at warning."""

    def on_terminal_outcome(self, lineage_id: str, outcome: TerminalOutcome) -> None:
        if outcome.status == DispatchStatus.SUCCEEDED:
            logger.info(
                "Batch delivered",
                lineage=lineage_id,
                batch_size=outcome.batch.size,
                attempts=outcome.attempts,
            )
        else:
            log = logger.error if outcome.status == DispatchStatus.FAILED else logger.warning
            log(
                "Batch not delivered",
                lineage=lineage_id,
                status=str(outcome.status),
                batch_size=outcome.batch.size,
                attempts=outcome.attempts,
                reason=outcome.reason,
            )


class CollectingObserver:
    """Thread-safe in-memory record of terminal outcomes.

    Example:
        observer = CollectingObserver()
        dispatcher = BatchDispatcher(transport, observer)
        dispatcher.dispatch(batch)
        assert observer.wait_for(1, timeout=5.0)
    """

    def __init__(self) -> None:
        self._outcomes: list[tuple[str, TerminalOutcome]] = []
        self._condition = threading.Condition()

    def on_terminal_outcome(self, lineage_id: str, outcome: TerminalOutcome) -> None:
        with self._condition:
            self._outcomes.append((lineage_id, outcome))
            self._condition.notify_all()

    @property
    def outcomes(self) -> list[tuple[str, TerminalOutcome]]:
        with self._condition:
            return list(self._outcomes)

    def by_status(self, status: DispatchStatus) -> list[TerminalOutcome]:
        with self._condition:
            return [outcome for _, outcome in self._outcomes if outcome.status == status]

    def wait_for(self, count: int, timeout: float | None = None) -> bool:
        """Block until at least count outcomes arrived. Returns False on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: len(self._outcomes) >= count, timeout=timeout)

    def __len__(self) -> int:
        with self._condition:
            return len(self._outcomes)


class CompositeObserver:
    """Forwards each outcome to every wrapped observer.

    One observer raising is logged and does not stop the others.
    """

    def __init__(self, observers: list[ObserverSink]) -> None:
        self._observers = list(observers)

    def on_terminal_outcome(self, lineage_id: str, outcome: TerminalOutcome) -> None:
        for observer in self._observers:
            try:
                observer.on_terminal_outcome(lineage_id, outcome)
            except Exception as e:
                logger.warning(
                    "Observer failed",
                    observer=type(observer).__name__,
                    lineage=lineage_id,
                    error=str(e),
                )
