# src/telemetry_relay/contracts/protocols.py
"""Protocol definitions for dispatcher collaborators.

Transports ship one batch per call and classify the result. Observers
receive one notification per leaf dispatch stream.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from telemetry_relay.contracts.batch import TelemetryBatch
    from telemetry_relay.contracts.dispatch import TerminalOutcome
    from telemetry_relay.contracts.signals import Signal


@runtime_checkable
class Transport(Protocol):
    """Sends one batch to the ingest endpoint.

    Error handling:
        - send() MUST return a Signal for every remote response, including
          failures. Raising is treated as a misbehaving transport: the
          dispatcher logs the exception and ends the stream as FAILED.
        - close() MUST be idempotent.

    Thread Safety:
        send() is called concurrently from every live dispatch stream.
        Implementations must not keep per-call state on the instance.
    """

    @property
    def name(self) -> str:
        """Transport name for logs and configuration."""
        ...

    def send(self, batch: "TelemetryBatch[Any]") -> "Signal":
        """Send a batch and classify the outcome.

        Synchronous from the dispatcher's point of view; the dispatcher
        provides the async boundary.

        Args:
            batch: The batch to deliver

        Returns:
            Exactly one signal from the closed signal set
        """
        ...

    def close(self) -> None:
        """Release connection pools and other resources."""
        ...


@runtime_checkable
class ObserverSink(Protocol):
    """Receives terminal outcomes of dispatch streams.

    Called once per leaf stream: the original stream if it never split,
    otherwise once for every descendant that reached its own terminal
    outcome. There is no single "whole tree finished" event.

    Called from dispatcher worker threads. Exceptions are logged by the
    dispatcher and otherwise ignored.
    """

    def on_terminal_outcome(self, lineage_id: str, outcome: "TerminalOutcome") -> None:
        """Handle the end of one dispatch stream.

        Args:
            lineage_id: String form of the stream's Lineage
            outcome: Status, batch, attempts, and last signal
        """
        ...
