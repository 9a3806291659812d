# src/telemetry_relay/contracts/errors.py
"""Package exceptions.

None of these are raised for remote-side delivery failures. Those are
reported as signals and terminal outcomes, never as exceptions crossing
the dispatch boundary.
"""


class BatchSplitError(ValueError):
    """Raised when a batch is too small to split.

    The dispatcher maps this to a permanent failure (policy violation)
    instead of letting a single-record batch loop on SplitRequested.

    Attributes:
        size: Record count of the batch that could not be split
    """

    def __init__(self, size: int) -> None:
        self.size = size
        super().__init__(f"Cannot split a batch of {size} record(s); at least 2 are required")


class DispatcherClosedError(RuntimeError):
    """Raised by dispatch() after the dispatcher has been closed."""


class TransportConfigError(Exception):
    """Raised when a transport is constructed with invalid settings.

    Attributes:
        transport_name: Name of the transport that failed
        message: Human-readable error description
    """

    def __init__(self, transport_name: str, message: str) -> None:
        self.transport_name = transport_name
        self.message = message
        super().__init__(f"Transport '{transport_name}' misconfigured: {message}")
