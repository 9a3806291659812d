"""Shared contracts for cross-boundary data types.

Every dataclass, enum, and protocol that crosses the boundary between
transports, the retry policy, the dispatcher, and observers is defined
here. This package is a leaf: it never imports from core, engine, or
plugins.

Settings classes are NOT re-exported here; import them from
telemetry_relay.core.config.
"""

from telemetry_relay.contracts.batch import TelemetryBatch
from telemetry_relay.contracts.dispatch import (
    DispatchAttempt,
    Lineage,
    RetryDecision,
    TerminalOutcome,
)
from telemetry_relay.contracts.enums import (
    DispatchStatus,
    RecordKind,
    RetryAction,
    SignalKind,
)
from telemetry_relay.contracts.errors import (
    BatchSplitError,
    DispatcherClosedError,
    TransportConfigError,
)
from telemetry_relay.contracts.protocols import ObserverSink, Transport
from telemetry_relay.contracts.records import (
    Attributes,
    AttributeValue,
    Count,
    Event,
    Gauge,
    LogEntry,
    Span,
    Summary,
    TelemetryRecord,
)
from telemetry_relay.contracts.signals import (
    BackoffRequested,
    PermanentFailure,
    RequestedWait,
    Signal,
    SplitRequested,
    Success,
)

__all__ = [
    "AttributeValue",
    "Attributes",
    "BackoffRequested",
    "BatchSplitError",
    "Count",
    "DispatchAttempt",
    "DispatchStatus",
    "DispatcherClosedError",
    "Event",
    "Gauge",
    "Lineage",
    "LogEntry",
    "ObserverSink",
    "PermanentFailure",
    "RecordKind",
    "RequestedWait",
    "RetryAction",
    "RetryDecision",
    "Signal",
    "SignalKind",
    "Span",
    "SplitRequested",
    "Success",
    "Summary",
    "TelemetryBatch",
    "TelemetryRecord",
    "TerminalOutcome",
    "Transport",
    "TransportConfigError",
]
