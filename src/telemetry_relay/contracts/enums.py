# src/telemetry_relay/contracts/enums.py
"""Status codes, actions, and kinds shared across the dispatch boundary.

Every value here is part of the observable contract between the transport,
the retry policy, the dispatcher, and observers. Adding a member is a
contract change: the dispatcher's signal handling is exhaustive.
"""

from enum import StrEnum


class SignalKind(StrEnum):
    """Classification of a single send attempt, as reported by a Transport.

    The set is closed. Transports MUST map every remote response into
    exactly one of these.
    """

    SUCCESS = "success"
    BACKOFF_REQUESTED = "backoff_requested"
    REQUESTED_WAIT = "requested_wait"
    SPLIT_REQUESTED = "split_requested"
    PERMANENT_FAILURE = "permanent_failure"


class RetryAction(StrEnum):
    """What the dispatcher should do next with a stream.

    Values:
        COMPLETE: Batch delivered, stream ends
        RETRY_NOW: Resend the same batch without waiting
        RETRY_AFTER_DELAY: Resend the same batch after RetryDecision.delay_seconds
        SPLIT: Divide the batch and start two child streams
        GIVE_UP: Terminal failure, stream ends
    """

    COMPLETE = "complete"
    RETRY_NOW = "retry_now"
    RETRY_AFTER_DELAY = "retry_after_delay"
    SPLIT = "split"
    GIVE_UP = "give_up"


class DispatchStatus(StrEnum):
    """Terminal status of a dispatch stream, reported to observers."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RecordKind(StrEnum):
    """Family of a telemetry record.

    Used by payload encoders to pick the top-level collection key.
    """

    METRIC = "metrics"
    LOG = "logs"
    SPAN = "spans"
    EVENT = "events"
