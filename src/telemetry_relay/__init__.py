"""
telemetry-relay: the sending pipeline of a telemetry client.

Accepts immutable batches of metrics, logs, and spans and delivers them to
an ingest endpoint without blocking the caller, retrying transient
failures, honouring server-requested waits, and splitting oversized
batches.
"""

__version__ = "0.1.0"
