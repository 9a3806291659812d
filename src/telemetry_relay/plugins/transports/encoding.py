# src/telemetry_relay/plugins/transports/encoding.py
"""JSON payload encoding for the HTTP transport.

Payload shape (one envelope per batch):

    [{
        "common": {"attributes": {...batch attributes...}},
        "metrics": [...],
        "logs": [...]
    }]

Only the collections present in the batch are emitted. Record fields map
to the ingest API's dotted attribute names ("interval.ms", "trace.id").
"""

from __future__ import annotations

import json
from typing import Any

from telemetry_relay.contracts.batch import TelemetryBatch
from telemetry_relay.contracts.records import Count, Event, Gauge, LogEntry, Span, Summary


def _optional(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def encode_record(record: object) -> tuple[str, dict[str, Any]]:
    """Render one record.

    Returns:
        (collection key, JSON-ready dict)

    Raises:
        TypeError: If the record is not a known telemetry record type.
    """
    match record:
        case Count():
            return str(record.kind), {
                "name": record.name,
                "type": "count",
                "value": record.value,
                "timestamp": record.start_time_ms,
                "interval.ms": record.end_time_ms - record.start_time_ms,
                "attributes": dict(record.attributes),
            }
        case Gauge():
            return str(record.kind), {
                "name": record.name,
                "type": "gauge",
                "value": record.value,
                "timestamp": record.timestamp_ms,
                "attributes": dict(record.attributes),
            }
        case Summary():
            return str(record.kind), {
                "name": record.name,
                "type": "summary",
                "value": {"count": record.count, "sum": record.sum, "min": record.min, "max": record.max},
                "timestamp": record.start_time_ms,
                "interval.ms": record.end_time_ms - record.start_time_ms,
                "attributes": dict(record.attributes),
            }
        case LogEntry():
            attributes = {
                **dict(record.attributes),
                **_optional(**{"log.level": record.level, "logtype": record.log_type, "service.name": record.service_name}),
            }
            return str(record.kind), {
                "message": record.message,
                "timestamp": record.timestamp_ms,
                "attributes": attributes,
            }
        case Span():
            attributes = {
                **dict(record.attributes),
                "name": record.name,
                "duration.ms": record.duration_ms,
                **_optional(**{"service.name": record.service_name, "parent.id": record.parent_id}),
            }
            return str(record.kind), {
                "id": record.id,
                "trace.id": record.trace_id,
                "timestamp": record.timestamp_ms,
                "attributes": attributes,
            }
        case Event():
            return str(record.kind), {
                **dict(record.attributes),
                "eventType": record.event_type,
                "timestamp": record.timestamp_ms,
            }
    raise TypeError(f"Cannot encode record of type {type(record).__name__}")


def build_payload(batch: TelemetryBatch[Any]) -> list[dict[str, Any]]:
    """Build the JSON-ready envelope for a batch."""
    envelope: dict[str, Any] = {"common": {"attributes": dict(batch.attributes)}}
    for record in batch.records:
        key, rendered = encode_record(record)
        envelope.setdefault(key, []).append(rendered)
    return [envelope]


def encode_batch(batch: TelemetryBatch[Any]) -> bytes:
    """Encode a batch as UTF-8 JSON.

    Raises:
        TypeError: If a record type is unknown.
        ValueError: If a value is not JSON-serializable as finite JSON (NaN/Infinity).
    """
    return json.dumps(build_payload(batch), allow_nan=False, separators=(",", ":")).encode("utf-8")
