# src/telemetry_relay/contracts/records.py
"""Telemetry record data model.

Records are immutable value objects. Builders and per-kind attribute
validation live with the application; this module only fixes the shape
that batches carry and encoders render.

Timestamps are epoch milliseconds throughout, matching the ingest API.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import ClassVar

from telemetry_relay.contracts.enums import RecordKind

AttributeValue = str | int | float | bool


class Attributes(Mapping[str, AttributeValue]):
    """Read-only string-keyed attribute mapping.

    Construction copies the input, so later mutation of the source dict
    does not leak into a batch that was already built.

    Example:
        common = Attributes({"host.name": "web-1"}).with_values(env="prod")
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, AttributeValue] | None = None, **kwargs: AttributeValue) -> None:
        merged: dict[str, AttributeValue] = dict(data or {})
        merged.update(kwargs)
        for key, value in merged.items():
            if not isinstance(key, str):
                raise TypeError(f"Attribute keys must be str, got {type(key).__name__}: {key!r}")
            if not isinstance(value, (str, int, float, bool)):
                raise TypeError(f"Attribute {key!r} has unsupported value type {type(value).__name__}")
        self._data = merged

    def with_values(self, data: Mapping[str, AttributeValue] | None = None, **kwargs: AttributeValue) -> Attributes:
        """Return a new Attributes with the given keys added or replaced."""
        return Attributes({**self._data, **(data or {}), **kwargs})

    def __getitem__(self, key: str) -> AttributeValue:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._data) == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Attributes({self._data!r})"


EMPTY_ATTRIBUTES = Attributes()


@dataclass(frozen=True, slots=True)
class Count:
    """Counter delta accumulated over [start_time_ms, end_time_ms)."""

    kind: ClassVar[RecordKind] = RecordKind.METRIC

    name: str
    value: float
    start_time_ms: int
    end_time_ms: int
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)


@dataclass(frozen=True, slots=True)
class Gauge:
    """Point-in-time measurement."""

    kind: ClassVar[RecordKind] = RecordKind.METRIC

    name: str
    value: float
    timestamp_ms: int
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)


@dataclass(frozen=True, slots=True)
class Summary:
    """Pre-aggregated distribution over an interval."""

    kind: ClassVar[RecordKind] = RecordKind.METRIC

    name: str
    count: int
    sum: float
    min: float
    max: float
    start_time_ms: int
    end_time_ms: int
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single log line.

    Attributes:
        message: The log line itself
        timestamp_ms: When the entry was created
        level: Log level name (INFO, DEBUG, ...), optional
        log_type: Free-form type tag, useful for querying
        service_name: Producing service, rendered as service.name
    """

    kind: ClassVar[RecordKind] = RecordKind.LOG

    message: str
    timestamp_ms: int
    level: str | None = None
    log_type: str | None = None
    service_name: str | None = None
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)


@dataclass(frozen=True, slots=True)
class Span:
    """One unit of work in a distributed trace."""

    kind: ClassVar[RecordKind] = RecordKind.SPAN

    id: str
    trace_id: str
    name: str
    timestamp_ms: int
    duration_ms: float
    service_name: str | None = None
    parent_id: str | None = None
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)


@dataclass(frozen=True, slots=True)
class Event:
    """Custom event with an application-defined type."""

    kind: ClassVar[RecordKind] = RecordKind.EVENT

    event_type: str
    timestamp_ms: int
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)


TelemetryRecord = Count | Gauge | Summary | LogEntry | Span | Event
