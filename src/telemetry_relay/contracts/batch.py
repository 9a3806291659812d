# src/telemetry_relay/contracts/batch.py
"""TelemetryBatch: the immutable unit of delivery.

A batch is a tuple of records plus attributes shared by all of them.
Splitting never mutates; it yields two new batches that partition the
records contiguously and share the original's attributes.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from telemetry_relay.contracts.errors import BatchSplitError
from telemetry_relay.contracts.records import EMPTY_ATTRIBUTES, Attributes, AttributeValue

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class TelemetryBatch(Generic[T]):
    """Immutable collection of telemetry records with shared attributes.

    Example:
        batch = TelemetryBatch.of([count_a, count_b], {"service.name": "api"})
        first, second = batch.split()
        assert first.records + second.records == batch.records

    Attributes:
        records: Ordered records, never mutated after construction
        attributes: Attributes applied to every record in the batch
    """

    records: tuple[T, ...]
    attributes: Attributes = field(default=EMPTY_ATTRIBUTES)

    def __post_init__(self) -> None:
        # Accept any iterable/mapping at construction, normalize to immutable types
        if not isinstance(self.records, tuple):
            object.__setattr__(self, "records", tuple(self.records))
        if not isinstance(self.attributes, Attributes):
            object.__setattr__(self, "attributes", Attributes(self.attributes))

    @classmethod
    def of(
        cls,
        records: Iterable[T],
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> TelemetryBatch[T]:
        """Build a batch from any iterable of records."""
        return cls(records=tuple(records), attributes=Attributes(attributes))

    @property
    def size(self) -> int:
        """Number of records in the batch."""
        return len(self.records)

    @property
    def kind(self) -> str:
        """Record family for encoders: the shared RecordKind value, or "mixed"."""
        kinds = {str(getattr(record, "kind", "mixed")) for record in self.records}
        if len(kinds) == 1:
            return kinds.pop()
        return "mixed"

    def is_empty(self) -> bool:
        return not self.records

    def split(self) -> tuple[TelemetryBatch[T], TelemetryBatch[T]]:
        """Partition into two contiguous non-empty halves.

        The first half holds floor(n/2) records, the second ceil(n/2).
        Both halves carry this batch's attributes unchanged.

        Raises:
            BatchSplitError: If the batch has fewer than 2 records.
        """
        n = len(self.records)
        if n < 2:
            raise BatchSplitError(n)
        mid = n // 2
        return (
            TelemetryBatch(records=self.records[:mid], attributes=self.attributes),
            TelemetryBatch(records=self.records[mid:], attributes=self.attributes),
        )

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[T]:
        return iter(self.records)
