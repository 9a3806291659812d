# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Usage:
    from tests.property.conftest import batches, signal_scripts

    @given(batch=batches(), script=signal_scripts)
    def test_every_record_reported(batch, script) -> None:
        ...
"""

from __future__ import annotations

from hypothesis import strategies as st

from telemetry_relay.contracts import (
    BackoffRequested,
    PermanentFailure,
    RequestedWait,
    SplitRequested,
    Success,
    TelemetryBatch,
)
from tests.fixtures.dispatch import make_metric

# =============================================================================
# Attributes and batches
# =============================================================================

attribute_keys = st.text(
    alphabet=st.characters(categories=("Ll", "Lu", "Nd"), include_characters="._-"),
    min_size=1,
    max_size=20,
)

attribute_values = st.one_of(
    st.text(max_size=30),
    st.integers(min_value=-(2**53 - 1), max_value=2**53 - 1),
    st.floats(allow_nan=False, allow_infinity=False),
    st.booleans(),
)

attribute_maps = st.dictionaries(attribute_keys, attribute_values, max_size=5)


@st.composite
def batches(draw: st.DrawFn, min_size: int = 1, max_size: int = 40) -> TelemetryBatch:
    """Batch of unique Count metrics with random shared attributes."""
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    return TelemetryBatch.of([make_metric() for _ in range(size)], draw(attribute_maps))


# =============================================================================
# Signals
# =============================================================================

# Server-requested waits of up to two minutes
requested_waits = st.floats(min_value=0.0, max_value=120.0, allow_nan=False).map(RequestedWait)

signals = st.one_of(
    st.builds(Success),
    st.builds(BackoffRequested),
    requested_waits,
    st.builds(SplitRequested),
    st.builds(PermanentFailure),
)

# Scripts are consumed in send order; once exhausted the transport succeeds
signal_scripts = st.lists(signals, max_size=30)

backoff_counts = st.integers(min_value=0, max_value=200)
