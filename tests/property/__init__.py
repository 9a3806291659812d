# tests/property/__init__.py
"""Property-based tests for telemetry-relay.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. For the dispatcher that means
every record is delivered or reported exactly once, whatever sequence of
signals the endpoint produces.

Test categories:
- contracts/: Batch splitting and lineage properties
- engine/: Retry delay arithmetic and dispatch-stream properties
"""
