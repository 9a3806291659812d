# src/telemetry_relay/engine/__init__.py
"""Dispatch engine: retry policy, scheduling, and the batch dispatcher.

Example:
    from telemetry_relay.engine import BatchDispatcher, RetryConfig

    with BatchDispatcher(transport, observer, policy=RetryConfig()) as dispatcher:
        dispatcher.dispatch(batch)
        dispatcher.wait_idle(timeout=30.0)
"""

from telemetry_relay.engine.clock import (
    DEFAULT_CLOCK,
    Clock,
    ManualScheduler,
    MockClock,
    Scheduler,
    SystemClock,
    SystemScheduler,
    TimerHandle,
)
from telemetry_relay.engine.dispatcher import BatchDispatcher, DispatchHandle
from telemetry_relay.engine.retry import RetryConfig, RetryPolicy

__all__ = [
    "DEFAULT_CLOCK",
    "BatchDispatcher",
    "Clock",
    "DispatchHandle",
    "ManualScheduler",
    "MockClock",
    "RetryConfig",
    "RetryPolicy",
    "Scheduler",
    "SystemClock",
    "SystemScheduler",
    "TimerHandle",
]
