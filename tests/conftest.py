# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Dispatcher fixtures come in two flavours:
- Deterministic: ManualScheduler + SynchronousExecutor. dispatch() runs the
  whole stream on the test thread; delays are recorded, never slept.
- Threaded: the production SystemScheduler and ThreadPoolExecutor, with
  short real delays and bounded waits.
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from telemetry_relay.engine.clock import ManualScheduler
from telemetry_relay.engine.retry import RetryConfig
from telemetry_relay.plugins.observers import CollectingObserver
from tests.fixtures.dispatch import SynchronousExecutor

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Dispatcher fixtures
# =============================================================================


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Auto-advancing manual scheduler: every delay is recorded and elapses instantly."""
    return ManualScheduler(auto_advance=True)


@pytest.fixture
def executor() -> Iterator[SynchronousExecutor]:
    executor = SynchronousExecutor()
    yield executor
    executor.shutdown()


@pytest.fixture
def observer() -> CollectingObserver:
    return CollectingObserver()


@pytest.fixture
def exact_retry() -> RetryConfig:
    """Jitter-free retry config: base 1s, cap 15s."""
    return RetryConfig.without_jitter(base_delay=1.0, max_delay=15.0)
