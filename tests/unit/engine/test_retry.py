# tests/unit/engine/test_retry.py
"""Tests for RetryPolicy decisions and backoff arithmetic."""

import pytest

from telemetry_relay.contracts import (
    BackoffRequested,
    PermanentFailure,
    RequestedWait,
    RetryAction,
    SplitRequested,
    Success,
)
from telemetry_relay.core.config import RetrySettings
from telemetry_relay.engine.retry import RetryConfig, RetryPolicy

# =============================================================================
# RetryConfig
# =============================================================================


class TestRetryConfig:
    def test_defaults(self) -> None:
        config = RetryConfig()

        assert config.base_delay == 1.0
        assert config.max_delay == 15.0
        assert config.exponential_base == 2.0
        assert config.jitter == 0.5

    def test_without_jitter(self) -> None:
        config = RetryConfig.without_jitter(base_delay=0.5, max_delay=4.0)

        assert config.jitter == 0.0
        assert config.base_delay == 0.5
        assert config.max_delay == 4.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base_delay": 0.0},
            {"base_delay": -1.0},
            {"base_delay": 10.0, "max_delay": 5.0},
            {"exponential_base": 1.0},
            {"jitter": -0.1},
        ],
    )
    def test_rejects_invalid_values(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)

    def test_from_settings(self) -> None:
        settings = RetrySettings(
            initial_delay_seconds=0.25,
            max_delay_seconds=3.0,
            exponential_base=3.0,
            jitter_seconds=0.0,
        )

        config = RetryConfig.from_settings(settings)

        assert config == RetryConfig(base_delay=0.25, max_delay=3.0, exponential_base=3.0, jitter=0.0)


# =============================================================================
# Backoff delays
# =============================================================================


class TestBackoffDelay:
    """Exponential sequence with cap."""

    def test_exact_sequence_without_jitter(self, exact_retry: RetryConfig) -> None:
        policy = RetryPolicy(exact_retry)

        delays = [policy.backoff_delay(n) for n in range(7)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 15.0, 15.0, 15.0]

    def test_custom_base(self) -> None:
        policy = RetryPolicy(RetryConfig.without_jitter(base_delay=0.5, max_delay=100.0))

        assert policy.backoff_delay(3) == 4.0

    def test_large_count_stays_at_cap(self, exact_retry: RetryConfig) -> None:
        policy = RetryPolicy(exact_retry)

        assert policy.backoff_delay(5000) == 15.0

    def test_jitter_stays_within_bounds(self) -> None:
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=15.0, jitter=0.5))

        for n in range(6):
            delay = policy.backoff_delay(n)
            base = min(2.0**n, 15.0)
            assert base <= delay <= base + 0.5

    def test_jitter_survives_the_cap(self) -> None:
        policy = RetryPolicy(RetryConfig(base_delay=1.0, max_delay=15.0, jitter=0.5))

        delays = {policy.backoff_delay(6) for _ in range(200)}

        assert all(15.0 <= delay <= 15.5 for delay in delays)
        # Saturated streams must not all resend at the same instant
        assert len(delays) > 1

    def test_negative_count_rejected(self, exact_retry: RetryConfig) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(exact_retry).backoff_delay(-1)

    def test_default_config_used_when_none(self) -> None:
        assert RetryPolicy().config == RetryConfig()


# =============================================================================
# decide()
# =============================================================================


class TestDecide:
    """Signal to action mapping."""

    @pytest.fixture
    def policy(self, exact_retry: RetryConfig) -> RetryPolicy:
        return RetryPolicy(exact_retry)

    def test_success_completes(self, policy: RetryPolicy) -> None:
        decision = policy.decide(Success())

        assert decision.action == RetryAction.COMPLETE

    def test_backoff_uses_exponential_delay(self, policy: RetryPolicy) -> None:
        decision = policy.decide(BackoffRequested(reason="503"), backoff_count=2)

        assert decision.action == RetryAction.RETRY_AFTER_DELAY
        assert decision.delay_seconds == 4.0
        assert decision.advances_backoff is True
        assert decision.reason == "503"

    def test_requested_wait_uses_exact_duration(self, policy: RetryPolicy) -> None:
        decision = policy.decide(RequestedWait(37.0), backoff_count=3)

        assert decision.action == RetryAction.RETRY_AFTER_DELAY
        # Not capped by max_delay and not affected by backoff count
        assert decision.delay_seconds == 37.0
        assert decision.advances_backoff is False

    def test_requested_wait_zero_retries_now(self, policy: RetryPolicy) -> None:
        decision = policy.decide(RequestedWait(0.0))

        assert decision.action == RetryAction.RETRY_NOW
        assert decision.delay_seconds == 0.0
        assert decision.advances_backoff is False

    def test_split(self, policy: RetryPolicy) -> None:
        assert policy.decide(SplitRequested()).action == RetryAction.SPLIT

    def test_permanent_failure_gives_up(self, policy: RetryPolicy) -> None:
        decision = policy.decide(PermanentFailure(reason="400", status_code=400))

        assert decision.action == RetryAction.GIVE_UP
        assert decision.reason == "400"

    def test_unknown_signal_rejected(self, policy: RetryPolicy) -> None:
        with pytest.raises(TypeError, match="Unknown signal type"):
            policy.decide("ok")  # type: ignore[arg-type]
