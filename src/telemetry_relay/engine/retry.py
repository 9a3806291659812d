# src/telemetry_relay/engine/retry.py
"""RetryPolicy: pure mapping from a send signal to a retry decision.

The policy decides what to do and how long to wait. It never sleeps and
never touches the network; the dispatcher's scheduler does the waiting.

Backoff delays are tenacity waits: a capped exponential plus random jitter
added after the cap:

    delay(n) = min(initial * exponential_base**n, max_delay) + uniform(0, jitter)

where n is the stream's backoff count. Once the exponential saturates,
streams still spread out over [max_delay, max_delay + jitter]. With jitter=0
the sequence is exact, which is what tests rely on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tenacity import RetryCallState, wait_exponential, wait_random

from telemetry_relay.contracts.dispatch import RetryDecision
from telemetry_relay.contracts.enums import RetryAction
from telemetry_relay.contracts.signals import (
    BackoffRequested,
    PermanentFailure,
    RequestedWait,
    Signal,
    SplitRequested,
    Success,
)

if TYPE_CHECKING:
    from telemetry_relay.core.config import RetrySettings


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters.

    Defaults match the original client: first backoff 1s, doubling, never
    more than 15s between attempts.
    """

    base_delay: float = 1.0  # seconds
    max_delay: float = 15.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.5  # seconds, upper bound of additive jitter

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError(f"base_delay must be > 0, got {self.base_delay}")
        if self.max_delay < self.base_delay:
            raise ValueError(f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})")
        if self.exponential_base <= 1:
            raise ValueError(f"exponential_base must be > 1, got {self.exponential_base}")
        if self.jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {self.jitter}")

    @classmethod
    def without_jitter(cls, base_delay: float = 1.0, max_delay: float = 15.0) -> RetryConfig:
        """Deterministic config, for tests and reproducible runs."""
        return cls(base_delay=base_delay, max_delay=max_delay, jitter=0.0)

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryConfig:
        return cls(
            base_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            exponential_base=settings.exponential_base,
            jitter=settings.jitter_seconds,
        )


class RetryPolicy:
    """Maps (signal, backoff count) to a RetryDecision.

    Deterministic apart from the jitter term.

    Example:
        policy = RetryPolicy(RetryConfig.without_jitter(base_delay=0.5))
        decision = policy.decide(BackoffRequested(), backoff_count=2)
        assert decision.delay_seconds == 2.0
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self._config = config if config is not None else RetryConfig()
        self._wait = wait_exponential(
            multiplier=self._config.base_delay,
            max=self._config.max_delay,
            exp_base=self._config.exponential_base,
        ) + wait_random(0, self._config.jitter)

    @property
    def config(self) -> RetryConfig:
        return self._config

    def backoff_delay(self, backoff_count: int) -> float:
        """Delay before the next send after backoff_count earlier backoffs.

        Raises:
            ValueError: If backoff_count is negative.
        """
        if backoff_count < 0:
            raise ValueError(f"backoff_count must be >= 0, got {backoff_count}")
        # tenacity counts attempts from 1; exponent is attempt_number - 1
        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})  # type: ignore[arg-type]
        state.attempt_number = backoff_count + 1
        return float(self._wait(state))

    def decide(self, signal: Signal, backoff_count: int = 0) -> RetryDecision:
        """Decide what the dispatcher does after receiving signal.

        Args:
            signal: Outcome of the latest send
            backoff_count: BackoffRequested signals already seen by this stream

        Returns:
            RetryDecision; delay_seconds is only meaningful for RETRY_AFTER_DELAY
        """
        match signal:
            case Success():
                return RetryDecision(RetryAction.COMPLETE, reason=signal.reason)
            case BackoffRequested():
                return RetryDecision(
                    RetryAction.RETRY_AFTER_DELAY,
                    delay_seconds=self.backoff_delay(backoff_count),
                    advances_backoff=True,
                    reason=signal.reason,
                )
            case RequestedWait(duration_seconds=duration):
                if duration == 0:
                    return RetryDecision(RetryAction.RETRY_NOW, reason=signal.reason)
                return RetryDecision(
                    RetryAction.RETRY_AFTER_DELAY,
                    delay_seconds=duration,
                    reason=signal.reason,
                )
            case SplitRequested():
                return RetryDecision(RetryAction.SPLIT, reason=signal.reason)
            case PermanentFailure():
                return RetryDecision(RetryAction.GIVE_UP, reason=signal.reason)
        raise TypeError(f"Unknown signal type: {type(signal).__name__}")
