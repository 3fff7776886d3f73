"""Retry policy and per-invocation retry state."""

from __future__ import annotations

import dataclasses as dc

from portcullis.errors import ConfigurationError
from portcullis.stage import Stage

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF_S = 1.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_MAX_BACKOFF_S = 30.0


@dc.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff for transient failures.

    Attributes
    ----------
    max_attempts
        Total attempts including the first; ``1`` disables retries.
    initial_backoff_s
        Delay before the second attempt.
    multiplier
        Factor applied to the delay after each retry.
    max_backoff_s
        Ceiling for any single delay.

    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_backoff_s: float = DEFAULT_INITIAL_BACKOFF_S
    multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    max_backoff_s: float = DEFAULT_MAX_BACKOFF_S

    def __post_init__(self) -> None:
        """Reject policies that could loop forever or shrink delays."""
        if self.max_attempts < 1:
            raise ConfigurationError.invalid_value(
                "max_attempts", self.max_attempts, "Must be at least 1"
            )
        if self.initial_backoff_s < 0:
            raise ConfigurationError.invalid_value(
                "initial_backoff_s", self.initial_backoff_s, "Must not be negative"
            )
        if self.multiplier < 1:
            raise ConfigurationError.invalid_value(
                "multiplier", self.multiplier, "Must be at least 1"
            )
        if self.max_backoff_s < self.initial_backoff_s:
            raise ConfigurationError.invalid_value(
                "max_backoff_s",
                self.max_backoff_s,
                "Must not be smaller than initial_backoff_s",
            )

    def for_stage(self, stage: Stage) -> RetryPolicy:
        """Return the policy applied in ``stage``.

        Development makes a single attempt, test retries without sleeping,
        production uses this policy unchanged.
        """
        match stage:
            case Stage.DEV:
                return dc.replace(self, max_attempts=1)
            case Stage.TEST:
                return dc.replace(self, initial_backoff_s=0.0, max_backoff_s=0.0)
            case _:
                return self


@dc.dataclass(slots=True)
class RetryState:
    """Attempt counter and current delay for one ``handle()`` call."""

    policy: RetryPolicy
    attempt: int = 0
    delay_s: float = dc.field(init=False)

    def __post_init__(self) -> None:
        """Start from the policy's initial delay."""
        self.delay_s = self.policy.initial_backoff_s

    @property
    def exhausted(self) -> bool:
        """Return whether no attempts remain."""
        return self.attempt >= self.policy.max_attempts

    def start_attempt(self) -> int:
        """Count a new attempt and return its 1-based number."""
        self.attempt += 1
        return self.attempt

    def next_delay(self) -> float:
        """Return the delay to sleep now and grow the following one."""
        delay = self.delay_s
        self.delay_s = min(delay * self.policy.multiplier, self.policy.max_backoff_s)
        return delay
