"""
Backoff state and jitter strategies.

A BackoffState is an immutable snapshot of the retry budget and the delay
schedule. Each retried attempt replaces it with its successor from
`advance()`. Jitter only perturbs the realized wait, so the stored delay
sequence stays deterministic.
"""

import random
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import TYPE_CHECKING, Union

from ..exceptions import AttemptBudgetError, InvalidConfigError

if TYPE_CHECKING:
    from .config import RetryConfig


@dataclass(frozen=True)
class AbsoluteJitter:
    """Adds a uniformly sampled duration in [0, max_jitter) to each wait."""

    max_jitter: float

    def __post_init__(self) -> None:
        if self.max_jitter < 0:
            raise InvalidConfigError(f"max_jitter must be >= 0, got {self.max_jitter}")

    def apply(self, delay: float, rng) -> float:
        return delay + rng.random() * self.max_jitter


@dataclass(frozen=True)
class PercentageJitter:
    """Scales each wait by (1 + U), with U sampled uniformly in [0, fraction)."""

    fraction: float

    def __post_init__(self) -> None:
        if not 0 <= self.fraction < 1:
            raise InvalidConfigError(f"jitter fraction must be in [0, 1), got {self.fraction}")

    def apply(self, delay: float, rng) -> float:
        return delay * (1.0 + rng.random() * self.fraction)


Jitter = Union[AbsoluteJitter, PercentageJitter]


def as_jitter(value: Jitter | timedelta | float | None) -> Jitter | None:
    """
    Normalize a jitter setting.

    A timedelta is an absolute bound, a bare float is a fraction of the delay.
    """
    if value is None or isinstance(value, (AbsoluteJitter, PercentageJitter)):
        return value
    if isinstance(value, timedelta):
        return AbsoluteJitter(value.total_seconds())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return PercentageJitter(float(value))
    raise InvalidConfigError(f"Unsupported jitter value: {value!r}")


@dataclass(frozen=True)
class BackoffState:
    """
    Remaining budget and delay schedule for one retry loop.

    Attributes:
        remaining_attempts: Attempts left, not counting the one just completed
        current_delay: Base delay in seconds before the next attempt
        multiplier: Growth factor applied on every advance
        max_delay: Optional ceiling in seconds for computed delays
        jitter: Optional jitter strategy for the realized wait
    """

    remaining_attempts: int = 9
    current_delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float | None = None
    jitter: Jitter | None = None

    @classmethod
    def from_config(cls, config: "RetryConfig") -> "BackoffState":
        """Build the root state; the first attempt is not counted as remaining."""
        return cls(
            remaining_attempts=config.attempts - 1,
            current_delay=config.delay,
            multiplier=config.multiplier,
            max_delay=config.max_delay,
            jitter=as_jitter(config.jitter),
        )

    @property
    def exhausted(self) -> bool:
        return self.remaining_attempts <= 0

    def advance(self) -> "BackoffState":
        """
        Produce the successor state for a retried attempt.

        Raises:
            AttemptBudgetError: If no attempts are left
        """
        if self.exhausted:
            raise AttemptBudgetError()

        delay = self.current_delay * self.multiplier
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)

        return replace(
            self,
            remaining_attempts=self.remaining_attempts - 1,
            current_delay=delay,
        )

    def effective_wait(self, rng: random.Random | None = None) -> float:
        """
        Duration actually slept before the attempt that uses this state.

        Args:
            rng: Random source for jitter (default: the module-level generator)

        Returns:
            Wait in seconds, never below current_delay
        """
        if self.jitter is None:
            return self.current_delay
        source = rng or random
        return self.jitter.apply(self.current_delay, source)
