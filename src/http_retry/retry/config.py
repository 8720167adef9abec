"""
Retry configuration and retryable-status predicates.
"""

import random
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from .backoff import BackoffState, Jitter, as_jitter
from ..exceptions import InvalidConfigError


def is_error_status(status_code: int) -> bool:
    """Client (4xx) or server (5xx) error."""
    return 400 <= status_code < 600


def is_server_error(status_code: int) -> bool:
    return 500 <= status_code < 600


def status_in(*codes: int) -> Callable[[int], bool]:
    """Build a predicate accepting exactly the given status codes."""
    allowed = frozenset(codes)

    def predicate(status_code: int) -> bool:
        return status_code in allowed

    return predicate


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        attempts: Total attempts including the first one (default: 10)
        delay: Initial delay in seconds (default: 0.1)
        multiplier: Delay growth factor per retry (default: 2.0)
        max_delay: Optional delay ceiling in seconds (default: none)
        jitter: Jitter strategy, a timedelta for absolute jitter or a
            fraction in [0, 1) for percentage jitter (default: none)
        retry_on: Predicate over status codes that trigger a retry
            (default: any 4xx or 5xx)
        deadline: Optional overall time budget in seconds per request
        buffer_body: Read streaming request bodies up front so they can be replayed
        rng: Random source for jitter (default: one generator per request)
    """

    attempts: int = 10
    delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float | None = None
    jitter: Jitter | timedelta | float | None = None
    retry_on: Callable[[int], bool] = is_error_status
    deadline: float | None = None
    buffer_body: bool = True
    rng: random.Random | None = None

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise InvalidConfigError(f"attempts must be >= 1, got {self.attempts}")
        if self.delay < 0:
            raise InvalidConfigError(f"delay must be >= 0, got {self.delay}")
        if self.multiplier <= 0:
            raise InvalidConfigError(f"multiplier must be > 0, got {self.multiplier}")
        if self.max_delay is not None and self.max_delay < 0:
            raise InvalidConfigError(f"max_delay must be >= 0, got {self.max_delay}")
        if self.deadline is not None and self.deadline <= 0:
            raise InvalidConfigError(f"deadline must be > 0, got {self.deadline}")
        self.jitter = as_jitter(self.jitter)

    def should_retry(self, status_code: int) -> bool:
        """Check if the given status code should trigger a retry."""
        return self.retry_on(status_code)

    def root_state(self) -> BackoffState:
        """Backoff state for the first attempt of a new request."""
        return BackoffState.from_config(self)

    @classmethod
    def aggressive(cls) -> "RetryConfig":
        """Preset for aggressive retry (more attempts, longer ceiling)."""
        return cls(
            attempts=15,
            delay=0.2,
            max_delay=30.0,
            jitter=0.25,
        )

    @classmethod
    def conservative(cls) -> "RetryConfig":
        """Preset for conservative retry (fewer attempts, server errors only)."""
        return cls(
            attempts=3,
            delay=0.5,
            max_delay=5.0,
            retry_on=is_server_error,
        )

    @classmethod
    def no_retry(cls) -> "RetryConfig":
        """Preset for no retry (single attempt only)."""
        return cls(attempts=1)
