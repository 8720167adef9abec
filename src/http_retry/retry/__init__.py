"""
HTTP Retry - Retry Logic.

Backoff state, jitter strategies and the retry decision engine.
"""

from .backoff import AbsoluteJitter, BackoffState, Jitter, PercentageJitter, as_jitter
from .config import RetryConfig, is_error_status, is_server_error, status_in
from .engine import (
    CancellationToken,
    Outcome,
    Retry,
    RetryDecision,
    RetryEngine,
    RetryEvent,
    Stop,
)

__all__ = [
    "AbsoluteJitter",
    "BackoffState",
    "Jitter",
    "PercentageJitter",
    "as_jitter",
    "RetryConfig",
    "is_error_status",
    "is_server_error",
    "status_in",
    "CancellationToken",
    "Outcome",
    "Retry",
    "RetryDecision",
    "RetryEngine",
    "RetryEvent",
    "Stop",
]
