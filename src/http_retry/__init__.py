"""
HTTP Retry - Exponential Backoff Middleware for httpx.

Transparently re-sends failed or error-status requests with exponential
backoff, optional jitter and a bounded attempt budget.
"""

from .clients import (
    CANCEL_TOKEN_EXTENSION,
    RetryTransport,
    create_async_retry_client,
    create_retry_client,
    replicate_request,
)
from .exceptions import (
    HttpRetryError,
    InvalidConfigError,
    AttemptBudgetError,
    RequestReplicationError,
    RetryCancelledError,
)
from .retry import (
    AbsoluteJitter,
    BackoffState,
    CancellationToken,
    PercentageJitter,
    Retry,
    RetryConfig,
    RetryEngine,
    RetryEvent,
    Stop,
    is_error_status,
    is_server_error,
    status_in,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Clients
    "CANCEL_TOKEN_EXTENSION",
    "RetryTransport",
    "create_async_retry_client",
    "create_retry_client",
    "replicate_request",
    # Exceptions
    "HttpRetryError",
    "InvalidConfigError",
    "AttemptBudgetError",
    "RequestReplicationError",
    "RetryCancelledError",
    # Retry
    "AbsoluteJitter",
    "BackoffState",
    "CancellationToken",
    "PercentageJitter",
    "Retry",
    "RetryConfig",
    "RetryEngine",
    "RetryEvent",
    "Stop",
    "is_error_status",
    "is_server_error",
    "status_in",
]
