"""
Base exception classes for retry middleware operations.

Each exception includes a `retryable` flag indicating whether the failed
operation could be repeated with any hope of a different result.
"""


class HttpRetryError(Exception):
    """Base exception for all retry middleware errors."""

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        url: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.url = url

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"(url: {self.url})")
        return " ".join(parts)


class InvalidConfigError(HttpRetryError, ValueError):
    """Raised when retry or jitter configuration is out of range. Not retryable."""

    def __init__(self, message: str = "Invalid retry configuration", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class AttemptBudgetError(HttpRetryError, RuntimeError):
    """Raised when a backoff state is advanced with no attempts left.

    This is a programming error: callers must consult the retry engine
    instead of advancing a state directly.
    """

    def __init__(self, message: str = "No attempts left to advance", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class RequestReplicationError(HttpRetryError):
    """Raised when a request cannot be rebuilt for another attempt. Not retryable."""

    def __init__(self, message: str = "Request cannot be replicated", **kwargs):
        super().__init__(message, retryable=False, **kwargs)


class RetryCancelledError(HttpRetryError):
    """Raised when a backoff wait is interrupted by cancellation or a deadline."""

    def __init__(self, message: str = "Retry cancelled", **kwargs):
        super().__init__(message, retryable=False, **kwargs)
