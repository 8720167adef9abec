"""
HTTP Retry - Exception Hierarchy.

Custom exceptions for the retry middleware.
"""

from .base import (
    HttpRetryError,
    InvalidConfigError,
    AttemptBudgetError,
    RequestReplicationError,
    RetryCancelledError,
)

__all__ = [
    "HttpRetryError",
    "InvalidConfigError",
    "AttemptBudgetError",
    "RequestReplicationError",
    "RetryCancelledError",
]
