"""
HTTP Retry - httpx Integration.

Request replication and the retrying transport.
"""

from .replicator import replicate_request
from .transport import (
    CANCEL_TOKEN_EXTENSION,
    RetryTransport,
    create_async_retry_client,
    create_retry_client,
)

__all__ = [
    "replicate_request",
    "CANCEL_TOKEN_EXTENSION",
    "RetryTransport",
    "create_async_retry_client",
    "create_retry_client",
]
