"""
Request replication for re-submission.

httpx hands a request's stream to the transport on every send, so each
retry gets a freshly built request carrying the same method, URL, raw
headers, body and extensions.
"""

import logging

import httpx

from ..exceptions import RequestReplicationError

logger = logging.getLogger(__name__)


def replicate_request(request: httpx.Request) -> httpx.Request:
    """
    Build an independent copy of a request.

    Repeated header names are kept in their original order. The body must
    already be buffered in memory; unread streaming bodies are rejected
    rather than resent empty. The body is attached as a stream so no
    framing headers are added beyond the copied ones.

    Args:
        request: The request to copy

    Returns:
        A new request equal to the original

    Raises:
        RequestReplicationError: If the body is not buffered or httpx
            rejects the rebuilt request
    """
    try:
        body = request.content
    except httpx.RequestNotRead as e:
        raise RequestReplicationError(
            "Request body is an unread stream and cannot be replayed",
            url=str(request.url),
        ) from e

    try:
        replica = httpx.Request(
            request.method,
            request.url,
            headers=list(request.headers.raw),
            stream=httpx.ByteStream(body),
            extensions=dict(request.extensions),
        )
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        logger.debug(f"Rebuilding {request.method} {request.url} failed: {e}")
        raise RequestReplicationError(
            f"Failed to rebuild request: {e}",
            url=str(request.url),
        ) from e

    # Explicit streams are not read on construction.
    replica.read()
    return replica
