"""
Retrying httpx transport.

Wraps another httpx transport and re-sends requests that fail at the
transport level or come back with a retryable status, following the
backoff schedule in RetryConfig.
"""

import logging
import random
from typing import Any

import httpx

from .replicator import replicate_request
from ..exceptions import HttpRetryError, RequestReplicationError, RetryCancelledError
from ..retry import (
    BackoffState,
    CancellationToken,
    Retry,
    RetryConfig,
    RetryEngine,
    Stop,
)
from ..retry.engine import STOP_EXHAUSTED

logger = logging.getLogger(__name__)

# Request extension carrying a caller-owned CancellationToken.
CANCEL_TOKEN_EXTENSION = "retry_cancel_token"


def _describe(outcome: httpx.Response | Exception) -> str:
    if isinstance(outcome, Exception):
        return f"{type(outcome).__name__}: {outcome}"
    return f"status {outcome.status_code}"


class RetryTransport(httpx.BaseTransport, httpx.AsyncBaseTransport):
    """
    Transport middleware adding exponential backoff retries.

    Features:
    - Retries transport errors and statuses accepted by the config
    - Exponential backoff with optional ceiling and jitter
    - Replays buffered request bodies on every attempt
    - Optional overall deadline or caller-supplied cancellation token

    The caller always receives the real outcome of the last attempt: the
    final response, whatever its status, or the final transport error.
    """

    def __init__(
        self,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
        config: RetryConfig | None = None,
        engine: RetryEngine | None = None,
    ):
        """
        Initialize the retrying transport.

        Args:
            transport: Transport that performs each individual attempt
                (default: httpx.HTTPTransport or httpx.AsyncHTTPTransport,
                created on first use)
            config: Retry configuration (default: RetryConfig())
            engine: Decision engine (default: built from config.retry_on)
        """
        self.config = config or RetryConfig()
        self.engine = engine or RetryEngine(retry_on=self.config.retry_on)
        self._transport = transport

    def _sync_transport(self) -> httpx.BaseTransport:
        if self._transport is None:
            self._transport = httpx.HTTPTransport()
        return self._transport

    def _async_transport(self) -> httpx.AsyncBaseTransport:
        if self._transport is None:
            self._transport = httpx.AsyncHTTPTransport()
        return self._transport

    def _start(
        self, request: httpx.Request
    ) -> tuple[BackoffState, CancellationToken | None, random.Random]:
        token = request.extensions.get(CANCEL_TOKEN_EXTENSION)
        if token is None and self.config.deadline is not None:
            token = CancellationToken(self.config.deadline)
        rng = self.config.rng or random.Random()
        return self.config.root_state(), token, rng

    def _prepare_retry(
        self,
        request: httpx.Request,
        outcome: httpx.Response | Exception,
        decision: Retry,
        remaining: int,
    ) -> httpx.Request:
        try:
            retry_request = replicate_request(request)
        except RequestReplicationError as e:
            logger.error(f"Abandoning retries for {request.method} {request.url}: {e}")
            raise
        logger.warning(
            f"Retrying {request.method} {request.url} ({_describe(outcome)}), "
            f"waiting {decision.wait:.3f}s ({remaining} attempts left)"
        )
        return retry_request

    def _discard(self, response: httpx.Response) -> httpx.Response | Exception:
        """Buffer and close a response that is being retried.

        A body that breaks off mid-read turns the attempt into a transport failure.
        """
        try:
            response.read()
        except httpx.TransportError as e:
            logger.debug(f"Discarded response body failed to read: {e}")
            return e
        finally:
            response.close()
        return response

    async def _adiscard(self, response: httpx.Response) -> httpx.Response | Exception:
        try:
            await response.aread()
        except httpx.TransportError as e:
            logger.debug(f"Discarded response body failed to read: {e}")
            return e
        finally:
            await response.aclose()
        return response

    def _retryable(self, outcome: httpx.Response | Exception) -> bool:
        return isinstance(outcome, Exception) or self.engine.retry_on(outcome.status_code)

    def _finish(
        self,
        request: httpx.Request,
        outcome: httpx.Response | Exception,
        decision: Stop | None,
        attempt: int,
    ) -> httpx.Response:
        if decision is None:
            logger.info(f"Retries for {request.method} {request.url} cancelled after {attempt} attempts")
        elif decision.reason == STOP_EXHAUSTED and attempt > 1 and self._retryable(outcome):
            logger.error(
                f"All {attempt} attempts for {request.method} {request.url} exhausted "
                f"({_describe(outcome)})"
            )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Send a request through the wrapped sync transport with retries."""
        if self.config.buffer_body:
            request.read()
        state, token, rng = self._start(request)
        current = request
        attempt = 0

        while True:
            attempt += 1
            outcome: Any
            try:
                outcome = self._sync_transport().handle_request(current)
            except (httpx.TransportError, HttpRetryError) as e:
                outcome = e

            decision = self.engine.decide(state, outcome, token=token, rng=rng, attempt=attempt)
            if isinstance(decision, Stop):
                return self._finish(request, outcome, decision, attempt)

            try:
                current = self._prepare_retry(request, outcome, decision, state.remaining_attempts)
            finally:
                if isinstance(outcome, httpx.Response):
                    # Keep the body so a cancelled loop can still return it.
                    outcome = self._discard(outcome)

            try:
                state = decision.sleep_sync(token)
            except RetryCancelledError:
                return self._finish(request, outcome, None, attempt)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Send a request through the wrapped async transport with retries."""
        if self.config.buffer_body:
            await request.aread()
        state, token, rng = self._start(request)
        current = request
        attempt = 0

        while True:
            attempt += 1
            outcome: Any
            try:
                outcome = await self._async_transport().handle_async_request(current)
            except (httpx.TransportError, HttpRetryError) as e:
                outcome = e

            decision = self.engine.decide(state, outcome, token=token, rng=rng, attempt=attempt)
            if isinstance(decision, Stop):
                return self._finish(request, outcome, decision, attempt)

            try:
                current = self._prepare_retry(request, outcome, decision, state.remaining_attempts)
            finally:
                if isinstance(outcome, httpx.Response):
                    outcome = await self._adiscard(outcome)

            try:
                state = await decision.sleep(token)
            except RetryCancelledError:
                return self._finish(request, outcome, None, attempt)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    async def aclose(self) -> None:
        if self._transport is not None:
            await self._transport.aclose()


def create_retry_client(
    config: RetryConfig | None = None,
    transport: httpx.BaseTransport | None = None,
    **kwargs: Any,
) -> httpx.Client:
    """
    Build an httpx.Client whose requests are retried.

    Args:
        config: Retry configuration
        transport: Underlying transport (default: httpx.HTTPTransport())
        **kwargs: Passed through to httpx.Client

    Returns:
        Configured client
    """
    retry_transport = RetryTransport(transport or httpx.HTTPTransport(), config=config)
    return httpx.Client(transport=retry_transport, **kwargs)


def create_async_retry_client(
    config: RetryConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """Async counterpart of `create_retry_client`."""
    retry_transport = RetryTransport(transport or httpx.AsyncHTTPTransport(), config=config)
    return httpx.AsyncClient(transport=retry_transport, **kwargs)
