"""
Retry decision engine.

After every attempt the engine looks at the current BackoffState and the
attempt's outcome and returns either Stop or Retry. A Retry carries the
successor state together with the wait to observe before the next attempt.
The engine performs no I/O; tracing goes through the `on_decision` hook.
"""

import asyncio
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Union

from .backoff import BackoffState
from .config import is_error_status
from ..exceptions import RetryCancelledError

STOP_EXHAUSTED = "attempts exhausted"
STOP_CANCELLED = "cancelled"
STOP_NOT_RETRYABLE = "not retryable"

# Longest stretch an async backoff sleeps before re-checking its token.
CANCEL_POLL_INTERVAL = 0.05

# A response-like object exposing `status_code`, or the transport failure.
Outcome = Union[Any, BaseException]


class CancellationToken:
    """
    Cooperative cancellation for one retry loop.

    Fires when `cancel()` is called or when the optional deadline (seconds
    from construction) has passed.
    """

    def __init__(self, deadline: float | None = None):
        self._event = threading.Event()
        self._expires_at = time.monotonic() + deadline if deadline is not None else None

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Block up to `timeout` seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.remaining() == 0.0

    def check(self, wait: float) -> None:
        """Raise if the token fired or the wait would overrun the deadline."""
        if self.cancelled:
            raise RetryCancelledError("Retry cancelled before waiting")
        remaining = self.remaining()
        if remaining is not None and wait > remaining:
            raise RetryCancelledError(
                f"Backoff of {wait:.3f}s exceeds the remaining deadline of {remaining:.3f}s"
            )


@dataclass(frozen=True)
class Stop:
    """Terminal decision: surface the last outcome."""

    reason: str


@dataclass(frozen=True)
class Retry:
    """
    Decision to attempt again.

    Attributes:
        state: Successor state to use when deciding after the next attempt
        wait: Seconds to wait before the next attempt
    """

    state: BackoffState
    wait: float

    async def sleep(self, token: CancellationToken | None = None) -> BackoffState:
        """
        Wait out the backoff, then hand over the successor state.

        With a token the wait is sliced so that `cancel()` interrupts it early.
        """
        if token is None:
            await asyncio.sleep(self.wait)
            return self.state
        token.check(self.wait)
        ends_at = time.monotonic() + self.wait
        while True:
            left = ends_at - time.monotonic()
            if left <= 0:
                break
            await asyncio.sleep(min(left, CANCEL_POLL_INTERVAL))
            if token.cancelled:
                raise RetryCancelledError("Retry cancelled during backoff")
        return self.state

    def sleep_sync(self, token: CancellationToken | None = None) -> BackoffState:
        """Blocking variant of `sleep`; the token interrupts the wait early."""
        if token is None:
            time.sleep(self.wait)
            return self.state
        token.check(self.wait)
        if token.wait(self.wait):
            raise RetryCancelledError("Retry cancelled during backoff")
        return self.state


RetryDecision = Union[Stop, Retry]


@dataclass(frozen=True)
class RetryEvent:
    """Trace record emitted once per decision."""

    attempt: int
    remaining_attempts: int
    delay: float
    wait: float | None
    retry: bool
    outcome: Outcome


class RetryEngine:
    """
    Decides whether another attempt should follow the one just completed.

    Transport failures are always retried while budget remains; responses
    are retried when `retry_on` accepts their status code. Exceptions that
    carry `retryable=False` stop the loop.
    """

    def __init__(
        self,
        retry_on: Callable[[int], bool] = is_error_status,
        on_decision: Callable[[RetryEvent], None] | None = None,
    ):
        self.retry_on = retry_on
        self.on_decision = on_decision

    def decide(
        self,
        state: BackoffState,
        outcome: Outcome,
        token: CancellationToken | None = None,
        rng: random.Random | None = None,
        attempt: int = 0,
    ) -> RetryDecision:
        """
        Decide what follows the attempt authorized by `state`.

        Args:
            state: State that authorized the completed attempt
            outcome: The response received, or the transport exception raised
            token: Optional cancellation token for the loop
            rng: Random source for jitter
            attempt: One-based number of the completed attempt, for tracing

        Returns:
            Stop, or Retry with the advanced state and the wait to observe
        """
        decision = self._evaluate(state, outcome, token, rng)
        if self.on_decision is not None:
            self.on_decision(
                RetryEvent(
                    attempt=attempt,
                    remaining_attempts=state.remaining_attempts,
                    delay=state.current_delay,
                    wait=decision.wait if isinstance(decision, Retry) else None,
                    retry=isinstance(decision, Retry),
                    outcome=outcome,
                )
            )
        return decision

    def _evaluate(
        self,
        state: BackoffState,
        outcome: Outcome,
        token: CancellationToken | None,
        rng: random.Random | None,
    ) -> RetryDecision:
        if state.exhausted:
            return Stop(STOP_EXHAUSTED)
        if token is not None and token.cancelled:
            return Stop(STOP_CANCELLED)

        if isinstance(outcome, BaseException) and getattr(outcome, "retryable", True) is False:
            return Stop(STOP_NOT_RETRYABLE)
        if not isinstance(outcome, BaseException) and not self.retry_on(outcome.status_code):
            return Stop(f"status {outcome.status_code} is not retryable")

        # The wait belongs to the state being evaluated; the successor
        # carries the grown delay for the following round.
        return Retry(state=state.advance(), wait=state.effective_wait(rng))
