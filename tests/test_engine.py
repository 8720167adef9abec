"""Tests for the retry decision engine - behavior focused."""

import asyncio
import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from http_retry.exceptions import HttpRetryError, RequestReplicationError, RetryCancelledError
from http_retry.retry import (
    BackoffState,
    CancellationToken,
    PercentageJitter,
    Retry,
    RetryEngine,
    Stop,
    is_server_error,
)


def transport_failure() -> httpx.TransportError:
    return httpx.ConnectError("Connection refused")


@pytest.fixture
def engine():
    return RetryEngine()


@pytest.fixture
def state():
    return BackoffState(remaining_attempts=3, current_delay=0.1, multiplier=2.0)


class TestDecisionTable:
    """Test decisions while budget remains."""

    @pytest.mark.parametrize(
        "status_code, should_retry",
        [
            (200, False),
            (204, False),
            (301, False),
            (404, True),
            (429, True),
            (500, True),
            (503, True),
        ],
    )
    def test_response_status(self, engine, state, status_code, should_retry):
        """4xx and 5xx are retried, everything else stops."""
        decision = engine.decide(state, httpx.Response(status_code))

        assert isinstance(decision, Retry) is should_retry
        assert isinstance(decision, Stop) is not should_retry

    def test_transport_failure_is_retried(self, engine, state):
        """Any transport failure is retried while budget remains."""
        decision = engine.decide(state, transport_failure())

        assert isinstance(decision, Retry)

    def test_timeout_is_retried(self, engine, state):
        decision = engine.decide(state, httpx.ReadTimeout("timed out"))

        assert isinstance(decision, Retry)

    def test_custom_predicate_narrows_statuses(self, state):
        """With a server-error policy, 404 stops."""
        engine = RetryEngine(retry_on=is_server_error)

        assert isinstance(engine.decide(state, httpx.Response(404)), Stop)
        assert isinstance(engine.decide(state, httpx.Response(502)), Retry)


class TestRetryableFlag:
    """Test exception outcomes that declare whether they may be retried."""

    def test_non_retryable_error_stops(self, engine, state):
        decision = engine.decide(state, RequestReplicationError())

        assert isinstance(decision, Stop)
        assert decision.reason == "not retryable"

    def test_retryable_error_is_retried(self, engine, state):
        decision = engine.decide(state, HttpRetryError("busy", retryable=True))

        assert isinstance(decision, Retry)


class TestExhaustedBudget:
    """Test the terminal condition."""

    @pytest.mark.parametrize(
        "outcome",
        [httpx.Response(200), httpx.Response(404), httpx.Response(500), transport_failure()],
        ids=["200", "404", "500", "transport"],
    )
    def test_zero_remaining_always_stops(self, engine, outcome):
        """With no attempts left, every outcome stops."""
        state = BackoffState(remaining_attempts=0)

        decision = engine.decide(state, outcome)

        assert isinstance(decision, Stop)
        assert decision.reason == "attempts exhausted"


class TestRetryPayload:
    """Test what a Retry decision carries."""

    def test_retry_carries_advanced_state(self, engine, state):
        """The successor has one attempt less and a grown delay."""
        decision = engine.decide(state, httpx.Response(500))

        assert decision.state.remaining_attempts == 2
        assert decision.state.current_delay == pytest.approx(0.2)

    def test_wait_uses_evaluated_state_delay(self, engine, state):
        """The first wait is the initial delay, not the grown one."""
        decision = engine.decide(state, httpx.Response(500))

        assert decision.wait == 0.1

    def test_wait_includes_jitter(self, engine):
        class Half:
            def random(self):
                return 0.5

        state = BackoffState(remaining_attempts=1, current_delay=0.1, jitter=PercentageJitter(0.2))

        decision = engine.decide(state, httpx.Response(500), rng=Half())

        assert decision.wait == pytest.approx(0.11)
        assert decision.state.current_delay == pytest.approx(0.2)


class TestDecisionHook:
    """Test the observability hook."""

    def test_hook_receives_one_event_per_decision(self, state):
        events = []
        engine = RetryEngine(on_decision=events.append)

        engine.decide(state, httpx.Response(500), attempt=1)
        engine.decide(state.advance(), httpx.Response(200), attempt=2)

        assert [e.retry for e in events] == [True, False]
        assert [e.attempt for e in events] == [1, 2]
        assert events[0].remaining_attempts == 3
        assert events[0].delay == 0.1
        assert events[0].wait == 0.1
        assert events[1].wait is None

    def test_hook_does_not_change_decision(self, state):
        """Decisions are identical with and without a hook."""
        silent = RetryEngine()
        traced = RetryEngine(on_decision=lambda event: None)

        assert silent.decide(state, httpx.Response(500)) == traced.decide(state, httpx.Response(500))


class TestCancellation:
    """Test cancellation tokens and deadlines."""

    def test_cancelled_token_stops(self, engine, state):
        token = CancellationToken()
        token.cancel()

        decision = engine.decide(state, httpx.Response(500), token=token)

        assert isinstance(decision, Stop)
        assert decision.reason == "cancelled"

    def test_token_without_deadline_has_no_remaining(self):
        token = CancellationToken()

        assert token.remaining() is None
        assert token.cancelled is False

    def test_token_deadline_counts_down(self):
        token = CancellationToken(deadline=60.0)

        remaining = token.remaining()

        assert 0 < remaining <= 60.0
        assert token.cancelled is False

    def test_expired_deadline_counts_as_cancelled(self):
        token = CancellationToken(deadline=0.001)
        time.sleep(0.01)

        assert token.cancelled is True


class TestRetrySleep:
    """Test the suspended wait of a Retry decision."""

    @pytest.mark.asyncio
    async def test_sleep_waits_then_returns_successor(self, state):
        decision = Retry(state=state.advance(), wait=0.1)

        with patch("http_retry.retry.engine.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            successor = await decision.sleep()

        mock_sleep.assert_awaited_once_with(0.1)
        assert successor is decision.state

    @pytest.mark.asyncio
    async def test_sleep_past_deadline_is_cancelled(self, state):
        """A wait that would overrun the deadline is not started."""
        decision = Retry(state=state.advance(), wait=5.0)
        token = CancellationToken(deadline=0.5)

        with patch("http_retry.retry.engine.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RetryCancelledError):
                await decision.sleep(token)

        mock_sleep.assert_not_awaited()

    def test_sleep_sync_waits_then_returns_successor(self, state):
        decision = Retry(state=state.advance(), wait=0.2)

        with patch("http_retry.retry.engine.time.sleep") as mock_sleep:
            successor = decision.sleep_sync()

        mock_sleep.assert_called_once_with(0.2)
        assert successor is decision.state

    def test_sleep_sync_with_cancelled_token_raises(self, state):
        decision = Retry(state=state.advance(), wait=0.01)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RetryCancelledError):
            decision.sleep_sync(token)

    def test_sleep_sync_with_live_token_returns_successor(self, state):
        decision = Retry(state=state.advance(), wait=0.01)

        assert decision.sleep_sync(CancellationToken(deadline=10.0)) is decision.state

    @pytest.mark.asyncio
    async def test_sleep_is_interrupted_by_cancel(self, state):
        """Cancelling the token cuts an async backoff short, like the sync wait."""
        decision = Retry(state=state.advance(), wait=5.0)
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        started = time.monotonic()
        with pytest.raises(RetryCancelledError):
            await decision.sleep(token)

        assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_sleep_with_live_token_returns_successor(self, state):
        decision = Retry(state=state.advance(), wait=0.01)

        assert await decision.sleep(CancellationToken(deadline=10.0)) is decision.state
