"""Tests for query timeout and retry with exponential backoff."""

import asyncio

import pytest

from api.errors import QueryTimeoutError, SearchValidationError, UpstreamQueryError
from api.services.retry import RetryConfig, retry_with_backoff
from database import postgres_connect_args


class Recorder:
    def __init__(self):
        self.delays = []

    async def sleep(self, delay):
        self.delays.append(delay)


def _run(operation, config, recorder):
    return asyncio.run(
        retry_with_backoff(operation, config, label="count", sleep=recorder.sleep)
    )


def test_backoff_delay_doubles():
    config = RetryConfig(max_attempts=4, base_delay_s=0.1)
    assert [config.get_backoff_delay(a) for a in range(4)] == pytest.approx(
        [0.1, 0.2, 0.4, 0.8]
    )


def test_success_on_first_attempt_does_not_sleep():
    recorder = Recorder()

    async def operation():
        return 42

    assert _run(operation, RetryConfig(max_attempts=3, base_delay_s=1.0), recorder) == 42
    assert recorder.delays == []


def test_retryable_errors_are_retried_with_backoff():
    recorder = Recorder()
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise UpstreamQueryError("connection lost", retryable=True)
        return "ok"

    result = _run(operation, RetryConfig(max_attempts=3, base_delay_s=0.5), recorder)

    assert result == "ok"
    assert len(attempts) == 3
    assert recorder.delays == [0.5, 1.0]


def test_last_error_raised_when_budget_exhausted():
    recorder = Recorder()

    async def operation():
        raise UpstreamQueryError("connection lost", retryable=True)

    with pytest.raises(UpstreamQueryError, match="connection lost"):
        _run(operation, RetryConfig(max_attempts=2, base_delay_s=0.1), recorder)
    assert recorder.delays == [0.1]


def test_terminal_error_not_retried():
    recorder = Recorder()
    attempts = []

    async def operation():
        attempts.append(1)
        raise UpstreamQueryError("relation does not exist")

    with pytest.raises(UpstreamQueryError):
        _run(operation, RetryConfig(max_attempts=5, base_delay_s=0.1), recorder)
    assert len(attempts) == 1
    assert recorder.delays == []


def test_non_upstream_errors_propagate_immediately():
    recorder = Recorder()

    async def operation():
        raise SearchValidationError("bounds and zoom required")

    with pytest.raises(SearchValidationError):
        _run(operation, RetryConfig(max_attempts=3, base_delay_s=0.1), recorder)
    assert recorder.delays == []


def test_timeout_becomes_query_timeout_error():
    recorder = Recorder()
    attempts = []

    async def operation():
        attempts.append(1)
        await asyncio.sleep(1)

    config = RetryConfig(max_attempts=2, base_delay_s=0.0, timeout_s=0.01)
    with pytest.raises(QueryTimeoutError) as exc_info:
        _run(operation, config, recorder)

    assert len(attempts) == 2
    assert exc_info.value.retryable is True


def test_postgres_statement_timeout_matches_query_timeout():
    assert postgres_connect_args(5.0) == {"options": "-c statement_timeout=5000"}
    assert postgres_connect_args(0.25) == {"options": "-c statement_timeout=250"}


def test_postgres_statement_timeout_can_be_disabled():
    assert postgres_connect_args(None) == {}
