"""
Timeout and retry with exponential backoff for point store queries.

Only retryable upstream failures (timeouts, lost connections) are retried.
Validation failures and terminal query errors propagate on the first attempt.

A timed-out attempt only stops waiting; its worker thread keeps the session
until the query returns. PostgreSQL connections carry a matching
statement_timeout (see database.postgres_connect_args) so the server aborts
the query too. SQLite queries run to completion.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from api.errors import QueryTimeoutError, UpstreamQueryError
from config import (
    SEARCH_QUERY_MAX_ATTEMPTS,
    SEARCH_QUERY_TIMEOUT_S,
    SEARCH_RETRY_BASE_DELAY_S,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for retry behavior with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay_s: Delay before the first retry
        timeout_s: Per-attempt timeout in seconds
    """

    max_attempts: int = SEARCH_QUERY_MAX_ATTEMPTS
    base_delay_s: float = SEARCH_RETRY_BASE_DELAY_S
    timeout_s: Optional[float] = SEARCH_QUERY_TIMEOUT_S

    def get_backoff_delay(self, attempt: int) -> float:
        """
        Delay before retrying after the given (0-indexed) failed attempt.

        delay = base_delay_s * (2 ^ attempt)
        """
        return self.base_delay_s * (2 ** attempt)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    label: str = "query",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Execute an async operation under a timeout, retrying transient failures.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        config: Retry configuration
        label: Operation name for logs
        sleep: Awaitable sleep used between attempts

    Returns:
        Result of the first successful attempt

    Raises:
        QueryTimeoutError: the last attempt timed out
        UpstreamQueryError: terminal failure, or retries exhausted
    """
    attempts = max(1, config.max_attempts)
    last_error: Optional[UpstreamQueryError] = None

    for attempt in range(attempts):
        try:
            if config.timeout_s is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=config.timeout_s)
        except asyncio.TimeoutError:
            last_error = QueryTimeoutError(
                f"{label} timed out after {config.timeout_s}s"
            )
        except UpstreamQueryError as e:
            if not e.retryable:
                raise
            last_error = e

        if attempt == attempts - 1:
            logger.error(
                f"{label} failed after {attempts} attempts. Final error: {last_error}"
            )
            break

        delay = config.get_backoff_delay(attempt)
        logger.warning(
            f"{label} attempt {attempt + 1}/{attempts} failed ({last_error}); "
            f"retrying in {delay:.2f}s"
        )
        await sleep(delay)

    raise last_error
