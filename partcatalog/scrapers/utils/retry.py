"""Retry policy with exponential backoff for HTTP requests."""

import asyncio
from typing import Any, Awaitable, Callable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


logger = structlog.get_logger(__name__)

# Transport failures and non-2xx responses (raise_for_status) are both retried
RETRYABLE_HTTP_ERRORS = (httpx.HTTPError,)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    """Log a failed attempt before tenacity sleeps for the next one."""
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "http_request_retry",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(error) if error else None,
        error_type=type(error).__name__ if error else None,
    )


def http_retrying(
    max_attempts: int = 3,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    max_wait: float = 60,
) -> AsyncRetrying:
    """Build the retry controller used by the Fetcher.

    Waits 2^attempt seconds (1s, 2s, 4s, ...) between attempts, capped at
    max_wait. After the last attempt tenacity raises RetryError wrapping
    the final outcome.

    Args:
        max_attempts: Total number of attempts, including the first one
        sleep: Coroutine used to wait between attempts
        max_wait: Upper bound for a single backoff wait in seconds

    Returns:
        Configured AsyncRetrying instance
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=1, exp_base=2, min=0, max=max_wait),
        retry=retry_if_exception_type(RETRYABLE_HTTP_ERRORS),
        before_sleep=_log_before_sleep,
        sleep=sleep,
        reraise=False,
    )
