"""Retry logic using tenacity.

Retries apply to discovery API calls only. Import operations against the
IaC engine are never retried automatically; re-running a failed import is
an operator decision.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from aztf_bridge.client.exceptions import NetworkError, RateLimitError, ServerError
from aztf_bridge.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (NetworkError, ServerError, RateLimitError)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 5,
    min_wait: float = 2,
    max_wait: float = 60,
    retry_on_exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> T:
    """Await ``func()`` and retry it on transient errors.

    Args:
        func: Zero-argument coroutine factory
        max_attempts: Maximum number of attempts (1 disables retrying)
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        retry_on_exceptions: Exception types that trigger a retry

    Returns:
        Result of the coroutine
    """
    async for attempt_obj in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_random_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on_exceptions),
        reraise=True,
    ):
        with attempt_obj:
            attempt = attempt_obj.retry_state.attempt_number
            if attempt > 1:
                logger.info(
                    "retry_attempt",
                    function=getattr(func, "__name__", repr(func)),
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
            return await func()
    raise RuntimeError("Unexpected retry loop exit")
