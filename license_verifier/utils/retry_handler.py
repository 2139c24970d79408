"""
Retry Handler Module

Provides bounded retry with backoff for asynchronous worker calls. Failures
recognised as rate limiting double the delay used before the next attempt;
any other failure keeps the delay unchanged.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from license_verifier.utils.error_handler import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Phrases the verification API uses when it is throttling callers
RATE_LIMIT_PHRASES: Tuple[str, ...] = (
    "请求过快",
    "qps request limit reached",
    "request limit reached",
)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0


def is_rate_limit_error(error: BaseException) -> bool:
    """Return True if the error signals that the remote side is throttling."""
    if isinstance(error, RateLimitError):
        return True

    message = str(error).lower()
    return any(phrase in message for phrase in RATE_LIMIT_PHRASES)


async def retry_with_backoff(
    task: Callable[[], Awaitable[T]],
    retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """
    Run an async task, retrying it on failure.

    Args:
        task: Zero-argument callable returning an awaitable
        retries: Maximum number of retries after the first attempt
        initial_delay: Delay in seconds before the first retry
        on_retry: Optional callback ``(attempt, error, delay)`` invoked before
            each backoff sleep

    Returns:
        The task's result from the first attempt that does not raise

    Raises:
        The last exception raised by the task once retries are exhausted
    """
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")

    delay = initial_delay
    attempt = 0

    while True:
        attempt += 1
        try:
            return await task()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt > retries:
                logger.debug(f"Giving up after {attempt} attempt(s): {e}")
                raise

            rate_limited = is_rate_limit_error(e)
            logger.debug(
                f"Attempt {attempt} failed ({'rate limited' if rate_limited else 'error'}): "
                f"{e}; retrying in {delay:.2f}s"
            )
            if on_retry:
                on_retry(attempt, e, delay)

            await asyncio.sleep(delay)

            if rate_limited:
                delay *= 2
