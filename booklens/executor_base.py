"""Executor Base - failure classification and backoff schedules.

Shared by the retrying executor and its tests.
"""

import asyncio
import logging

from booklens.errors import InferenceError, ResponseParseError

logger = logging.getLogger(__name__)

# Provider SDK exception names that are retryable
RETRYABLE_EXCEPTIONS = (
    "RateLimitError",
    "APIConnectionError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
    "OverloadedError",
)

# Transport error codes that are retryable
RETRYABLE_CODES = frozenset({"ECONNRESET", "ECONNABORTED", "ETIMEDOUT", "ECONNREFUSED"})


def is_retryable_status(status: int | None) -> bool:
    """429 and any 5xx are worth retrying."""
    return status is not None and (status == 429 or status >= 500)


def is_retryable(exception: BaseException) -> bool:
    """Check if an exception is retryable.

    Retryable: rate limiting, server errors, timeouts and connection
    resets. Everything else, including malformed responses, is terminal.

    Args:
        exception: The exception to check

    Returns:
        True if the exception should be retried
    """
    if isinstance(exception, ResponseParseError):
        return False
    if isinstance(exception, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exception, InferenceError):
        if is_retryable_status(exception.status):
            return True
        if exception.code in RETRYABLE_CODES or exception.code in RETRYABLE_EXCEPTIONS:
            return True
        return exception.status is None and _retryable_name(exception.__cause__)
    return _retryable_name(exception)


def _retryable_name(exception: BaseException | None) -> bool:
    if exception is None:
        return False
    exc_name = type(exception).__name__
    return exc_name in RETRYABLE_EXCEPTIONS or "ratelimit" in exc_name.lower()


def exponential_backoff(
    attempts: int,
    base_delay: float,
    max_delay: float,
) -> list[float]:
    """Delays to wait before each retry of a request with `attempts` tries.

    Examples:
        >>> exponential_backoff(4, 3.0, 30.0)
        [3.0, 6.0, 12.0]
    """
    return [min(base_delay * (2**i), max_delay) for i in range(max(attempts - 1, 0))]


def delay_for(schedule: list[float], retry_number: int) -> float:
    """Delay before retry `retry_number` (0-based); the last delay repeats."""
    if not schedule:
        return 0.0
    return schedule[min(retry_number, len(schedule) - 1)]


__all__ = [
    "RETRYABLE_CODES",
    "RETRYABLE_EXCEPTIONS",
    "delay_for",
    "exponential_backoff",
    "is_retryable",
    "is_retryable_status",
]
