"""Retry utilities for network operations with exponential backoff"""

import logging
import random
import time
from enum import Enum
from functools import wraps
from typing import Callable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableErrorType(Enum):
    """Types of errors that should trigger retries"""

    NETWORK = "network"  # Connection errors, timeouts
    TEMPORARY = "temporary"  # 5xx errors, rate limiting
    PERMANENT = "permanent"  # 4xx errors (except rate limiting), auth failures


NETWORK_INDICATORS = [
    "connection",
    "timeout",
    "timed out",
    "network",
    "dns",
    "resolve",
    "refused",
    "unreachable",
    "reset",
    "broken pipe",
    "no route to host",
    "temporary failure",
]

# Connect protocol error codes (https://connectrpc.com/docs/protocol#error-codes)
RETRYABLE_CONNECT_CODES = {"unavailable", "resource_exhausted", "deadline_exceeded", "aborted"}
PERMANENT_CONNECT_CODES = {
    "unauthenticated",
    "permission_denied",
    "not_found",
    "invalid_argument",
    "failed_precondition",
    "already_exists",
    "unimplemented",
}


def is_retryable_error(error: Exception, error_message: str = "") -> Tuple[bool, RetryableErrorType]:
    """Determine if an error is retryable and what type it is

    HTTP status codes and Connect error codes carried on the exception are
    checked before falling back to matching the error text.

    Args:
        error: The exception that occurred
        error_message: Optional error message string

    Returns:
        Tuple of (is_retryable, error_type)
    """
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429 or status_code >= 500:
            return True, RetryableErrorType.TEMPORARY
        if 400 <= status_code < 500:
            return False, RetryableErrorType.PERMANENT

    code = getattr(error, "code", None)
    if isinstance(code, str):
        if code in RETRYABLE_CONNECT_CODES:
            return True, RetryableErrorType.TEMPORARY
        if code in PERMANENT_CONNECT_CODES:
            return False, RetryableErrorType.PERMANENT

    combined = f"{error} {error_message}".lower()

    # Network/connection errors - always retryable
    if any(indicator in combined for indicator in NETWORK_INDICATORS):
        return True, RetryableErrorType.NETWORK

    # HTTP 5xx errors - retryable (server errors)
    if "500" in combined or "502" in combined or "503" in combined or "504" in combined:
        return True, RetryableErrorType.TEMPORARY

    # Rate limiting - retryable
    if "429" in combined or "rate limit" in combined or "too many requests" in combined:
        return True, RetryableErrorType.TEMPORARY

    # Auth errors - not retryable (won't fix itself)
    if "401" in combined or "403" in combined or "unauthorized" in combined or "forbidden" in combined:
        return False, RetryableErrorType.PERMANENT

    # 404 errors - resource doesn't exist
    if "404" in combined or "not found" in combined:
        return False, RetryableErrorType.PERMANENT

    # Programming errors never fix themselves
    if isinstance(error, (TypeError, ValueError, KeyError, AttributeError)):
        return False, RetryableErrorType.PERMANENT

    return True, RetryableErrorType.TEMPORARY


def _backoff_delay(attempt: int, initial_delay: float, max_delay: float, exponential_base: float, jitter: bool) -> float:
    delay = min(initial_delay * (exponential_base**attempt), max_delay)
    if jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_errors: Optional[List[RetryableErrorType]] = None,
) -> Callable:
    """Decorator for retrying functions with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Initial delay in seconds before first retry (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add random jitter to prevent thundering herd (default: True)
        retryable_errors: List of error types to retry (None = retry all retryable types)

    Returns:
        Decorator function
    """
    if retryable_errors is None:
        retryable_errors = [RetryableErrorType.NETWORK, RetryableErrorType.TEMPORARY]

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(f"{func.__name__} succeeded on attempt {attempt + 1}")
                    return result

                except Exception as e:
                    is_retryable, error_type = is_retryable_error(e)

                    if not is_retryable or error_type not in retryable_errors:
                        logger.error(f"{func.__name__} failed with non-retryable error ({error_type.value}): {e}")
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            f"{func.__name__} failed after {max_retries + 1} attempts. "
                            f"Last error ({error_type.value}): {e}"
                        )
                        raise

                    delay = _backoff_delay(attempt, initial_delay, max_delay, exponential_base, jitter)
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_retries + 1} "
                        f"({error_type.value} error: {e}). "
                        f"Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)

            raise RuntimeError(f"{func.__name__} exhausted all retries")  # pragma: no cover

        return wrapper

    return decorator
