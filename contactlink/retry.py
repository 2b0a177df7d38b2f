"""
Retry logic with exponential backoff for handling transient failures.

The resolver itself never retries. Callers wrap a whole identify call,
which converges to the same graph when repeated.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        retry_if: Optional predicate; a caught exception it rejects is re-raised as is
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=3, exceptions=(StoreError,), retry_if=is_transient_error)
        def run(email, phone):
            return resolver.identify(email, phone)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise
                    last_exception = e

                    # Don't sleep after the last attempt
                    if attempt < max_retries:
                        current_delay = min(delay, max_delay)

                        if on_retry:
                            on_retry(attempt + 1, e, current_delay)

                        time.sleep(current_delay)
                        delay *= exponential_base
                    else:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

            raise RetryError(
                f"Unexpected retry exhaustion: {str(last_exception)}"
            ) from last_exception

        return wrapper
    return decorator


TRANSIENT_KEYWORDS = (
    'database is locked',
    'database is busy',
    'disk i/o error',
    'unable to open database',
    'timeout',
    'connection',
)


def is_transient_error(exception: BaseException) -> bool:
    """
    Determine if an exception is likely transient and should be retried.

    Looks at the exception and the chain of causes behind it, since
    StoreError wraps the driver error.

    Args:
        exception: Exception to check

    Returns:
        True if error is likely transient (lock contention, I/O, connection)
    """
    current: Optional[BaseException] = exception
    seen = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        error_str = str(current).lower()
        if any(keyword in error_str for keyword in TRANSIENT_KEYWORDS):
            return True
        current = current.__cause__ or current.__context__
    return False
