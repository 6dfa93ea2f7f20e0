"""
Retry logic with exponential backoff for throttled store calls.

The CRM store signals throttling with a distinct error (HTTP 429). Write
operations (merge, update) retry on that signal only; every other error
propagates on the first attempt.
"""

import time
import functools
from typing import Any, Callable, Type, Tuple, Optional

from .client import RateLimitedError


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def call_with_backoff(
    func: Callable[[], Any],
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (RateLimitedError,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Call func, retrying with exponential backoff on the given exceptions.

    Makes at most max_retries + 1 attempts. The wait before retry n is
    base_delay * exponential_base ** (n - 1), capped at max_delay.

    Args:
        func: Zero-argument callable to invoke
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        on_retry: Optional callback function(attempt, exception, delay)
        sleep: Function used to wait between attempts

    Raises:
        RetryError: When every attempt raised one of `exceptions`
    """
    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            return func()
        except exceptions as e:
            # Don't sleep after the last attempt
            if attempt >= max_retries:
                raise RetryError(
                    f"Failed after {max_retries + 1} attempts: {str(e)}"
                ) from e

            current_delay = min(delay, max_delay)
            if on_retry:
                on_retry(attempt + 1, e, current_delay)
            sleep(current_delay)
            delay *= exponential_base

    # Only reachable with a negative max_retries
    raise RetryError(f"No attempts made (max_retries={max_retries})")


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (RateLimitedError,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Decorator form of call_with_backoff.

    Example:
        @exponential_backoff(max_retries=3, base_delay=0.5)
        def merge(primary_id, secondary_id):
            return store.merge_records("organization", primary_id, secondary_id)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return call_with_backoff(
                lambda: func(*args, **kwargs),
                max_retries=max_retries,
                base_delay=base_delay,
                max_delay=max_delay,
                exponential_base=exponential_base,
                exceptions=exceptions,
                on_retry=on_retry,
                sleep=sleep,
            )
        return wrapper
    return decorator
