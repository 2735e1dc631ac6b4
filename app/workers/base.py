"""
Worker Helpers
Retry handling for RQ tasks.
"""

import logging
import time
from typing import Callable, TypeVar
from functools import wraps

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def with_retry(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    exponential_backoff: bool = True,
    retryable_exceptions: tuple = (OperationalError, TimeoutError, ConnectionError)
):
    """
    Decorator to add retry logic to worker tasks.

    Args:
        max_retries: Maximum number of retry attempts
        retry_delay: Base delay between retries (seconds)
        exponential_backoff: Whether to use exponential backoff
        retryable_exceptions: Tuple of exception types that should trigger retry
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= max_retries:
                        logger.error(f"[Failed] {func.__name__} exhausted all {max_retries} retries: {e}")
                        raise
                    delay = retry_delay * (2 ** attempt if exponential_backoff else 1)
                    logger.warning(
                        f"[Retry {attempt + 1}/{max_retries}] {func.__name__} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    time.sleep(delay)
            raise RuntimeError("unreachable")

        return wrapper

    return decorator
