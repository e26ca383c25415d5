"""
Retry decorator for the client's startup path.

Request pipelines never retry; only the first registry load, which gates
every translated call, is worth a few more attempts.
"""

import asyncio
import functools
from typing import Callable, Type, Tuple
from ..exchange.exceptions import TransientApiError, TransportError
from .logger import get_logger

logger = get_logger(__name__)


def retry_on_transient_error(
    max_attempts: int = 3,
    backoff_base: float = 2,
    exceptions: Tuple[Type[Exception], ...] = (TransientApiError, TransportError)
):
    """
    Decorator to retry async functions on transient errors.

    Uses exponential backoff: delay = backoff_base ** attempt_number

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        backoff_base: Base for exponential backoff calculation (default: 2)
        exceptions: Tuple of exception types to retry on

    Example:
        @retry_on_transient_error(max_attempts=3)
        async def load():
            ...
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts - 1:
                        logger.error(
                            "max_retries_exceeded",
                            function=func.__name__,
                            attempts=max_attempts,
                            error=str(e)
                        )
                        raise

                    delay = backoff_base ** attempt
                    logger.warning(
                        "retrying_after_error",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay_seconds=delay,
                        error=str(e)
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
