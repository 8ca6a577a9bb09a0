"""
Retry Decorator with Exponential Backoff
Retries transient failures of external calls such as artifact uploads
"""

import asyncio
import functools
import random
from typing import Callable, Optional

from .logger import get_logger

logger = get_logger()


def backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool = True) -> float:
    """Delay before retry number `attempt` (0-based), doubled each time"""
    delay = min(base_delay * (2 ** attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_async(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    jitter: bool = True,
    should_retry: Optional[Callable[[Exception], bool]] = None
):
    """
    Async retry decorator with exponential backoff

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry in seconds
        max_delay: Upper bound for any single delay
        jitter: Randomize delays between 50% and 150%
        should_retry: Decides whether an exception is worth another attempt;
            every exception is retried when omitted
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt >= max_retries:
                        logger.error(f"{func.__name__} failed after {attempt + 1} attempts: {e}")
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, jitter)
                    attempt += 1
                    logger.warning(
                        f"Retry {attempt}/{max_retries} for {func.__name__} "
                        f"in {delay:.1f}s: {str(e)[:100]}"
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
