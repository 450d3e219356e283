"""
Shared helpers for codescope.
"""

import functools
import logging
import time
from pathlib import Path
from typing import Callable, Union

logger = logging.getLogger(__name__)


def retry_on_failure(
    max_attempts: int = 3,
    delay: float = 0.5,
    backoff: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = (Exception,),
) -> Callable:
    """
    Retry a function when it raises one of the given exceptions.

    Args:
        max_attempts: Total number of attempts including the first call
        delay: Seconds to wait before the first retry
        backoff: Multiplier applied to the delay after each retry
        exceptions: Exception types that trigger a retry

    Returns:
        Decorator; the last exception is re-raised once attempts run out
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(f"{func.__qualname__} failed after {max_attempts} attempts: {e}")
                        raise
                    logger.warning(
                        f"{func.__qualname__} failed (attempt {attempt}/{max_attempts}): {e}. "
                        f"Retrying in {wait:.1f}s"
                    )
                    time.sleep(wait)
                    wait *= backoff
        return wrapper
    return decorator


def read_source(path: Union[str, Path]) -> str:
    """
    Read a source file as text.

    Line endings are normalized to "\\n" and undecodable bytes are replaced,
    so fingerprints and extracted symbols always see the same text.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()
