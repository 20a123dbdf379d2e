"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from typing import Any, Callable, TypeVar, cast

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_stage(description: str) -> Callable[[F], F]:
    """Decorator for timing and logging a pipeline stage.

    Stages report failure through a falsy return value, so the outcome is read
    from the result as well as from exceptions.

    Args:
        description: Human readable stage name used in the log lines

    Returns:
        Decorator function
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Starting: {description}")
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"Failed: {description} after {duration:.2f}s - {str(e)}")
                raise
            duration = time.time() - start_time
            if result is None or result is False:
                logger.error(f"Failed: {description} after {duration:.2f}s")
            else:
                logger.info(f"Completed: {description} in {duration:.2f}s")
            return result
        return cast(F, wrapper)
    return decorator
