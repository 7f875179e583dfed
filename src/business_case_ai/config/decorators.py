"""Logging decorators for pipeline entry points.

``log_call`` records entry, exit and failure of a call at debug/error level;
``timed`` records wall-clock duration at info level. Both attach structured
fields through ``extra=`` so the JSON formatter can pick them up.
"""

import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")


def log_call(
    logger_name: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to log function calls with structured data.

    Args:
        logger_name: Optional logger name (defaults to function module)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        log = logging.getLogger(logger_name or func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            log.debug(
                "Calling %s",
                func.__qualname__,
                extra={"function": func.__qualname__, "kwargs_keys": sorted(kwargs)},
            )
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(
                    "Error in %s: %s",
                    func.__qualname__,
                    e,
                    extra={"function": func.__qualname__, "error_type": type(e).__name__},
                )
                raise
            log.debug("Completed %s", func.__qualname__, extra={"function": func.__qualname__})
            return result

        return wrapper

    return decorator


def timed(
    metric_name: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to measure and log function execution time.

    Args:
        metric_name: Optional metric name (defaults to function name)
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = metric_name or func.__name__
        log = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            success = False
            try:
                result = func(*args, **kwargs)
                success = True
                return result
            finally:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                log.info(
                    "Timer: %s %.2fms",
                    name,
                    duration_ms,
                    extra={"metric": name, "duration_ms": duration_ms, "success": success},
                )

        return wrapper

    return decorator
