"""Performance Logging.

Decorator for timing proxy operations and logging the slow ones.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator that logs execution time of a coroutine function.

    Logs every call at DEBUG level, calls above ``threshold_ms`` at
    WARNING, and failures at ERROR before re-raising.

    Example:
        @log_performance(threshold_ms=500)
        async def reload(self):
            ...
    """
    if threshold_ms is None:
        threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms

    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"log_performance expects a coroutine function, got {func!r}")

        _logger = logging.getLogger(logger_name or func.__module__)
        func_name = func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start) * 1000
                _logger.error(
                    "%s failed after %.1fms: %s",
                    func_name,
                    duration_ms,
                    type(exc).__name__,
                    extra={"duration_ms": round(duration_ms, 2)},
                )
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                extra = {"duration_ms": round(duration_ms, 2)}
                if duration_ms >= threshold_ms:
                    _logger.warning(
                        "Slow operation: %s took %.1fms", func_name, duration_ms, extra=extra
                    )
                else:
                    _logger.debug(
                        "%s completed in %.1fms", func_name, duration_ms, extra=extra
                    )

        return wrapper

    return decorator
