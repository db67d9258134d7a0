"""Timing utilities for query performance monitoring."""
import time
from functools import wraps
from typing import Callable
from osm_areas.utils.logging import log_structured


def time_function(func: Callable) -> Callable:
    """Decorator to time function execution."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start

        log_structured(
            "debug",
            f"Function {func.__name__} executed",
            function=func.__name__,
            elapsed_seconds=elapsed
        )

        return result
    return wrapper


class Timer:
    """Context manager for timing code blocks."""

    def __init__(self, operation: str, **fields):
        """
        Initialize timer.

        Args:
            operation: Name of the operation being timed
            **fields: Extra structured fields logged with the timing
        """
        self.operation = operation
        self.fields = fields
        self.start = None
        self.elapsed = None

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed = time.perf_counter() - self.start
        log_structured(
            "debug",
            f"Operation {self.operation} completed",
            operation=self.operation,
            elapsed_seconds=self.elapsed,
            **self.fields
        )
