"""Utility modules for the meeting-to-issues system."""

from .logging_factory import LoggingFactory, get_logger
from .retry import (
    RetryConfig,
    RetryExhaustedError,
    calculate_delay,
    is_retriable_exception,
    retry_async,
)

__all__ = [
    "LoggingFactory",
    "RetryConfig",
    "RetryExhaustedError",
    "calculate_delay",
    "get_logger",
    "is_retriable_exception",
    "retry_async",
]
