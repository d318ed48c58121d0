"""Retry utilities with exponential backoff for backend calls."""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple, Type, TypeVar

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)

AsyncF = TypeVar("AsyncF", bound=Callable[..., Any])

RETRIABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the initial one)
        base_delay: Base delay in seconds before first retry
        max_delay: Maximum delay in seconds between retries
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to add random jitter to delays
        retriable_exceptions: Exception types that should trigger retries
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retriable_exceptions: Tuple[Type[BaseException], ...] = field(
        default_factory=lambda: (ConnectionError, TimeoutError, OSError)
    )

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")
        if self.max_attempts > 10:
            raise ValueError("max_attempts should not exceed 10 for practical purposes")

    @classmethod
    def from_config(cls, config: "Config", **overrides: Any) -> "RetryConfig":
        """Build a retry policy from application settings."""
        values = {
            "max_attempts": config.max_retries,
            "base_delay": config.retry_delay,
            "max_delay": config.max_retry_delay,
            "exponential_base": config.retry_exponential_base,
            "jitter": config.retry_jitter,
        }
        values.update(overrides)
        return cls(**values)


class RetryExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        attempts: Number of attempts made
        last_exception: The final exception that caused the retry to fail
        total_delay: Total time spent in delays
    """

    def __init__(self, attempts: int, last_exception: BaseException, total_delay: float) -> None:
        self.attempts = attempts
        self.last_exception = last_exception
        self.total_delay = total_delay
        super().__init__(
            f"Retry exhausted after {attempts} attempts over {total_delay:.2f}s. "
            f"Last error: {last_exception}"
        )


def calculate_delay(
    attempt: int, base_delay: float, max_delay: float, exponential_base: float, jitter: bool = True
) -> float:
    """Delay before the given attempt (0-based), always between 0 and max_delay."""
    if attempt == 0:
        return 0.0

    backoff = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)
    if jitter:
        # ±25%
        spread = backoff * 0.25
        backoff += random.uniform(-spread, spread)
    return max(0.0, min(backoff, max_delay))


def is_retriable_exception(
    exception: BaseException, retriable_exceptions: Tuple[Type[BaseException], ...]
) -> bool:
    """Check if an exception should trigger a retry.

    HTTP errors carrying a response are judged by status code: 408, 429 and
    5xx are retried, other 4xx are not.
    """
    response = getattr(exception, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        if status_code in RETRIABLE_STATUS_CODES:
            return True
        if 400 <= status_code < 500:
            return False

    return isinstance(exception, retriable_exceptions)


def retry_async(config: Optional[RetryConfig] = None) -> Callable[[AsyncF], AsyncF]:
    """Decorator for coroutine functions with retry logic.

    Non-retriable errors are re-raised immediately; once attempts run out a
    RetryExhaustedError is raised with the last error chained.

    Example:
        @retry_async(RetryConfig(max_attempts=3, base_delay=1.0))
        async def call_backend():
            ...
    """
    retry_config = config or RetryConfig()

    def decorator(func: AsyncF) -> AsyncF:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception: Optional[BaseException] = None
            total_delay = 0.0

            for attempt in range(retry_config.max_attempts):
                if attempt > 0:
                    logger.info(
                        f"Retry attempt {attempt + 1}/{retry_config.max_attempts} for {func.__name__}"
                    )
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_exception = e
                    if not is_retriable_exception(e, retry_config.retriable_exceptions):
                        logger.error(f"Non-retriable exception in {func.__name__}: {e}")
                        raise

                    if attempt + 1 >= retry_config.max_attempts:
                        logger.error(f"All retry attempts exhausted for {func.__name__}: {e}")
                        break

                    delay = calculate_delay(
                        attempt + 1,
                        retry_config.base_delay,
                        retry_config.max_delay,
                        retry_config.exponential_base,
                        retry_config.jitter,
                    )
                    logger.warning(
                        f"Attempt {attempt + 1}/{retry_config.max_attempts} failed for "
                        f"{func.__name__}: {e}. Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)
                    total_delay += delay

            raise RetryExhaustedError(
                retry_config.max_attempts,
                last_exception or Exception("Unknown error"),
                total_delay,
            ) from last_exception

        return wrapper  # type: ignore

    return decorator
