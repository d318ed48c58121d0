"""Capability interfaces for the external backends the pipeline consumes.

Each backend category (speech-to-text, language model, issue tracker) has an
abstract base class. Concrete implementations are registered with the
BackendFactory and selected by configuration at process start.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from ..utils.retry import RetryConfig, RetryExhaustedError, retry_async

if TYPE_CHECKING:
    from ..models.task import TaskItem
    from ..models.tracker import IssueResult, RepositoryReference

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Requests fail fast
    HALF_OPEN = "half_open"  # Testing if service has recovered


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior.

    Attributes:
        failure_threshold: Number of failures before opening circuit
        recovery_timeout: Time in seconds before attempting recovery
        expected_exception_types: Exception types that count as failures
    """

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    expected_exception_types: tuple = (
        ConnectionError,
        TimeoutError,
        OSError,
    )


def _is_server_error(exception: BaseException) -> bool:
    """True for HTTP errors whose response carries a 5xx status."""
    status_code = getattr(getattr(exception, "response", None), "status_code", None)
    return isinstance(status_code, int) and status_code >= 500


class CircuitBreakerError(Exception):
    """Raised when circuit breaker is open."""

    def __init__(self, message: str, failure_count: int, last_failure_time: float) -> None:
        self.failure_count = failure_count
        self.last_failure_time = last_failure_time
        super().__init__(message)


class CircuitBreakerMixin:
    """Circuit breaker state shared by every backend.

    After ``failure_threshold`` consecutive expected failures the circuit
    opens and calls fail fast with CircuitBreakerError until
    ``recovery_timeout`` has passed.
    """

    def __init__(self, circuit_config: Optional[CircuitBreakerConfig] = None) -> None:
        self._circuit_config = circuit_config or CircuitBreakerConfig()
        self._circuit_state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0
        self._lock = Lock()

    def _record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._circuit_state = CircuitState.CLOSED

    def _record_failure(self, exception: BaseException) -> None:
        # Judge exhausted retries by their last error; expected types and 5xx count
        if isinstance(exception, RetryExhaustedError):
            exception = exception.last_exception
        if not (
            isinstance(exception, self._circuit_config.expected_exception_types)
            or _is_server_error(exception)
        ):
            return

        with self._lock:
            self._failure_count += 1
            self._last_failure_time = time.time()

            if self._failure_count >= self._circuit_config.failure_threshold:
                self._circuit_state = CircuitState.OPEN
                logger.warning(
                    f"Circuit breaker opened after {self._failure_count} failures. "
                    f"Will attempt recovery in {self._circuit_config.recovery_timeout}s"
                )

    def _check_circuit_state(self) -> None:
        """Raise CircuitBreakerError if the circuit is open and not yet recoverable."""
        with self._lock:
            if self._circuit_state == CircuitState.OPEN:
                if time.time() - self._last_failure_time >= self._circuit_config.recovery_timeout:
                    self._circuit_state = CircuitState.HALF_OPEN
                    logger.info("Circuit breaker entering half-open state")
                else:
                    raise CircuitBreakerError(
                        f"Circuit breaker is open. {self._failure_count} consecutive failures. "
                        f"Will retry after {self._circuit_config.recovery_timeout}s",
                        self._failure_count,
                        self._last_failure_time,
                    )

    async def circuit_breaker_call_async(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Execute a coroutine function with circuit breaker protection."""
        self._check_circuit_state()

        try:
            result = await func(*args, **kwargs)
            self._record_success()
            return result
        except Exception as e:
            self._record_failure(e)
            raise

    def get_circuit_state(self) -> Dict[str, Union[str, int, float]]:
        with self._lock:
            return {
                "state": self._circuit_state.value,
                "failure_count": self._failure_count,
                "failure_threshold": self._circuit_config.failure_threshold,
                "recovery_timeout": self._circuit_config.recovery_timeout,
            }


class BaseBackend(ABC, CircuitBreakerMixin):
    """Common plumbing for backends: retry with backoff behind a circuit breaker."""

    DEFAULT_RETRY_CONFIG = RetryConfig(
        max_attempts=3, base_delay=1.0, exponential_base=2, max_delay=30.0, jitter=True
    )

    DEFAULT_CIRCUIT_CONFIG = CircuitBreakerConfig(failure_threshold=5, recovery_timeout=60.0)

    def __init__(
        self,
        circuit_config: Optional[CircuitBreakerConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        CircuitBreakerMixin.__init__(self, circuit_config or self.DEFAULT_CIRCUIT_CONFIG)

    async def _call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run a backend request with retry and circuit breaker protection."""

        @retry_async(self._retry_config)
        async def _with_retry() -> T:
            return await func(*args, **kwargs)

        return await self.circuit_breaker_call_async(_with_retry)

    def get_retry_config(self) -> RetryConfig:
        return self._retry_config

    @abstractmethod
    def get_provider_name(self) -> str:
        """Human-readable name of the backend (e.g. 'Deepgram Nova 3')."""


class BaseTranscriptionBackend(BaseBackend):
    """Speech-to-text capability."""

    @abstractmethod
    async def transcribe(self, audio: bytes, file_name: str) -> str:
        """Transcribe raw audio bytes.

        Args:
            audio: Audio payload
            file_name: Original file name, used to infer the audio format

        Returns:
            Transcript text
        """

    @abstractmethod
    async def transcribe_from_url(self, audio_url: str) -> str:
        """Transcribe audio the backend fetches from a URL."""


class BaseLanguageBackend(BaseBackend):
    """Generative text capability used for summaries, tasks and issue text."""

    @abstractmethod
    async def summarize(self, transcript: str) -> str:
        """Summarize a meeting transcript."""

    @abstractmethod
    async def extract_tasks(self, transcript: str, summary: str) -> List["TaskItem"]:
        """Extract candidate task items from a transcript and its summary.

        Returned items are not normalized yet.
        """

    @abstractmethod
    async def generate_issue_title(self, description: str) -> str:
        """Produce a short issue title for a task description."""

    @abstractmethod
    async def generate_issue_body(self, description: str, context: str) -> str:
        """Produce an issue body for a task description and meeting context."""


class BaseTrackerBackend(BaseBackend):
    """Remote issue tracker capability."""

    @abstractmethod
    async def create_issue(self, repository: "RepositoryReference", task: "TaskItem") -> "IssueResult":
        """Create an issue from the task's title, description, labels, assignee and milestone."""

    @abstractmethod
    async def list_issues(
        self, repository: "RepositoryReference", limit: Optional[int] = None
    ) -> List["IssueResult"]:
        """List the repository's issues, at most ``limit`` of them when given."""

    @abstractmethod
    async def update_issue(
        self, repository: "RepositoryReference", issue_number: int, task: "TaskItem"
    ) -> "IssueResult":
        """Update an existing issue from the task."""

    @abstractmethod
    async def list_milestones(self, repository: "RepositoryReference") -> List[str]:
        """List milestone titles."""

    @abstractmethod
    async def create_milestone(
        self,
        repository: "RepositoryReference",
        title: str,
        description: str,
        due_date: Optional[datetime] = None,
    ) -> str:
        """Create a milestone and return its title."""
