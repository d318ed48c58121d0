"""Error taxonomy for pipeline and synchronization orchestration."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..models.transcription import FailureKind, TranscriptionStatus


class MeetSyncError(Exception):
    """Base class for all errors raised by meetsync."""


class RecordNotFoundError(MeetSyncError, KeyError):
    """Raised when a transcription record id is unknown to the store."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Transcription with ID {record_id} not found")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class TaskNotFoundError(MeetSyncError, KeyError):
    """Raised when a task id is not part of the given record."""

    def __init__(self, record_id: str, task_id: str) -> None:
        self.record_id = record_id
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found in transcription {record_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class StageError(MeetSyncError):
    """A pipeline stage could not complete.

    Raised inside stage execution only; the pipeline converts it into a
    FAILED record and never lets it reach the caller of ``start``.
    """

    kind = FailureKind.BACKEND_ERROR

    def __init__(self, stage: TranscriptionStatus, message: str) -> None:
        self.stage = stage
        super().__init__(message)


class PipelineCancelledError(StageError):
    """The pipeline was cancelled while running the given stage."""

    kind = FailureKind.CANCELLED


class PipelineDeadlineExceededError(StageError):
    """The pipeline deadline expired while running the given stage."""

    kind = FailureKind.DEADLINE_EXCEEDED


@dataclass(frozen=True)
class ItemPublishFailure:
    """A single task that failed to publish during a batch sync."""

    task_id: str
    task_title: str
    error: Exception

    @property
    def message(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass(frozen=True)
class AccessCheck:
    """Outcome of a repository access check.

    Truthy when access was confirmed; otherwise ``error`` holds the cause.
    """

    repository: str
    granted: bool
    error: Optional[Exception] = None

    def __bool__(self) -> bool:
        return self.granted
