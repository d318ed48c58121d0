"""Data models for meeting transcription records."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .task import TaskItem


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for all record timestamps."""
    return datetime.now(timezone.utc)


class TranscriptionStatus(Enum):
    """Pipeline status of a transcription record, in stage order."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    TRANSCRIBING = "transcribing"
    SUMMARIZING = "summarizing"
    EXTRACTING_TASKS = "extracting_tasks"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TranscriptionStatus.COMPLETED, TranscriptionStatus.FAILED)


_STATUS_ORDER = {status: index for index, status in enumerate(TranscriptionStatus)}


def can_transition(current: TranscriptionStatus, target: TranscriptionStatus) -> bool:
    """Check a status change against the forward-only state machine.

    FAILED is reachable from every non-terminal state; every other move must
    go strictly forward. Nothing leaves a terminal state.
    """
    if current.is_terminal:
        return False
    if target is TranscriptionStatus.FAILED:
        return True
    return _STATUS_ORDER[target] > _STATUS_ORDER[current]


class FailureKind(Enum):
    """Why a pipeline ended in FAILED."""

    BACKEND_ERROR = "backend_error"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass(frozen=True)
class StageFailure:
    """Cause of a failed pipeline, kept on the record."""

    stage: TranscriptionStatus
    kind: FailureKind
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "stage": self.stage.value,
            "kind": self.kind.value,
            "error_type": self.error_type,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageFailure":
        """Create from dictionary."""
        return cls(
            stage=TranscriptionStatus(data["stage"]),
            kind=FailureKind(data["kind"]),
            error_type=data.get("error_type", ""),
            message=data.get("message", ""),
        )


@dataclass
class TranscriptionRecord:
    """One audio-to-tasks job and everything the pipeline produced for it."""

    audio_file_name: str
    title: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TranscriptionStatus = TranscriptionStatus.PENDING
    transcript: str = ""
    summary: str = ""
    extracted_tasks: List[TaskItem] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    failure: Optional[StageFailure] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self) -> None:
        """Stamp ``updated_at`` without ever moving it backwards."""
        now = utcnow()
        if now > self.updated_at:
            self.updated_at = now

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "audio_file_name": self.audio_file_name,
            "status": self.status.value,
            "transcript": self.transcript,
            "summary": self.summary,
            "extracted_tasks": [task.to_dict() for task in self.extracted_tasks],
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "failure": self.failure.to_dict() if self.failure else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionRecord":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            audio_file_name=data["audio_file_name"],
            status=TranscriptionStatus(data["status"]),
            transcript=data.get("transcript", ""),
            summary=data.get("summary", ""),
            extracted_tasks=[
                TaskItem.from_dict(task_data) for task_data in data.get("extracted_tasks", [])
            ],
            start_time=(
                datetime.fromisoformat(data["start_time"]) if data.get("start_time") else None
            ),
            end_time=datetime.fromisoformat(data["end_time"]) if data.get("end_time") else None,
            failure=StageFailure.from_dict(data["failure"]) if data.get("failure") else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
