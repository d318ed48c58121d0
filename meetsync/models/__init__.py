"""Data models for the meeting-to-issues system.

This module provides data structures for transcription records, the task
items extracted from them, and the tracker-side view of published issues.
"""

from .task import TaskItem, TaskPriority, TaskStatus
from .tracker import IssueResult, RepositoryReference
from .transcription import (
    FailureKind,
    StageFailure,
    TranscriptionRecord,
    TranscriptionStatus,
    can_transition,
    utcnow,
)

__all__ = [
    "FailureKind",
    "IssueResult",
    "RepositoryReference",
    "StageFailure",
    "TaskItem",
    "TaskPriority",
    "TaskStatus",
    "TranscriptionRecord",
    "TranscriptionStatus",
    "can_transition",
    "utcnow",
]
