"""Orchestration layer: transcription pipeline, task normalization and tracker sync."""

from .context import PipelineContext
from .errors import (
    AccessCheck,
    ItemPublishFailure,
    MeetSyncError,
    PipelineCancelledError,
    PipelineDeadlineExceededError,
    RecordNotFoundError,
    StageError,
    TaskNotFoundError,
)
from .normalizer import normalize_task, normalize_tasks
from .pipeline import TranscriptionPipeline
from .record_store import InMemoryRecordStore, RecordStore, SQLiteRecordStore
from .sync import SyncOrchestrator, SyncReport

__all__ = [
    "AccessCheck",
    "InMemoryRecordStore",
    "ItemPublishFailure",
    "MeetSyncError",
    "PipelineCancelledError",
    "PipelineContext",
    "PipelineDeadlineExceededError",
    "RecordNotFoundError",
    "RecordStore",
    "SQLiteRecordStore",
    "StageError",
    "SyncOrchestrator",
    "SyncReport",
    "TaskNotFoundError",
    "TranscriptionPipeline",
    "normalize_task",
    "normalize_tasks",
]
