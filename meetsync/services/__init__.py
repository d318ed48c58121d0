"""Application services built on the orchestration layer."""

from .tasks import TaskService

__all__ = [
    "TaskService",
]
