"""Editing and publishing the tasks of a transcription record."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..models.task import TaskItem
from ..models.tracker import RepositoryReference
from ..models.transcription import TranscriptionRecord, TranscriptionStatus
from ..orchestration.errors import TaskNotFoundError
from ..orchestration.normalizer import normalize_task
from ..orchestration.record_store import RecordStore
from ..orchestration.sync import SyncOrchestrator, SyncReport

logger = logging.getLogger(__name__)


class TaskService:
    """Task-level operations on persisted transcription records."""

    def __init__(self, store: RecordStore, sync: SyncOrchestrator):
        self._store = store
        self._sync = sync

    def _save(self, record: TranscriptionRecord) -> None:
        record.touch()
        self._store.update(record)

    def update_task(self, record_id: str, task: TaskItem) -> TaskItem:
        """Replace the task with the same id inside the record, normalized.

        Raises:
            RecordNotFoundError: If the record id is unknown
            TaskNotFoundError: If the record holds no task with ``task.id``
        """
        record = self._store.get(record_id)
        for index, existing in enumerate(record.extracted_tasks):
            if existing.id == task.id:
                break
        else:
            raise TaskNotFoundError(record_id, task.id)

        normalized = normalize_task(task)
        record.extracted_tasks[index] = normalized
        self._save(record)
        logger.info(f"Updated task {task.id} in transcription {record_id}")
        return normalized

    def _select(
        self, tasks: List[TaskItem], record_id: str, task_ids: Optional[Iterable[str]]
    ) -> List[TaskItem]:
        if task_ids is None:
            return [task for task in tasks if not task.is_published]

        by_id = {task.id: task for task in tasks}
        selected = []
        for task_id in task_ids:
            if task_id not in by_id:
                raise TaskNotFoundError(record_id, task_id)
            task = by_id[task_id]
            if task.is_published:
                logger.info(f"Task {task_id} already published as #{task.issue_number}, skipping")
                continue
            selected.append(task)
        return selected

    async def publish(
        self,
        record_id: str,
        repository: RepositoryReference,
        task_ids: Optional[Iterable[str]] = None,
    ) -> SyncReport:
        """Publish the unpublished tasks of a completed record.

        Published task values (carrying their issue reference) are written
        back into the record before it is persisted.

        Raises:
            RecordNotFoundError: If the record id is unknown
            TaskNotFoundError: If a requested task id is not in the record
            ValueError: If the record has not completed
        """
        record = self._store.get(record_id)
        if record.status is not TranscriptionStatus.COMPLETED:
            raise ValueError(
                f"Transcription {record_id} is {record.status.value}; only completed ones can be published"
            )

        selected = self._select(record.extracted_tasks, record_id, task_ids)
        report = await self._sync.sync_batch_report(repository, selected)

        published = {task.id: task for task in report.tasks if task.is_published}
        if published:
            # Re-read so edits made while publishing are not lost
            record = self._store.get(record_id)
            record.extracted_tasks = [
                published.get(task.id, task) for task in record.extracted_tasks
            ]
            self._save(record)

        logger.info(
            f"Published {report.succeeded}/{len(selected)} task(s) of transcription {record_id}"
        )
        return report
