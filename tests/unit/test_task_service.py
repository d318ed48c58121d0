"""Tests for meetsync.services.tasks."""

import pytest

from meetsync.models.task import TaskItem, TaskPriority
from meetsync.models.transcription import TranscriptionRecord, TranscriptionStatus
from meetsync.orchestration.errors import RecordNotFoundError, TaskNotFoundError
from meetsync.orchestration.sync import SyncOrchestrator
from meetsync.services.tasks import TaskService
from tests.conftest import FakeTracker


@pytest.fixture
def completed_record(store, sample_tasks):
    record = TranscriptionRecord(
        audio_file_name="standup.wav",
        status=TranscriptionStatus.COMPLETED,
        extracted_tasks=sample_tasks,
    )
    return store.add(record)


@pytest.fixture
def service(store, orchestrator):
    return TaskService(store, orchestrator)


class TestUpdateTask:
    """Tests for TaskService.update_task."""

    def test_replaces_task_normalized(self, service, store, completed_record):
        edited = TaskItem(id="task-2", title="z" * 130, priority="critical", labels=["", "auth"])

        result = service.update_task(completed_record.id, edited)

        assert len(result.title) == 100
        assert result.priority is TaskPriority.CRITICAL
        assert result.labels == ["auth"]

        stored = store.get(completed_record.id)
        assert stored.extracted_tasks[1] == result
        assert [t.id for t in stored.extracted_tasks] == ["task-1", "task-2", "task-3"]
        assert stored.updated_at >= completed_record.updated_at

    def test_unknown_task(self, service, completed_record):
        with pytest.raises(TaskNotFoundError, match="Task task-404 not found"):
            service.update_task(completed_record.id, TaskItem(id="task-404", title="x"))

    def test_unknown_record(self, service):
        with pytest.raises(RecordNotFoundError):
            service.update_task("missing", TaskItem(id="task-1", title="x"))


class TestPublish:
    """Tests for TaskService.publish."""

    @pytest.mark.asyncio
    async def test_publishes_all_and_writes_back(self, service, store, tracker, repository, completed_record):
        report = await service.publish(completed_record.id, repository)

        assert report.succeeded == 3
        assert [t.title for t in tracker.created] == ["Write docs", "Fix login", "Ship release"]

        stored = store.get(completed_record.id)
        assert [t.issue_number for t in stored.extracted_tasks] == [1, 2, 3]
        assert all(t.issue_url for t in stored.extracted_tasks)

    @pytest.mark.asyncio
    async def test_selected_ids_only(self, service, store, tracker, repository, completed_record):
        report = await service.publish(completed_record.id, repository, ["task-3"])

        assert report.succeeded == 1
        assert tracker.attempted == ["Ship release"]
        stored = store.get(completed_record.id)
        assert [t.issue_number for t in stored.extracted_tasks] == [None, None, 1]

    @pytest.mark.asyncio
    async def test_published_tasks_are_skipped(self, service, tracker, repository, completed_record):
        await service.publish(completed_record.id, repository, ["task-1"])

        report = await service.publish(completed_record.id, repository)

        assert tracker.attempted == ["Write docs", "Fix login", "Ship release"]
        assert report.succeeded == 2

    @pytest.mark.asyncio
    async def test_failed_tasks_stay_unpublished(self, store, language, repository, completed_record):
        tracker = FakeTracker(reject_titles={"Fix login"})
        service = TaskService(store, SyncOrchestrator(tracker, language))

        report = await service.publish(completed_record.id, repository)

        assert report.failed == 1
        stored = store.get(completed_record.id)
        assert [t.is_published for t in stored.extracted_tasks] == [True, False, True]

    @pytest.mark.asyncio
    async def test_unknown_task_id(self, service, tracker, repository, completed_record):
        with pytest.raises(TaskNotFoundError):
            await service.publish(completed_record.id, repository, ["task-1", "nope"])
        assert tracker.attempted == []

    @pytest.mark.asyncio
    async def test_requires_completed_record(self, service, store, repository):
        record = store.add(TranscriptionRecord(audio_file_name="a.wav", status=TranscriptionStatus.SUMMARIZING))

        with pytest.raises(ValueError, match="only completed ones can be published"):
            await service.publish(record.id, repository)
