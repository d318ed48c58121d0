"""Tests for the transcription record stores."""

from datetime import datetime, timedelta, timezone

import pytest

from meetsync.models.task import TaskItem, TaskPriority
from meetsync.models.transcription import (
    FailureKind,
    StageFailure,
    TranscriptionRecord,
    TranscriptionStatus,
)
from meetsync.orchestration.errors import RecordNotFoundError
from meetsync.orchestration.record_store import InMemoryRecordStore, SQLiteRecordStore


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRecordStore()
    return SQLiteRecordStore(tmp_path / "records.db")


def _record(name: str, minutes_ago: int = 0) -> TranscriptionRecord:
    created = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return TranscriptionRecord(audio_file_name=name, created_at=created, updated_at=created)


class TestRecordStoreContract:
    """Behaviour shared by every store implementation."""

    def test_add_and_get(self, any_store):
        record = any_store.add(_record("standup.wav"))

        loaded = any_store.get(record.id)

        assert loaded == record
        assert any_store.exists(record.id)

    def test_get_unknown_raises(self, any_store):
        with pytest.raises(RecordNotFoundError):
            any_store.get("missing")
        assert not any_store.exists("missing")

    def test_add_duplicate_rejected(self, any_store):
        record = any_store.add(_record("standup.wav"))

        with pytest.raises(ValueError, match="already exists"):
            any_store.add(record)

    def test_returned_records_are_copies(self, any_store):
        record = any_store.add(_record("standup.wav"))

        loaded = any_store.get(record.id)
        loaded.title = "changed locally"
        loaded.extracted_tasks.append(TaskItem(id="t", title="local only"))

        fresh = any_store.get(record.id)
        assert fresh.title == ""
        assert fresh.extracted_tasks == []

    def test_update_replaces(self, any_store):
        record = any_store.add(_record("standup.wav"))
        record.status = TranscriptionStatus.TRANSCRIBING
        record.transcript = "hello"

        any_store.update(record)

        loaded = any_store.get(record.id)
        assert loaded.status is TranscriptionStatus.TRANSCRIBING
        assert loaded.transcript == "hello"

    def test_update_unknown_raises(self, any_store):
        with pytest.raises(RecordNotFoundError):
            any_store.update(_record("ghost.wav"))

    def test_delete(self, any_store):
        record = any_store.add(_record("standup.wav"))

        any_store.delete(record.id)

        assert not any_store.exists(record.id)
        with pytest.raises(RecordNotFoundError):
            any_store.delete(record.id)

    def test_list_orders_newest_first(self, any_store):
        old = any_store.add(_record("old.wav", 30))
        new = any_store.add(_record("new.wav", 1))
        mid = any_store.add(_record("mid.wav", 10))

        assert [r.id for r in any_store.list()] == [new.id, mid.id, old.id]

    def test_list_paging(self, any_store):
        records = [any_store.add(_record(f"{i}.wav", i)) for i in range(5)]

        assert [r.id for r in any_store.list(skip=1, take=2)] == [records[1].id, records[2].id]
        assert any_store.list(skip=10, take=5) == []
        assert any_store.list(skip=0, take=0) == []

    def test_list_rejects_negative_values(self, any_store):
        with pytest.raises(ValueError):
            any_store.list(skip=-1)
        with pytest.raises(ValueError):
            any_store.list(take=-1)


class TestSQLiteRecordStore:
    """SQLite specific behaviour."""

    def test_full_record_round_trip(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "records.db")
        record = _record("standup.wav")
        record.title = "Standup"
        record.status = TranscriptionStatus.FAILED
        record.transcript = "Alice will file a ticket."
        record.start_time = record.created_at
        record.end_time = record.created_at + timedelta(seconds=3)
        record.extracted_tasks = [
            TaskItem(
                id="task-1",
                title="File ticket",
                priority=TaskPriority.HIGH,
                assignee="Alice",
                labels=["ops"],
                issue_number=7,
                issue_url="https://example.test/issues/7",
                created_at=record.created_at,
            )
        ]
        record.failure = StageFailure(
            stage=TranscriptionStatus.SUMMARIZING,
            kind=FailureKind.BACKEND_ERROR,
            error_type="RuntimeError",
            message="model overloaded",
        )
        store.add(record)

        assert store.get(record.id) == record

    def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "nested" / "records.db"
        record = SQLiteRecordStore(db_path).add(_record("standup.wav"))

        reopened = SQLiteRecordStore(db_path)

        assert reopened.get(record.id).audio_file_name == "standup.wav"
        assert db_path.exists()
