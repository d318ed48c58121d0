"""Transcription record persistence implementations."""
from __future__ import annotations

import copy
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from ..models.transcription import TranscriptionRecord
from .errors import RecordNotFoundError

logger = logging.getLogger(__name__)


def _check_page(skip: int, take: int) -> None:
    if skip < 0 or take < 0:
        raise ValueError("skip and take must be non-negative")


class RecordStore(ABC):
    """Abstract base class for transcription record persistence.

    Stores hand out and keep independent copies, so a caller mutating a
    record it fetched never changes what other readers see until the record
    is written back.
    """

    @abstractmethod
    def get(self, record_id: str) -> TranscriptionRecord:
        """Load a record.

        Raises:
            RecordNotFoundError: If the id is unknown
        """

    @abstractmethod
    def list(self, skip: int = 0, take: int = 20) -> List[TranscriptionRecord]:
        """List records, newest ``created_at`` first.

        An out-of-range ``skip`` yields an empty list.

        Raises:
            ValueError: If skip or take is negative
        """

    @abstractmethod
    def add(self, record: TranscriptionRecord) -> TranscriptionRecord:
        """Insert a new record and return the stored version."""

    @abstractmethod
    def update(self, record: TranscriptionRecord) -> TranscriptionRecord:
        """Replace an existing record.

        Raises:
            RecordNotFoundError: If the id is unknown
        """

    @abstractmethod
    def delete(self, record_id: str) -> None:
        """Delete a record.

        Raises:
            RecordNotFoundError: If the id is unknown
        """

    def exists(self, record_id: str) -> bool:
        try:
            self.get(record_id)
        except RecordNotFoundError:
            return False
        return True


class InMemoryRecordStore(RecordStore):
    """In-memory record store for development/testing."""

    def __init__(self):
        self._records: Dict[str, TranscriptionRecord] = {}
        self._lock = Lock()

    def get(self, record_id: str) -> TranscriptionRecord:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            return copy.deepcopy(record)

    def list(self, skip: int = 0, take: int = 20) -> List[TranscriptionRecord]:
        _check_page(skip, take)
        with self._lock:
            ordered = sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)
            return [copy.deepcopy(r) for r in ordered[skip : skip + take]]

    def add(self, record: TranscriptionRecord) -> TranscriptionRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Transcription with ID {record.id} already exists")
            self._records[record.id] = copy.deepcopy(record)
            logger.debug(f"Added record {record.id} in memory")
            return copy.deepcopy(record)

    def update(self, record: TranscriptionRecord) -> TranscriptionRecord:
        with self._lock:
            if record.id not in self._records:
                raise RecordNotFoundError(record.id)
            self._records[record.id] = copy.deepcopy(record)
            logger.debug(f"Saved record {record.id} ({record.status.value}) in memory")
            return copy.deepcopy(record)

    def delete(self, record_id: str) -> None:
        with self._lock:
            if record_id not in self._records:
                raise RecordNotFoundError(record_id)
            del self._records[record_id]
            logger.debug(f"Deleted record {record_id}")


class SQLiteRecordStore(RecordStore):
    """Persistent record store using SQLite.

    The status and timestamps are kept in their own columns for ordering and
    inspection; the full record is stored as JSON.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize persistent record store.

        Args:
            db_path: Path to SQLite database
        """
        self.db_path = Path(db_path) if db_path else Path.home() / ".meetsync" / "records.db"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS transcriptions (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    record_data TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_transcriptions_created
                ON transcriptions(created_at)
            """
            )
            conn.commit()
        logger.info(f"Initialized record database at {self.db_path}")

    @staticmethod
    def _serialize(record: TranscriptionRecord) -> str:
        return json.dumps(record.to_dict())

    @staticmethod
    def _deserialize(data: str) -> TranscriptionRecord:
        return TranscriptionRecord.from_dict(json.loads(data))

    def get(self, record_id: str) -> TranscriptionRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT record_data FROM transcriptions WHERE id = ?", (record_id,)
            ).fetchone()
        if row is None:
            raise RecordNotFoundError(record_id)
        return self._deserialize(row[0])

    def list(self, skip: int = 0, take: int = 20) -> List[TranscriptionRecord]:
        _check_page(skip, take)
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT record_data FROM transcriptions
                ORDER BY created_at DESC
                LIMIT ? OFFSET ?
            """,
                (take, skip),
            ).fetchall()
        return [self._deserialize(row[0]) for row in rows]

    def add(self, record: TranscriptionRecord) -> TranscriptionRecord:
        with self._lock, self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO transcriptions (id, status, record_data, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        record.id,
                        record.status.value,
                        self._serialize(record),
                        record.created_at.isoformat(),
                        record.updated_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Transcription with ID {record.id} already exists") from e
            conn.commit()
        logger.debug(f"Persisted new record {record.id}")
        return copy.deepcopy(record)

    def update(self, record: TranscriptionRecord) -> TranscriptionRecord:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE transcriptions
                SET status = ?, record_data = ?, updated_at = ?
                WHERE id = ?
            """,
                (
                    record.status.value,
                    self._serialize(record),
                    record.updated_at.isoformat(),
                    record.id,
                ),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise RecordNotFoundError(record.id)
        logger.debug(f"Persisted record {record.id} ({record.status.value})")
        return copy.deepcopy(record)

    def delete(self, record_id: str) -> None:
        with self._lock, self._connect() as conn:
            cursor = conn.execute("DELETE FROM transcriptions WHERE id = ?", (record_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise RecordNotFoundError(record_id)
        logger.debug(f"Deleted record {record_id}")
