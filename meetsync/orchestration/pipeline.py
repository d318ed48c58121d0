"""Transcription pipeline: audio in, transcript, summary and normalized tasks out.

Each ``start`` persists a record in IN_PROGRESS and hands the stages to a
background asyncio task:

    TRANSCRIBING -> SUMMARIZING -> EXTRACTING_TASKS -> COMPLETED

The record is persisted after every status change and every data update, so
readers always observe the last completed step. A stage error, a cancel
request or an expired deadline moves the record to FAILED with a
StageFailure describing the cause; nothing is raised to the caller of
``start``.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from urllib.parse import urlparse

from ..models.transcription import (
    FailureKind,
    StageFailure,
    TranscriptionRecord,
    TranscriptionStatus,
    can_transition,
    utcnow,
)
from ..providers.base import BaseLanguageBackend, BaseTranscriptionBackend
from .context import PipelineContext
from .errors import RecordNotFoundError, StageError
from .normalizer import normalize_tasks
from .record_store import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _read_audio(audio_stream: Any) -> bytes:
    """Return the audio payload of a bytes-like or readable binary object."""
    if isinstance(audio_stream, (bytes, bytearray, memoryview)):
        return bytes(audio_stream)

    read = getattr(audio_stream, "read", None)
    if not callable(read):
        raise ValueError("audio_stream must be bytes or a readable binary stream")

    readable = getattr(audio_stream, "readable", None)
    if callable(readable) and not readable():
        raise ValueError("audio_stream is not readable")

    data = read()
    if not isinstance(data, (bytes, bytearray)):
        raise ValueError("audio_stream must be opened in binary mode")
    return bytes(data)


class TranscriptionPipeline:
    """Owns transcription records and drives them through the pipeline stages."""

    def __init__(
        self,
        store: RecordStore,
        transcriber: BaseTranscriptionBackend,
        language: BaseLanguageBackend,
        default_deadline: Optional[float] = None,
        page_size: int = 20,
    ):
        """Initialize the pipeline.

        Args:
            store: Record persistence
            transcriber: Speech-to-text backend
            language: Summarization and task extraction backend
            default_deadline: Seconds allowed per run when ``start`` gets none
            page_size: Default ``take`` for ``list``
        """
        self._store = store
        self._transcriber = transcriber
        self._language = language
        self._default_deadline = default_deadline
        self._page_size = page_size
        self._tasks: Dict[str, asyncio.Task] = {}
        self._contexts: Dict[str, PipelineContext] = {}

    # ---------------------------------------------------------------- start

    async def start(
        self,
        audio_file_name: str,
        audio_stream: Any,
        title: str = "",
        deadline: Optional[float] = None,
    ) -> TranscriptionRecord:
        """Create a record for the audio and start processing it in the background.

        Args:
            audio_file_name: Name of the uploaded audio file
            audio_stream: bytes, bytearray or a readable binary file object
            title: Record title; defaults to the file name without extension
            deadline: Seconds allowed for the whole run

        Returns:
            The newly created record in IN_PROGRESS

        Raises:
            ValueError: If the stream is not readable
        """
        audio = _read_audio(audio_stream)

        async def transcribe() -> str:
            return await self._transcriber.transcribe(audio, audio_file_name)

        return await self._launch(audio_file_name, title, deadline, transcribe)

    async def start_from_url(
        self, audio_url: str, title: str = "", deadline: Optional[float] = None
    ) -> TranscriptionRecord:
        """Like ``start``, but the transcription backend fetches the audio itself."""
        parsed = urlparse(audio_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Not an http(s) URL: {audio_url}")
        audio_file_name = Path(parsed.path).name or parsed.netloc

        async def transcribe() -> str:
            return await self._transcriber.transcribe_from_url(audio_url)

        return await self._launch(audio_file_name, title, deadline, transcribe)

    async def _launch(
        self,
        audio_file_name: str,
        title: str,
        deadline: Optional[float],
        transcribe: Callable[[], Awaitable[str]],
    ) -> TranscriptionRecord:
        ctx = PipelineContext(deadline if deadline is not None else self._default_deadline)

        record = TranscriptionRecord(
            audio_file_name=audio_file_name,
            title=title or Path(audio_file_name).stem,
            status=TranscriptionStatus.IN_PROGRESS,
            start_time=utcnow(),
        )
        record = self._store.add(record)
        logger.info(f"Started transcription {record.id} for {audio_file_name}")

        self._contexts[record.id] = ctx
        task = asyncio.create_task(self._run(record.id, ctx, transcribe))
        self._tasks[record.id] = task
        task.add_done_callback(lambda _: self._forget(record.id))
        return record

    def _forget(self, record_id: str) -> None:
        self._tasks.pop(record_id, None)
        self._contexts.pop(record_id, None)

    # --------------------------------------------------------------- stages

    async def _run(
        self, record_id: str, ctx: PipelineContext, transcribe: Callable[[], Awaitable[str]]
    ) -> None:
        try:
            record = self._store.get(record_id)
        except RecordNotFoundError:
            logger.warning(f"Transcription {record_id} was deleted before it started")
            return
        stage = record.status
        try:
            stage = TranscriptionStatus.TRANSCRIBING
            ctx.check(stage)
            record = self._advance(record, stage)
            record.transcript = await self._call_stage(ctx, stage, transcribe())
            record = self._save(record)

            stage = TranscriptionStatus.SUMMARIZING
            ctx.check(stage)
            record = self._advance(record, stage)
            record.summary = await self._call_stage(
                ctx, stage, self._language.summarize(record.transcript)
            )
            record = self._save(record)

            stage = TranscriptionStatus.EXTRACTING_TASKS
            ctx.check(stage)
            record = self._advance(record, stage)
            tasks = await self._call_stage(
                ctx, stage, self._language.extract_tasks(record.transcript, record.summary)
            )
            record.extracted_tasks = normalize_tasks(tasks or [])
            record = self._save(record)

            record.end_time = utcnow()
            record = self._advance(record, TranscriptionStatus.COMPLETED)
            logger.info(
                f"Transcription {record_id} completed with {len(record.extracted_tasks)} task(s)"
            )
        except StageError as e:
            self._fail(record, e.stage, e.kind, e.__cause__ or e)
        except asyncio.CancelledError:
            self._fail(record, stage, FailureKind.CANCELLED, asyncio.CancelledError("task cancelled"))
            raise
        except Exception as e:
            self._fail(record, stage, FailureKind.BACKEND_ERROR, e)

    async def _call_stage(self, ctx: PipelineContext, stage: TranscriptionStatus, call: Awaitable[T]) -> T:
        try:
            return await ctx.run(stage, call)
        except StageError:
            raise
        except Exception as e:
            raise StageError(stage, f"{stage.value} failed: {e}") from e

    def _advance(self, record: TranscriptionRecord, status: TranscriptionStatus) -> TranscriptionRecord:
        if not can_transition(record.status, status):
            raise ValueError(f"Invalid transition {record.status.value} -> {status.value}")
        logger.info(f"Transcription {record.id}: {record.status.value} -> {status.value}")
        record.status = status
        return self._save(record)

    def _save(self, record: TranscriptionRecord) -> TranscriptionRecord:
        record.touch()
        return self._store.update(record)

    def _fail(
        self,
        record: TranscriptionRecord,
        stage: TranscriptionStatus,
        kind: FailureKind,
        error: BaseException,
    ) -> None:
        logger.error(f"Transcription {record.id} failed in {stage.value} ({kind.value}): {error}")
        if record.status.is_terminal:
            return
        record.status = TranscriptionStatus.FAILED
        record.end_time = utcnow()
        record.failure = StageFailure(
            stage=stage, kind=kind, error_type=type(error).__name__, message=str(error)
        )
        try:
            self._save(record)
        except RecordNotFoundError:
            logger.warning(f"Transcription {record.id} was deleted while running")

    # ---------------------------------------------------------------- reads

    def get(self, record_id: str) -> TranscriptionRecord:
        """Return the last persisted version of a record.

        Raises:
            RecordNotFoundError: If the id is unknown
        """
        return self._store.get(record_id)

    def list(self, skip: int = 0, take: Optional[int] = None) -> List[TranscriptionRecord]:
        """List records, newest first."""
        return self._store.list(skip=skip, take=self._page_size if take is None else take)

    def update(self, record: TranscriptionRecord) -> TranscriptionRecord:
        """Persist caller changes to a record.

        ``updated_at`` is stamped and never goes behind the stored value.

        Raises:
            RecordNotFoundError: If the id is unknown
        """
        stored = self._store.get(record.id)
        updated = dataclasses.replace(record, extracted_tasks=list(record.extracted_tasks))
        updated.touch()
        if updated.updated_at < stored.updated_at:
            updated.updated_at = stored.updated_at
        return self._store.update(updated)

    def delete(self, record_id: str) -> None:
        """Delete a record.

        Raises:
            RecordNotFoundError: If the id is unknown
        """
        self._store.delete(record_id)
        logger.info(f"Deleted transcription {record_id}")

    # ------------------------------------------------------------ lifecycle

    def is_running(self, record_id: str) -> bool:
        task = self._tasks.get(record_id)
        return task is not None and not task.done()

    def cancel(self, record_id: str) -> bool:
        """Request cancellation of an in-flight run.

        Returns:
            False when no run is in flight for the id
        """
        ctx = self._contexts.get(record_id)
        if ctx is None or not self.is_running(record_id):
            return False
        ctx.cancel()
        logger.info(f"Cancellation requested for transcription {record_id}")
        return True

    async def wait(self, record_id: str) -> TranscriptionRecord:
        """Wait for the run of ``record_id`` (if any) and return the persisted record."""
        task = self._tasks.get(record_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._store.get(record_id)

    async def shutdown(self) -> None:
        """Cancel every in-flight run and wait until each has persisted its final state."""
        running = list(self._tasks.items())
        if not running:
            return
        logger.info(f"Shutting down {len(running)} running pipeline(s)")
        for record_id, _ in running:
            ctx = self._contexts.get(record_id)
            if ctx is not None:
                ctx.cancel()
        await asyncio.gather(*(task for _, task in running), return_exceptions=True)
