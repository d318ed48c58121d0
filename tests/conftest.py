"""Global pytest fixtures and configuration.

This module provides shared fixtures for all tests including:
- In-process fake backends (speech-to-text, language model, issue tracker)
- A TranscriptionPipeline wired to an in-memory record store
- Repository references and sample task items
"""
from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Set

import pytest

from meetsync.models.task import TaskItem, TaskPriority
from meetsync.models.tracker import IssueResult, RepositoryReference
from meetsync.orchestration.pipeline import TranscriptionPipeline
from meetsync.orchestration.record_store import InMemoryRecordStore
from meetsync.orchestration.sync import SyncOrchestrator
from meetsync.providers.base import (
    BaseLanguageBackend,
    BaseTrackerBackend,
    BaseTranscriptionBackend,
)

STANDUP_TRANSCRIPT = "Let's sync on the migration. Alice will file a ticket."


class FakeTranscriber(BaseTranscriptionBackend):
    """Speech-to-text backend returning a canned transcript."""

    def __init__(self, transcript: str = STANDUP_TRANSCRIPT, error: Optional[Exception] = None, delay: float = 0.0):
        super().__init__()
        self.transcript = transcript
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []
        self.urls: List[str] = []

    def get_provider_name(self) -> str:
        return "Fake STT"

    async def _respond(self) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.transcript

    async def transcribe(self, audio: bytes, file_name: str) -> str:
        self.calls.append((audio, file_name))
        return await self._respond()

    async def transcribe_from_url(self, audio_url: str) -> str:
        self.urls.append(audio_url)
        return await self._respond()


class FakeLanguage(BaseLanguageBackend):
    """Language backend with scripted answers per operation."""

    def __init__(
        self,
        summary: str = "The team discussed the migration.",
        tasks: Optional[List[TaskItem]] = None,
        title: Optional[str] = "",
        body: Optional[str] = "",
        summarize_error: Optional[Exception] = None,
        extract_error: Optional[Exception] = None,
    ):
        super().__init__()
        self.summary = summary
        self.tasks = tasks if tasks is not None else [
            TaskItem(title="File migration ticket", priority=TaskPriority.MEDIUM, assignee="Alice")
        ]
        self.title = title
        self.body = body
        self.summarize_error = summarize_error
        self.extract_error = extract_error
        self.summarized: List[str] = []
        self.extracted: List[tuple] = []
        self.body_contexts: List[str] = []

    def get_provider_name(self) -> str:
        return "Fake LLM"

    async def summarize(self, transcript: str) -> str:
        self.summarized.append(transcript)
        if self.summarize_error:
            raise self.summarize_error
        return self.summary

    async def extract_tasks(self, transcript: str, summary: str) -> List[TaskItem]:
        self.extracted.append((transcript, summary))
        if self.extract_error:
            raise self.extract_error
        return [dataclasses.replace(task, labels=list(task.labels)) for task in self.tasks]

    async def generate_issue_title(self, description: str) -> str:
        return self.title

    async def generate_issue_body(self, description: str, context: str) -> str:
        self.body_contexts.append(context)
        return self.body


class FakeTracker(BaseTrackerBackend):
    """Issue tracker keeping issues in memory; rejects tasks by title."""

    def __init__(self, reject_titles: Optional[Set[str]] = None, list_error: Optional[Exception] = None):
        super().__init__()
        self.reject_titles = reject_titles or set()
        self.list_error = list_error
        self.created: List[TaskItem] = []
        self.attempted: List[str] = []
        self.updated: List[tuple] = []
        self.list_limits: List[Optional[int]] = []
        self.milestones: List[str] = []
        self._next_number = 1

    def get_provider_name(self) -> str:
        return "Fake tracker"

    def _issue(self, number: int, task: TaskItem) -> IssueResult:
        return IssueResult(
            number=number,
            title=task.title,
            html_url=f"https://example.test/issues/{number}",
            body=task.description,
            labels=list(task.labels),
            assignee=task.assignee or None,
            milestone=task.milestone_title or None,
            created_at=datetime(2024, 1, 1),
            updated_at=datetime(2024, 1, 1),
        )

    async def create_issue(self, repository: RepositoryReference, task: TaskItem) -> IssueResult:
        self.attempted.append(task.title)
        if task.title in self.reject_titles:
            raise RuntimeError(f"422 Unprocessable: {task.title}")
        self.created.append(task)
        number = self._next_number
        self._next_number += 1
        return self._issue(number, task)

    async def list_issues(self, repository: RepositoryReference, limit: Optional[int] = None) -> List[IssueResult]:
        self.list_limits.append(limit)
        if self.list_error:
            raise self.list_error
        issues = [self._issue(i + 1, task) for i, task in enumerate(self.created)]
        return issues if limit is None else issues[:limit]

    async def update_issue(
        self, repository: RepositoryReference, issue_number: int, task: TaskItem
    ) -> IssueResult:
        self.updated.append((issue_number, task))
        return self._issue(issue_number, task)

    async def list_milestones(self, repository: RepositoryReference) -> List[str]:
        return list(self.milestones)

    async def create_milestone(self, repository, title, description, due_date=None) -> str:
        self.milestones.append(title)
        return title


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def language() -> FakeLanguage:
    return FakeLanguage()


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def pipeline(store, transcriber, language) -> TranscriptionPipeline:
    return TranscriptionPipeline(store=store, transcriber=transcriber, language=language)


@pytest.fixture
def orchestrator(tracker, language) -> SyncOrchestrator:
    return SyncOrchestrator(tracker=tracker, language=language)


@pytest.fixture
def repository() -> RepositoryReference:
    return RepositoryReference(owner="acme", name="backend", token="ghp_test")


@pytest.fixture
def sample_tasks() -> List[TaskItem]:
    """Three normalized-looking tasks with stable ids."""
    return [
        TaskItem(id=f"task-{i}", title=title, description=f"{title} details")
        for i, title in enumerate(["Write docs", "Fix login", "Ship release"], start=1)
    ]


@pytest.fixture
def fixed_environment(monkeypatch, tmp_path) -> Iterator[Dict[str, str]]:
    """Environment for Config-based tests with a throwaway SQLite store and log dir."""
    from meetsync.config import reset_config

    env = {
        "RECORD_STORE": "sqlite",
        "RECORD_DB_PATH": str(tmp_path / "records.db"),
        "LOG_DIR": str(tmp_path / "logs"),
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    reset_config()
    yield env
    reset_config()
