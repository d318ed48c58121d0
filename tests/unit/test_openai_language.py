"""Tests for the OpenAI language backend."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from openai import APIConnectionError
from pydantic import ValidationError

from meetsync.models.task import TaskPriority
from meetsync.providers.openai_language import (
    TASKS_PROMPT,
    OpenAILanguageBackend,
    parse_tasks,
)
from meetsync.utils.retry import RetryConfig


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _backend(*answers, retry_config=None):
    client = Mock()
    client.chat.completions.create = AsyncMock(
        side_effect=[a if isinstance(a, Exception) else _completion(a) for a in answers]
    )
    backend = OpenAILanguageBackend(
        model="gpt-test",
        client=client,
        retry_config=retry_config or RetryConfig(max_attempts=1),
    )
    return backend, client.chat.completions.create


TASKS_JSON = """[
  {
    "Title": "File migration ticket",
    "Description": "Alice files the migration ticket",
    "Priority": 3,
    "AssignedTo": "Alice",
    "DueDate": "2024-06-01T00:00:00Z",
    "Labels": ["migration"],
    "MilestoneTitle": "Sprint 12",
    "Extra": "ignored"
  },
  {"Title": "Review plan", "Priority": "low", "DueDate": "next week", "Labels": null}
]"""


class TestParseTasks:
    """Tests for parse_tasks."""

    def test_parses_fields(self):
        first, second = parse_tasks(TASKS_JSON)

        assert first.title == "File migration ticket"
        assert first.priority == 3
        assert first.assignee == "Alice"
        assert first.due_date.year == 2024
        assert first.labels == ["migration"]
        assert first.milestone_title == "Sprint 12"
        assert first.id == ""

        assert second.description == ""
        assert second.due_date is None
        assert second.labels == []
        assert TaskPriority.coerce(second.priority) is TaskPriority.LOW

    def test_strips_code_fences(self):
        tasks = parse_tasks('```json\n[{"Title": "Fenced"}]\n```')

        assert [t.title for t in tasks] == ["Fenced"]

    def test_empty_array(self):
        assert parse_tasks("[]") == []

    @pytest.mark.parametrize("content", ["not json", '{"Title": "object"}', ""])
    def test_invalid_content(self, content):
        with pytest.raises(ValidationError):
            parse_tasks(content)


class TestOpenAILanguageBackend:
    """Tests for OpenAILanguageBackend."""

    def test_requires_api_key_without_client(self):
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAILanguageBackend(api_key=None)

    def test_connection_errors_are_retriable(self):
        backend = OpenAILanguageBackend(api_key="sk-test")

        assert APIConnectionError in backend.get_retry_config().retriable_exceptions
        assert backend.get_provider_name() == "OpenAI gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_summarize(self):
        backend, create = _backend("  The team discussed the migration.  ")

        summary = await backend.summarize("transcript text")

        assert summary == "The team discussed the migration."
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][1]["content"].endswith("transcript text")

    @pytest.mark.asyncio
    async def test_summarize_errors_propagate(self):
        backend, _ = _backend(RuntimeError("quota exceeded"))

        with pytest.raises(RuntimeError, match="quota exceeded"):
            await backend.summarize("transcript text")

    @pytest.mark.asyncio
    async def test_connection_error_retried(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        backend, create = _backend(
            APIConnectionError(request=request),
            "summary",
            retry_config=RetryConfig(max_attempts=2, base_delay=0.0, jitter=False),
        )

        assert await backend.summarize("t") == "summary"
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_extract_tasks(self):
        backend, create = _backend(TASKS_JSON)

        tasks = await backend.extract_tasks("transcript", "summary")

        assert [t.title for t in tasks] == ["File migration ticket", "Review plan"]
        messages = create.await_args.kwargs["messages"]
        assert messages[0]["content"] == TASKS_PROMPT
        assert "Meeting Summary:\nsummary" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_extract_tasks_unparseable_answer(self):
        backend, _ = _backend("Sorry, I cannot help with that.")

        assert await backend.extract_tasks("transcript", "summary") == []

    @pytest.mark.asyncio
    async def test_issue_title(self):
        backend, _ = _backend('"Document the sync API"')

        assert await backend.generate_issue_title("docs") == "Document the sync API"

    @pytest.mark.asyncio
    async def test_issue_title_falls_back_to_description(self):
        backend, _ = _backend(RuntimeError("down"))

        title = await backend.generate_issue_title("d" * 150)

        assert len(title) == 100
        assert title.endswith("...")

    @pytest.mark.asyncio
    async def test_issue_body_falls_back_to_template(self):
        backend, _ = _backend(RuntimeError("down"))

        body = await backend.generate_issue_body("Write docs", "Meeting task: Write docs")

        assert body.startswith("## Description\nWrite docs")
        assert "Extracted from meeting discussion." in body
        assert body.endswith("Meeting task: Write docs")
