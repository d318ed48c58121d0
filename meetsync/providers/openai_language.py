"""OpenAI chat completions backend for summaries, task extraction and issue text."""

from __future__ import annotations

import dataclasses
import logging
import re
from datetime import datetime
from typing import Any, List, Optional

from openai import APIConnectionError, AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..models.task import TaskItem
from ..orchestration.normalizer import MAX_TITLE_LENGTH, truncate
from ..utils.retry import RetryConfig
from .base import BaseLanguageBackend, CircuitBreakerConfig

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = (
    "You are an AI assistant specialized in summarizing meeting transcriptions. "
    "Create a concise, well-structured summary that captures key discussion points, "
    "decisions made, and important topics covered. Focus on actionable insights."
)

TASKS_PROMPT = """You are an AI assistant that extracts actionable tasks from meeting transcriptions and summaries.
Extract tasks that are:
- Specific and actionable
- Have clear deliverables
- Can be assigned to team members
- Have implied or explicit deadlines

Return a JSON array of tasks with this exact structure:
[
  {
    "Title": "Task title (max 100 characters)",
    "Description": "Detailed description",
    "Priority": 1-4 (1=Low, 2=Medium, 3=High, 4=Critical),
    "AssignedTo": "Person mentioned or empty string",
    "DueDate": "ISO date or null",
    "Labels": ["relevant", "labels"],
    "MilestoneTitle": "Related milestone or empty string"
  }
]

Only return the JSON array, no additional text."""

TITLE_PROMPT = (
    "Generate a concise, descriptive GitHub issue title (max 100 characters) "
    "based on the task description provided. Make it actionable and clear."
)

BODY_PROMPT = (
    "Generate a well-formatted GitHub issue body with sections for Description, "
    "Acceptance Criteria, and Context. Use Markdown formatting."
)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class TaskPayload(BaseModel):
    """One task as returned by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(default="", alias="Title")
    description: str = Field(default="", alias="Description")
    priority: Any = Field(default=2, alias="Priority")
    assigned_to: Optional[str] = Field(default="", alias="AssignedTo")
    due_date: Optional[datetime] = Field(default=None, alias="DueDate")
    labels: Optional[List[str]] = Field(default=None, alias="Labels")
    milestone_title: Optional[str] = Field(default="", alias="MilestoneTitle")

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                return None
        return value

    def to_task(self) -> TaskItem:
        return TaskItem(
            title=self.title or "",
            description=self.description or "",
            priority=self.priority,
            assignee=self.assigned_to or "",
            due_date=self.due_date,
            labels=list(self.labels or []),
            milestone_title=self.milestone_title or "",
        )


_TASK_LIST = TypeAdapter(List[TaskPayload])


def parse_tasks(content: str) -> List[TaskItem]:
    """Parse the model's JSON answer into (un-normalized) task items.

    Raises:
        ValidationError: If the content is not a JSON array of task objects
    """
    text = _FENCE.sub("", content.strip())
    return [payload.to_task() for payload in _TASK_LIST.validate_json(text)]


class OpenAILanguageBackend(BaseLanguageBackend):
    """Language backend backed by an OpenAI compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
        circuit_config: Optional[CircuitBreakerConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        retry_config = retry_config or self.DEFAULT_RETRY_CONFIG
        retry_config = dataclasses.replace(
            retry_config,
            retriable_exceptions=tuple(retry_config.retriable_exceptions) + (APIConnectionError,),
        )
        super().__init__(circuit_config, retry_config)

        if client is None:
            if not api_key:
                raise ValueError(
                    "OPENAI_API_KEY not found. Set it as environment variable or pass to constructor."
                )
            # Retries are handled by retry_async
            client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        self._client = client
        self.model = model

    def get_provider_name(self) -> str:
        return f"OpenAI {self.model}"

    async def _complete(self, system: str, user: str, temperature: float = 0.2) -> str:
        async def _request() -> str:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
            )
            return response.choices[0].message.content or ""

        return await self._call(_request)

    async def summarize(self, transcript: str) -> str:
        logger.info("Starting meeting summarization")
        try:
            summary = await self._complete(
                SUMMARY_PROMPT, f"Please summarize this meeting transcription:\n\n{transcript}"
            )
        except Exception as e:
            logger.error(f"Error summarizing meeting transcription: {e}")
            raise
        logger.info("Meeting summarization completed successfully")
        return summary.strip()

    async def extract_tasks(self, transcript: str, summary: str) -> List[TaskItem]:
        logger.info("Starting task extraction from transcription and summary")
        prompt = (
            f"Meeting Summary:\n{summary}\n\n"
            f"Full Transcription:\n{transcript}\n\n"
            "Extract all actionable tasks from this meeting content:"
        )
        content = await self._complete(TASKS_PROMPT, prompt, temperature=0.1)
        try:
            tasks = parse_tasks(content)
        except ValidationError as e:
            logger.warning(f"Could not parse extracted tasks, returning none: {e}")
            return []
        logger.info(f"Extracted {len(tasks)} tasks from meeting content")
        return tasks

    async def generate_issue_title(self, description: str) -> str:
        try:
            title = await self._complete(TITLE_PROMPT, f"Task: {description}")
        except Exception as e:
            logger.warning(f"Error generating issue title, using description: {e}")
            return truncate(description, MAX_TITLE_LENGTH)
        return title.strip().strip('"')

    async def generate_issue_body(self, description: str, context: str) -> str:
        try:
            return await self._complete(BODY_PROMPT, f"Task: {description}\n\nMeeting Context: {context}")
        except Exception as e:
            logger.warning(f"Error generating issue body, using template: {e}")
            return (
                f"## Description\n{description}\n\n"
                f"## Context\nExtracted from meeting discussion.\n\n{context}"
            )
