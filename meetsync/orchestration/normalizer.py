"""Task normalization applied before tasks are stored or published."""
from __future__ import annotations

import dataclasses
import logging
from typing import Iterable, List

from ..models.task import TaskItem, TaskPriority, new_task_id
from ..models.transcription import utcnow

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 10000
MAX_MILESTONE_LENGTH = 100
MAX_LABELS = 10
ELLIPSIS = "..."


def truncate(text: str, limit: int) -> str:
    """Clamp text to ``limit`` characters, ending in an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def clean_labels(labels: Iterable[str]) -> List[str]:
    """Drop blank labels and keep at most MAX_LABELS, preserving order."""
    kept = [label for label in labels if isinstance(label, str) and label.strip()]
    return kept[:MAX_LABELS]


def normalize_task(task: TaskItem) -> TaskItem:
    """Return a policy-compliant copy of ``task``.

    Rules, applied in order: assign an id, stamp ``created_at``, truncate the
    title, truncate the description, coerce the priority, clean labels,
    truncate the milestone title. Each rule is idempotent, so normalizing an
    already normalized task returns an equal task. The input is not modified.
    """
    changes = {}

    if not task.id:
        changes["id"] = new_task_id()
    if task.created_at is None:
        changes["created_at"] = utcnow()

    title = truncate(task.title or "", MAX_TITLE_LENGTH)
    if title != task.title:
        changes["title"] = title

    description = truncate(task.description or "", MAX_DESCRIPTION_LENGTH)
    if description != task.description:
        changes["description"] = description

    priority = TaskPriority.coerce(task.priority)
    if priority is not task.priority:
        changes["priority"] = priority

    labels = clean_labels(task.labels or [])
    if labels != task.labels:
        changes["labels"] = labels

    milestone = truncate(task.milestone_title or "", MAX_MILESTONE_LENGTH)
    if milestone != task.milestone_title:
        changes["milestone_title"] = milestone

    adjusted = sorted(k for k in changes if k not in ("id", "created_at"))
    if adjusted:
        logger.debug(f"Adjusted task '{title}': {', '.join(adjusted)}")

    normalized = dataclasses.replace(task, **changes)
    if "labels" not in changes:
        normalized.labels = list(task.labels)
    return normalized


def normalize_tasks(tasks: Iterable[TaskItem]) -> List[TaskItem]:
    """Normalize every task in order."""
    return [normalize_task(task) for task in tasks]
