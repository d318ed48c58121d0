"""Tests for task normalization."""

from datetime import datetime

import pytest

from meetsync.models.task import TaskItem, TaskPriority
from meetsync.orchestration.normalizer import (
    MAX_DESCRIPTION_LENGTH,
    MAX_LABELS,
    MAX_MILESTONE_LENGTH,
    MAX_TITLE_LENGTH,
    clean_labels,
    normalize_task,
    normalize_tasks,
    truncate,
)


class TestTruncate:
    """Tests for the truncate helper."""

    def test_short_text_unchanged(self):
        assert truncate("Fix login", 100) == "Fix login"

    def test_exact_length_unchanged(self):
        text = "a" * 100
        assert truncate(text, 100) == text

    def test_long_text_gets_ellipsis(self):
        text = "abcdefghij" * 15
        result = truncate(text, 100)

        assert len(result) == 100
        assert result == text[:97] + "..."


class TestCleanLabels:
    """Tests for label cleanup."""

    def test_blank_labels_dropped(self):
        assert clean_labels(["bug", "", "   ", "backend"]) == ["bug", "backend"]

    def test_at_most_ten_labels_kept_in_order(self):
        labels = [f"label-{i}" for i in range(15)]
        assert clean_labels(labels) == labels[:MAX_LABELS]


class TestNormalizeTask:
    """Tests for normalize_task."""

    def test_long_title_is_truncated(self):
        """A 150 character title becomes 100 characters ending with an ellipsis."""
        title = "".join(chr(ord("a") + i % 26) for i in range(150))
        task = normalize_task(TaskItem(title=title))

        assert len(task.title) == MAX_TITLE_LENGTH
        assert task.title.endswith("...")
        assert task.title[:97] == title[:97]

    def test_description_and_milestone_limits(self):
        task = normalize_task(
            TaskItem(title="Audit", description="d" * 12000, milestone_title="m" * 120)
        )

        assert len(task.description) == MAX_DESCRIPTION_LENGTH
        assert task.description.endswith("...")
        assert len(task.milestone_title) == MAX_MILESTONE_LENGTH

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("high", TaskPriority.HIGH),
            ("Critical", TaskPriority.CRITICAL),
            (" low ", TaskPriority.LOW),
            (3, TaskPriority.HIGH),
            ("4", TaskPriority.CRITICAL),
            (7, TaskPriority.MEDIUM),
            ("urgent", TaskPriority.MEDIUM),
            (None, TaskPriority.MEDIUM),
            (True, TaskPriority.MEDIUM),
        ],
    )
    def test_priority_coercion(self, raw, expected):
        assert normalize_task(TaskItem(title="t", priority=raw)).priority is expected

    def test_assigns_id_and_created_at(self):
        task = normalize_task(TaskItem(title="Write docs"))

        assert task.id
        assert isinstance(task.created_at, datetime)

    def test_keeps_existing_id_and_created_at(self):
        created = datetime(2024, 5, 1, 9, 30)
        task = normalize_task(TaskItem(id="task-7", title="Write docs", created_at=created))

        assert task.id == "task-7"
        assert task.created_at == created

    def test_is_idempotent(self):
        raw = TaskItem(
            title="x" * 140,
            description="Migrate the billing tables",
            priority="high",
            labels=["", "db", "migration"],
            milestone_title="Q3",
        )
        once = normalize_task(raw)

        assert normalize_task(once) == once

    def test_input_not_mutated(self):
        labels = ["", "ops"]
        raw = TaskItem(title="y" * 120, priority="low", labels=labels)

        normalized = normalize_task(raw)

        assert raw.title == "y" * 120
        assert raw.priority == "low"
        assert raw.labels is labels
        assert labels == ["", "ops"]
        assert raw.id == ""
        assert normalized.labels == ["ops"]

    def test_result_does_not_share_label_list(self):
        raw = TaskItem(title="Ship release", labels=["release"])
        normalized = normalize_task(raw)

        normalized.labels.append("extra")

        assert raw.labels == ["release"]


class TestNormalizeTasks:
    def test_preserves_order(self):
        tasks = normalize_tasks([TaskItem(title="first"), TaskItem(title="second")])

        assert [t.title for t in tasks] == ["first", "second"]
        assert tasks[0].id != tasks[1].id

    def test_empty(self):
        assert normalize_tasks([]) == []
