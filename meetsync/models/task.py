"""Data models for tasks extracted from meetings."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


class TaskPriority(IntEnum):
    """Priority of a task item."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def coerce(cls, value: Any) -> "TaskPriority":
        """Convert loosely typed input to a priority, defaulting to MEDIUM.

        Accepts members, their integer values (1-4) and their names in any
        case ("high", "Critical"). Anything else maps to MEDIUM.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.MEDIUM
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.MEDIUM
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.coerce(int(text))
            return cls.__members__.get(text.upper(), cls.MEDIUM)
        return cls.MEDIUM


class TaskStatus(Enum):
    """Lifecycle status of a task item."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def new_task_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TaskItem:
    """One actionable unit derived from a meeting.

    ``id`` and ``created_at`` may be left empty by a language backend; the
    normalizer fills them in. ``priority`` may hold raw backend output until
    the item is normalized.
    """

    title: str = ""
    description: str = ""
    priority: Any = TaskPriority.MEDIUM
    assignee: str = ""
    due_date: Optional[datetime] = None
    labels: List[str] = field(default_factory=list)
    milestone_title: str = ""
    status: TaskStatus = TaskStatus.OPEN
    issue_number: Optional[int] = None
    issue_url: Optional[str] = None
    id: str = ""
    created_at: Optional[datetime] = None

    @property
    def is_published(self) -> bool:
        """True once the task carries an external issue reference."""
        return self.issue_number is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        priority = TaskPriority.coerce(self.priority)
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": priority.name.lower(),
            "assignee": self.assignee,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "labels": list(self.labels),
            "milestone_title": self.milestone_title,
            "status": self.status.value,
            "issue_number": self.issue_number,
            "issue_url": self.issue_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskItem":
        """Create from dictionary."""
        due_date = data.get("due_date")
        created_at = data.get("created_at")
        issue_number = data.get("issue_number")
        return cls(
            id=data.get("id") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            priority=TaskPriority.coerce(data.get("priority")),
            assignee=data.get("assignee") or "",
            due_date=datetime.fromisoformat(due_date) if due_date else None,
            labels=list(data.get("labels") or []),
            milestone_title=data.get("milestone_title") or "",
            status=TaskStatus(data.get("status", TaskStatus.OPEN.value)),
            issue_number=int(issue_number) if issue_number is not None else None,
            issue_url=data.get("issue_url"),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )
