"""Data models for the external issue tracker."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RepositoryReference:
    """Coordinates of a tracker repository, passed by value and never persisted."""

    owner: str
    name: str
    token: str = field(default="", repr=False)
    default_milestone: str = ""
    default_labels: List[str] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class IssueResult:
    """An issue as reported back by the tracker."""

    number: int
    title: str
    html_url: str
    body: str = ""
    state: str = "open"
    labels: List[str] = field(default_factory=list)
    assignee: Optional[str] = None
    milestone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "number": self.number,
            "title": self.title,
            "html_url": self.html_url,
            "body": self.body,
            "state": self.state,
            "labels": list(self.labels),
            "assignee": self.assignee,
            "milestone": self.milestone,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
