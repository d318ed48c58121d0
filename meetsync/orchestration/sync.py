"""Publication of extracted tasks to the external issue tracker.

Batches are processed sequentially. A task that fails to publish is logged
and recorded, and the batch moves on to the next task. Callers' task values
are never modified: enrichment and publication work on copies, and the
published versions are handed back in a SyncReport.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..models.task import TaskItem
from ..models.tracker import IssueResult, RepositoryReference
from ..providers.base import BaseLanguageBackend, BaseTrackerBackend
from .errors import AccessCheck, ItemPublishFailure
from .normalizer import MAX_TITLE_LENGTH, normalize_task

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of a batch sync.

    Attributes:
        issues: Issues created, in task order
        tasks: Every input task after the batch, in input order; published
            ones carry their issue reference, failed ones are unchanged
        failures: One entry per task that could not be published
    """

    issues: List[IssueResult] = field(default_factory=list)
    tasks: List[TaskItem] = field(default_factory=list)
    failures: List[ItemPublishFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.issues)

    @property
    def failed(self) -> int:
        return len(self.failures)


class SyncOrchestrator:
    """Publishes task items as tracker issues, enriched by the language backend."""

    def __init__(self, tracker: BaseTrackerBackend, language: Optional[BaseLanguageBackend] = None):
        """Initialize the orchestrator.

        Args:
            tracker: Issue tracker backend
            language: Backend that writes issue titles and bodies; without
                one, tasks are published with their own title and description
        """
        self._tracker = tracker
        self._language = language

    async def _enrich(self, repository: RepositoryReference, task: TaskItem) -> TaskItem:
        """Copy of ``task`` with generated title/body and repository defaults applied."""
        enriched = dataclasses.replace(task, labels=list(task.labels))

        if self._language is not None:
            title = await self._language.generate_issue_title(task.description)
            if title and len(title) <= MAX_TITLE_LENGTH:
                enriched.title = title

            body = await self._language.generate_issue_body(
                task.description, f"Meeting task: {enriched.title}"
            )
            if body:
                enriched.description = body

        if not enriched.labels and repository.default_labels:
            enriched.labels = list(repository.default_labels)
        if not enriched.milestone_title and repository.default_milestone:
            enriched.milestone_title = repository.default_milestone
        return enriched

    async def _publish(
        self, repository: RepositoryReference, task: TaskItem
    ) -> Tuple[IssueResult, TaskItem]:
        logger.info(f"Creating issue for task: {task.title}")
        try:
            enriched = await self._enrich(repository, task)
            issue = await self._tracker.create_issue(repository, enriched)
        except Exception as e:
            logger.error(f"Error creating issue for task: {task.title}: {e}")
            raise

        published = normalize_task(
            dataclasses.replace(enriched, issue_number=issue.number, issue_url=issue.html_url)
        )
        logger.info(f"Successfully created issue #{issue.number}: {issue.title}")
        return issue, published

    async def create_issue(self, repository: RepositoryReference, task: TaskItem) -> IssueResult:
        """Enrich a single task and create its issue.

        Errors propagate to the caller.
        """
        issue, _ = await self._publish(repository, task)
        return issue

    async def sync_batch_report(
        self, repository: RepositoryReference, tasks: Sequence[TaskItem]
    ) -> SyncReport:
        """Publish ``tasks`` in order, continuing past failures."""
        logger.info(f"Starting sync of {len(tasks)} tasks to repository: {repository.full_name}")
        report = SyncReport()

        for task in tasks:
            try:
                issue, published = await self._publish(repository, task)
            except Exception as e:
                logger.warning(f"Failed to sync task '{task.title}': {e}")
                report.failures.append(ItemPublishFailure(task.id, task.title, e))
                report.tasks.append(task)
                continue
            report.issues.append(issue)
            report.tasks.append(published)
            logger.info(f"Successfully synced task '{task.title}' to issue #{issue.number}")

        logger.info(
            f"Completed sync. {report.succeeded}/{len(tasks)} tasks synced successfully"
        )
        return report

    async def sync_batch(
        self, repository: RepositoryReference, tasks: Sequence[TaskItem]
    ) -> List[IssueResult]:
        """Publish ``tasks`` in order and return the issues that were created."""
        report = await self.sync_batch_report(repository, tasks)
        return report.issues

    async def validate_access(self, repository: RepositoryReference) -> AccessCheck:
        """Check read access to the repository with a one-issue listing. Never raises."""
        logger.info(f"Validating access to repository: {repository.full_name}")
        try:
            await self._tracker.list_issues(repository, limit=1)
        except Exception as e:
            logger.error(f"Failed to validate access to repository {repository.full_name}: {e}")
            return AccessCheck(repository.full_name, False, e)

        logger.info(f"Successfully validated access to repository: {repository.full_name}")
        return AccessCheck(repository.full_name, True)

    async def update_issue(self, repository: RepositoryReference, task: TaskItem) -> IssueResult:
        """Push title, body and open/closed state of an already published task.

        Raises:
            ValueError: If the task has no issue reference
        """
        if not task.is_published:
            raise ValueError(f"Task {task.id} has not been published")
        return await self._tracker.update_issue(repository, task.issue_number, task)

    async def ensure_milestone(
        self,
        repository: RepositoryReference,
        title: str,
        description: str = "",
        due_date: Optional[datetime] = None,
    ) -> str:
        """Return the existing milestone matching ``title`` (any case), creating it if needed."""
        for existing in await self._tracker.list_milestones(repository):
            if existing.lower() == title.lower():
                return existing
        return await self._tracker.create_milestone(repository, title, description, due_date)
