"""GitHub issue tracker backend over the REST API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..models.task import TaskItem, TaskStatus
from ..models.tracker import IssueResult, RepositoryReference
from ..models.transcription import utcnow
from ..utils.retry import RetryConfig
from .base import BaseTrackerBackend, CircuitBreakerConfig

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> datetime:
    if value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp from GitHub: {value}")
    return utcnow()


def issue_from_payload(payload: Dict[str, Any]) -> IssueResult:
    """Map a GitHub issue JSON object to an IssueResult."""
    assignee = payload.get("assignee") or {}
    milestone = payload.get("milestone") or {}
    return IssueResult(
        number=payload["number"],
        title=payload.get("title") or "",
        html_url=payload.get("html_url") or "",
        body=payload.get("body") or "",
        state=(payload.get("state") or "open").lower(),
        labels=[label["name"] for label in payload.get("labels") or [] if isinstance(label, dict)],
        assignee=assignee.get("login"),
        milestone=milestone.get("title"),
        created_at=_parse_timestamp(payload.get("created_at")),
        updated_at=_parse_timestamp(payload.get("updated_at")),
    )


class GitHubTracker(BaseTrackerBackend):
    """Tracker backend for GitHub repositories.

    The access token travels with each RepositoryReference, so one backend
    instance serves any number of repositories.
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        user_agent: str = "meetsync/1.0",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_config: Optional[CircuitBreakerConfig] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize the tracker.

        Args:
            api_url: REST API root (GitHub Enterprise uses its own)
            user_agent: User-Agent header GitHub requires
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
            circuit_config: Circuit breaker configuration
            retry_config: Retry configuration
        """
        super().__init__(circuit_config, retry_config)
        self.api_url = api_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    def get_provider_name(self) -> str:
        return "GitHub"

    def _headers(self, repository: RepositoryReference) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": self.user_agent,
        }
        if repository.token:
            headers["Authorization"] = f"Bearer {repository.token}"
        return headers

    async def _request(
        self,
        method: str,
        repository: RepositoryReference,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry: bool = True,
    ) -> Any:
        """Send one API request behind the circuit breaker.

        Requests that create something pass ``retry=False``: a timed out
        POST may already have created the resource on the server.
        """
        url = f"{self.api_url}/repos/{repository.owner}/{repository.name}{path}"

        async def _send() -> Any:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                try:
                    response = await client.request(
                        method, url, headers=self._headers(repository), json=json, params=params
                    )
                except httpx.TransportError as e:
                    raise ConnectionError(f"GitHub request failed: {e}") from e
                response.raise_for_status()
                return response.json()

        if not retry:
            return await self.circuit_breaker_call_async(_send)
        return await self._call(_send)

    async def _paginate(
        self, repository: RepositoryReference, path: str, params: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = await self._request(
                "GET", repository, path, params={**params, "per_page": 100, "page": page}
            )
            items.extend(batch)
            if len(batch) < 100:
                return items
            page += 1

    async def _find_milestone_number(
        self, repository: RepositoryReference, title: str
    ) -> Optional[int]:
        milestones = await self._paginate(repository, "/milestones", {"state": "all"})
        for milestone in milestones:
            if (milestone.get("title") or "").lower() == title.lower():
                return milestone["number"]
        logger.warning(f"Milestone '{title}' not found in {repository.full_name}")
        return None

    async def create_issue(self, repository: RepositoryReference, task: TaskItem) -> IssueResult:
        logger.info(f"Creating GitHub issue for task: {task.title}")
        payload: Dict[str, Any] = {"title": task.title, "body": task.description}
        if task.labels:
            payload["labels"] = list(task.labels)
        if task.assignee:
            payload["assignees"] = [task.assignee]
        if task.milestone_title:
            number = await self._find_milestone_number(repository, task.milestone_title)
            if number is not None:
                payload["milestone"] = number

        try:
            data = await self._request("POST", repository, "/issues", json=payload, retry=False)
        except Exception as e:
            logger.error(f"Error creating GitHub issue for task: {task.title}: {e}")
            raise

        issue = issue_from_payload(data)
        logger.info(f"Successfully created GitHub issue #{issue.number}: {issue.title}")
        return issue

    async def list_issues(
        self, repository: RepositoryReference, limit: Optional[int] = None
    ) -> List[IssueResult]:
        logger.info(f"Retrieving issues for repository: {repository.full_name}")
        if limit is not None:
            data = await self._request(
                "GET", repository, "/issues", params={"state": "all", "per_page": min(max(limit, 1), 100)}
            )
            data = data[:limit]
        else:
            data = await self._paginate(repository, "/issues", {"state": "all"})
        # The issues endpoint also returns pull requests
        return [issue_from_payload(item) for item in data if "pull_request" not in item]

    async def update_issue(
        self, repository: RepositoryReference, issue_number: int, task: TaskItem
    ) -> IssueResult:
        logger.info(f"Updating GitHub issue #{issue_number}")
        payload = {
            "title": task.title,
            "body": task.description,
            "state": "closed" if task.status is TaskStatus.COMPLETED else "open",
        }
        try:
            data = await self._request("PATCH", repository, f"/issues/{issue_number}", json=payload)
        except Exception as e:
            logger.error(f"Error updating GitHub issue #{issue_number}: {e}")
            raise

        issue = issue_from_payload(data)
        logger.info(f"Successfully updated GitHub issue #{issue.number}: {issue.title}")
        return issue

    async def list_milestones(self, repository: RepositoryReference) -> List[str]:
        logger.info(f"Retrieving milestones for repository: {repository.full_name}")
        milestones = await self._paginate(repository, "/milestones", {"state": "all"})
        return [milestone["title"] for milestone in milestones]

    async def create_milestone(
        self,
        repository: RepositoryReference,
        title: str,
        description: str,
        due_date: Optional[datetime] = None,
    ) -> str:
        logger.info(f"Creating milestone: {title} for repository: {repository.full_name}")
        payload: Dict[str, Any] = {"title": title, "description": description}
        if due_date is not None:
            payload["due_on"] = due_date.strftime("%Y-%m-%dT%H:%M:%SZ")
        data = await self._request("POST", repository, "/milestones", json=payload, retry=False)
        logger.info(f"Successfully created milestone: {data['title']}")
        return data["title"]
