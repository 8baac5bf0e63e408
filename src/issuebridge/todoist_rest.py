from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from .errors import HTTPAPIError
from .models import CompletedTask, TodoistTask
from .retry import RetryConfig, run_with_retries

DEFAULT_API_URL = "https://api.todoist.com"
HTTP_ERROR_STATUS = 400
HTTP_NOT_FOUND = 404
COMPLETED_PAGE_LIMIT = 200
# Single-task lookups sit on the slow path of task resolution; keep them short.
TASK_FETCH_ATTEMPTS = 3

logger = logging.getLogger(__name__)


class TodoistAPIError(HTTPAPIError):
    """Raised when the Todoist REST or Sync API returns an error."""

    service = "Todoist"


def _format_since(since: str | datetime) -> str:
    """Todoist expects ``YYYY-MM-DDTHH:MM:SS`` without zone or fraction."""
    if isinstance(since, str):
        since = datetime.fromisoformat(since.replace("Z", "+00:00"))
    if since.tzinfo is not None:
        since = since.astimezone(timezone.utc)
    return since.replace(tzinfo=None, microsecond=0).isoformat()


@dataclass
class TodoistRestClient:
    token: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    retry_config: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        allow_not_found: bool = False,
        cfg: RetryConfig | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response | None:
            response = self._session.request(
                method,
                url,
                params=params,
                headers=self._session.headers,
                timeout=30,
            )
            if allow_not_found and response.status_code == HTTP_NOT_FOUND:
                return None
            if response.status_code >= HTTP_ERROR_STATUS:
                raise TodoistAPIError.from_status(response.status_code, response.text)
            return response

        response = run_with_retries(_run, cfg=cfg or self.retry_config)
        if response is None or not response.text:
            return None
        return response.json()

    def fetch_task_by_id(self, task_id: str) -> TodoistTask | None:
        """Fetch one active task; ``None`` when Todoist no longer knows it."""
        base = self.retry_config or RetryConfig()
        cfg = RetryConfig(
            attempts=min(base.attempts, TASK_FETCH_ATTEMPTS),
            base_sleep=base.base_sleep,
            max_sleep=base.max_sleep,
        )
        data = self._request(
            "GET", f"/rest/v2/tasks/{task_id}", allow_not_found=True, cfg=cfg
        )
        if not isinstance(data, dict):
            return None
        return TodoistTask.from_dict(data)

    def fetch_completed_tasks(
        self,
        since: str | datetime | None = None,
        project_repos: Mapping[str, str] | None = None,
    ) -> list[CompletedTask]:
        """Fetch recently completed tasks, enriched with their repository.

        When ``project_repos`` (Todoist project id -> ``owner/repo``) is given,
        tasks from unmapped projects are dropped.
        """
        params: dict[str, Any] = {
            "annotate_items": "true",
            "limit": str(COMPLETED_PAGE_LIMIT),
        }
        if since:
            params["since"] = _format_since(since)
        data = self._request("GET", "/sync/v9/completed/get_all", params=params)
        items = data.get("items") if isinstance(data, dict) else None
        tasks: list[CompletedTask] = []
        for item in items or []:
            if not isinstance(item, dict):
                continue
            if project_repos is not None and str(item.get("project_id")) not in project_repos:
                continue
            tasks.append(CompletedTask.from_api(item, project_repos))
        logger.debug("fetched %d completed tasks", len(tasks))
        return tasks


__all__ = ["TodoistAPIError", "TodoistRestClient"]
