from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from .errors import HTTPAPIError
from .models import GitHubIssue, GitHubMilestone
from .retry import RetryConfig, run_with_retries

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "issuebridge-rest/0.2.0"
HTTP_ERROR_STATUS = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
MILESTONE_PAGE_SIZE = 100
LOW_RATE_LIMIT_RATIO = 0.1

logger = logging.getLogger(__name__)


class GitHubAPIError(HTTPAPIError):
    """Raised when the GitHub REST API returns an error."""

    service = "GitHub"


@dataclass(frozen=True)
class RateLimit:
    limit: int
    remaining: int
    reset: int
    resource: str = "core"

    @property
    def reset_at(self) -> str:
        return datetime.fromtimestamp(self.reset, tz=timezone.utc).isoformat()

    @property
    def is_low(self) -> bool:
        return self.remaining < self.limit * LOW_RATE_LIMIT_RATIO

    @classmethod
    def from_headers(cls, headers: Any) -> RateLimit | None:
        limit = headers.get("x-ratelimit-limit")
        remaining = headers.get("x-ratelimit-remaining")
        reset = headers.get("x-ratelimit-reset")
        if not limit or remaining is None or not reset:
            return None
        try:
            return cls(
                limit=int(limit),
                remaining=int(remaining),
                reset=int(reset),
                resource=str(headers.get("x-ratelimit-resource") or "core"),
            )
        except (TypeError, ValueError):
            return None


def _retry_after(headers: Any) -> float | None:
    value = headers.get("retry-after")
    if not value:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds > 0 else None


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the issue and milestone endpoints.

    Not bound to a single repository: every call names ``owner`` and ``repo``
    so one client can serve a whole batch spanning many repositories.
    """

    token: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    retry_config: RetryConfig | None = None
    last_rate_limit: RateLimit | None = field(init=False, default=None)
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _track_rate_limit(self, response: requests.Response) -> RateLimit | None:
        rate_limit = RateLimit.from_headers(getattr(response, "headers", {}) or {})
        if rate_limit is None:
            return None
        self.last_rate_limit = rate_limit
        if rate_limit.is_low:
            logger.warning(
                "GitHub rate limit low: %d/%d remaining, resets at %s",
                rate_limit.remaining,
                rate_limit.limit,
                rate_limit.reset_at,
            )
        return rate_limit

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        allow_not_found: bool = False,
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
                json=json_body,
                headers=self._session.headers,
                timeout=30,
            )
            rate_limit = self._track_rate_limit(response)
            if allow_not_found and response.status_code == HTTP_NOT_FOUND:
                return None
            if response.status_code >= HTTP_ERROR_STATUS:
                headers = getattr(response, "headers", {}) or {}
                if (
                    response.status_code == HTTP_FORBIDDEN
                    and rate_limit is not None
                    and rate_limit.remaining == 0
                ):
                    wait = max(0.0, rate_limit.reset - time.time())
                    raise GitHubAPIError(
                        f"GitHub API rate limit exceeded: {rate_limit.remaining}/"
                        f"{rate_limit.limit} remaining, resets at {rate_limit.reset_at}",
                        status=response.status_code,
                        response_text=response.text,
                        retry_after=wait or None,
                    )
                raise GitHubAPIError.from_status(
                    response.status_code,
                    response.text,
                    retry_after=_retry_after(headers),
                )
            return response

        response = run_with_retries(_run, cfg=self.retry_config)
        if response is None:
            return None
        if response.text:
            try:
                return response.json()
            except ValueError:  # pragma: no cover
                return response.text
        return None

    # ---- Issue operations --------------------------------------------
    def get_issue(self, owner: str, repo: str, issue_number: int) -> GitHubIssue | None:
        data = self._request(
            "GET", f"/repos/{owner}/{repo}/issues/{issue_number}", allow_not_found=True
        )
        if not isinstance(data, dict):
            return None
        return GitHubIssue.from_dict(data)

    def update_issue_milestone(
        self, owner: str, repo: str, issue_number: int, milestone_number: int | None
    ) -> None:
        self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/{issue_number}",
            json_body={"milestone": milestone_number},
        )

    # ---- Milestone operations ----------------------------------------
    def list_milestones(
        self,
        owner: str,
        repo: str,
        *,
        state: str = "all",
        per_page: int = MILESTONE_PAGE_SIZE,
    ) -> list[GitHubMilestone]:
        """Fetch a single page of milestones (no pagination)."""
        data = self._request(
            "GET",
            f"/repos/{owner}/{repo}/milestones",
            params={"state": state, "per_page": per_page},
        )
        out: list[GitHubMilestone] = []
        if not isinstance(data, list):
            return out
        for entry in data:
            if not isinstance(entry, dict):
                continue
            try:
                out.append(GitHubMilestone.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                logger.debug("skipping malformed milestone entry in %s/%s: %r", owner, repo, entry)
        return out


__all__ = [
    "GitHubAPIError",
    "GitHubRestClient",
    "MILESTONE_PAGE_SIZE",
    "RateLimit",
]
