from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResolutionSource(str, Enum):
    """Which cascade layer produced a resolved URL."""

    KV = "kv"
    DESCRIPTION = "description"
    CONTENT_PARSE = "content_parse"
    REST_API = "rest_api"


@dataclass(frozen=True)
class ResolvedGitHubUrl:
    url: str
    source: ResolutionSource


@dataclass(frozen=True)
class ParsedGitHubUrl:
    owner: str
    repo: str
    issue_number: int
    url: str

    @property
    def repo_key(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass
class CompletedTask:
    """A Todoist task as reported by the completed-tasks feed.

    ``full_repo`` (``owner/repo``) is only set when the task's project maps to
    a GitHub repository; without it a bare ``[#N]`` prefix cannot be turned
    into an issue URL.
    """

    id: str
    content: str = ""
    description: str = ""
    project_id: str | None = None
    completed_at: str | None = None
    github_org: str | None = None
    repo_name: str | None = None
    full_repo: str | None = None

    @classmethod
    def from_api(
        cls, item: Mapping[str, Any], project_repos: Mapping[str, str] | None = None
    ) -> CompletedTask:
        project_id = item.get("project_id")
        project_key = str(project_id) if project_id is not None else None
        description = ""
        for nested in ("item_object", "item"):
            payload = item.get(nested)
            if isinstance(payload, dict) and payload.get("description"):
                description = str(payload["description"])
                break
        full_repo = (project_repos or {}).get(project_key or "")
        github_org, repo_name = (None, None)
        if full_repo and "/" in full_repo:
            github_org, repo_name = full_repo.split("/", 1)
        return cls(
            id=str(item.get("task_id") or item.get("id") or ""),
            content=str(item.get("content") or ""),
            description=description,
            project_id=project_key,
            completed_at=item.get("completed_at"),
            github_org=github_org,
            repo_name=repo_name,
            full_repo=full_repo,
        )


@dataclass
class TodoistTask:
    id: str
    project_id: str | None
    content: str
    description: str = ""
    section_id: str | None = None
    is_completed: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> TodoistTask:
        section = raw.get("section_id")
        project = raw.get("project_id")
        return cls(
            id=str(raw.get("id", "")),
            project_id=str(project) if project is not None else None,
            content=str(raw.get("content") or ""),
            description=str(raw.get("description") or ""),
            section_id=str(section) if section else None,
            is_completed=bool(raw.get("is_completed") or raw.get("checked")),
        )


@dataclass(frozen=True)
class GitHubMilestone:
    number: int
    title: str
    state: str = "open"
    description: str | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> GitHubMilestone:
        return cls(
            number=int(raw["number"]),
            title=str(raw["title"]),
            state=str(raw.get("state") or "open"),
            description=raw.get("description"),
        )


@dataclass
class GitHubIssue:
    number: int
    title: str
    html_url: str
    state: str
    body: str | None = None
    milestone: GitHubMilestone | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> GitHubIssue:
        milestone_raw = raw.get("milestone")
        milestone = (
            GitHubMilestone.from_dict(milestone_raw)
            if isinstance(milestone_raw, dict)
            else None
        )
        return cls(
            number=int(raw["number"]),
            title=str(raw.get("title") or ""),
            html_url=str(raw.get("html_url") or ""),
            state=str(raw.get("state") or "open"),
            body=raw.get("body"),
            milestone=milestone,
        )


@dataclass(frozen=True)
class MilestoneCaches:
    """Title<->number maps for one repository, built from a single snapshot."""

    title_to_number: dict[str, int] = field(default_factory=dict)
    number_to_title: dict[int, str] = field(default_factory=dict)
    truncated: bool = False

    @classmethod
    def from_milestones(
        cls, milestones: Iterable[GitHubMilestone], *, truncated: bool = False
    ) -> MilestoneCaches:
        title_to_number: dict[str, int] = {}
        number_to_title: dict[int, str] = {}
        for milestone in milestones:
            title_to_number[milestone.title] = milestone.number
            number_to_title[milestone.number] = milestone.title
        return cls(title_to_number, number_to_title, truncated)


# Keyed by "owner/repo"; owned by the caller for the duration of one batch.
MilestoneCache = dict[str, MilestoneCaches]


def new_milestone_cache() -> MilestoneCache:
    return {}


__all__ = [
    "CompletedTask",
    "GitHubIssue",
    "GitHubMilestone",
    "MilestoneCache",
    "MilestoneCaches",
    "ParsedGitHubUrl",
    "ResolutionSource",
    "ResolvedGitHubUrl",
    "TodoistTask",
    "new_milestone_cache",
]
