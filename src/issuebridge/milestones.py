"""Per-batch milestone cache and milestone updates.

A ``MilestoneCache`` (``dict`` keyed by ``owner/repo``) is created by the
caller at the start of a batch and passed into every lookup. Each repository
is fetched at most once per cache; the entry is trusted until the caller
discards the cache. There is no locking: sharing one cache between concurrent
workers is the caller's decision to make.
"""

from __future__ import annotations

import logging

from .github_rest import MILESTONE_PAGE_SIZE, GitHubRestClient
from .logging import StructuredLogger, get_logger
from .models import MilestoneCache, MilestoneCaches

logger = logging.getLogger(__name__)


def get_milestone_caches(
    client: GitHubRestClient,
    owner: str,
    repo: str,
    existing_cache: MilestoneCache | None = None,
) -> MilestoneCaches:
    """Return the title<->number maps for ``owner/repo``.

    Fetch errors propagate and leave ``existing_cache`` untouched.
    """
    repo_key = f"{owner}/{repo}"
    if existing_cache is not None and repo_key in existing_cache:
        return existing_cache[repo_key]

    milestones = client.list_milestones(
        owner, repo, state="all", per_page=MILESTONE_PAGE_SIZE
    )
    # TODO: follow the Link header once a repository outgrows one page.
    truncated = len(milestones) >= MILESTONE_PAGE_SIZE
    if truncated:
        logger.warning(
            "%s returned a full page of %d milestones; later milestones are not cached",
            repo_key,
            MILESTONE_PAGE_SIZE,
        )
    caches = MilestoneCaches.from_milestones(milestones, truncated=truncated)
    if existing_cache is not None:
        existing_cache[repo_key] = caches
    return caches


def get_milestone_number(
    client: GitHubRestClient,
    owner: str,
    repo: str,
    title: str,
    cache: MilestoneCache | None = None,
) -> int | None:
    caches = get_milestone_caches(client, owner, repo, cache)
    return caches.title_to_number.get(title)


def get_milestone_title(
    client: GitHubRestClient,
    owner: str,
    repo: str,
    number: int,
    cache: MilestoneCache | None = None,
) -> str | None:
    caches = get_milestone_caches(client, owner, repo, cache)
    return caches.number_to_title.get(number)


def update_github_issue_milestone(
    client: GitHubRestClient,
    owner: str,
    repo: str,
    issue_number: int,
    milestone_number: int | None,
) -> None:
    """Set (or with ``None`` clear) an issue's milestone.

    Raises ``GitHubAPIError`` when GitHub rejects the update.
    """
    client.update_issue_milestone(owner, repo, issue_number, milestone_number)


def sync_issue_milestone(
    client: GitHubRestClient,
    owner: str,
    repo: str,
    issue_number: int,
    section_name: str | None,
    current_milestone: str | None,
    cache: MilestoneCache | None = None,
    log: StructuredLogger | None = None,
) -> str:
    """Make the issue milestone follow the Todoist section of its task.

    Returns ``"unchanged"``, ``"updated"`` or ``"missing"`` (the section has
    no milestone of the same title; milestones are never created here).
    """
    log = (log or get_logger()).child(issue=f"{owner}/{repo}#{issue_number}")
    if section_name == current_milestone:
        return "unchanged"

    milestone_number: int | None = None
    if section_name is not None:
        milestone_number = get_milestone_number(client, owner, repo, section_name, cache)
        if milestone_number is None:
            log.warning(
                f'Cannot find milestone "{section_name}" - skipping milestone update',
                milestone=section_name,
                repo=f"{owner}/{repo}",
            )
            return "missing"

    log.info(
        f'Updating milestone: "{current_milestone}" -> "{section_name}"',
        from_milestone=current_milestone,
        to_milestone=section_name,
    )
    update_github_issue_milestone(client, owner, repo, issue_number, milestone_number)
    return "updated"


__all__ = [
    "get_milestone_caches",
    "get_milestone_number",
    "get_milestone_title",
    "sync_issue_milestone",
    "update_github_issue_milestone",
]
