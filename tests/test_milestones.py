from __future__ import annotations

from typing import Any

import pytest

from issuebridge.github_rest import GitHubAPIError
from issuebridge.milestones import (
    get_milestone_caches,
    get_milestone_number,
    get_milestone_title,
    sync_issue_milestone,
    update_github_issue_milestone,
)
from issuebridge.models import GitHubMilestone, MilestoneCaches, new_milestone_cache


class _FakeGitHub:
    """Stands in for GitHubRestClient; records every call."""

    def __init__(self, milestones: dict[str, list[GitHubMilestone]] | None = None):
        self.milestones = milestones or {}
        self.fetches: list[tuple[str, str, dict[str, Any]]] = []
        self.patches: list[tuple[str, str, int, int | None]] = []
        self.fail_fetch = False
        self.patch_error: Exception | None = None

    def list_milestones(self, owner: str, repo: str, **kw: Any) -> list[GitHubMilestone]:
        self.fetches.append((owner, repo, kw))
        if self.fail_fetch:
            raise GitHubAPIError.from_status(500, "unavailable")
        return list(self.milestones.get(f"{owner}/{repo}", []))

    def update_issue_milestone(
        self, owner: str, repo: str, issue_number: int, milestone_number: int | None
    ) -> None:
        if self.patch_error is not None:
            raise self.patch_error
        self.patches.append((owner, repo, issue_number, milestone_number))


V1_V2 = [GitHubMilestone(1, "v1"), GitHubMilestone(2, "v2", state="closed")]


def test_caches_fetched_once_per_repo_and_agree():
    gh = _FakeGitHub({"acme/widgets": V1_V2})
    cache = new_milestone_cache()

    first = get_milestone_caches(gh, "acme", "widgets", cache)  # type: ignore[arg-type]
    second = get_milestone_caches(gh, "acme", "widgets", cache)  # type: ignore[arg-type]

    assert len(gh.fetches) == 1
    assert gh.fetches[0][2] == {"state": "all", "per_page": 100}
    assert first is second
    assert cache["acme/widgets"] is first
    for milestone in V1_V2:
        assert first.number_to_title[first.title_to_number[milestone.title]] == milestone.title


def test_caches_are_keyed_per_repository():
    gh = _FakeGitHub({"acme/widgets": V1_V2, "acme/gadgets": [GitHubMilestone(9, "v1")]})
    cache = new_milestone_cache()

    assert get_milestone_number(gh, "acme", "widgets", "v1", cache) == 1  # type: ignore[arg-type]
    assert get_milestone_number(gh, "acme", "gadgets", "v1", cache) == 9  # type: ignore[arg-type]
    assert set(cache) == {"acme/widgets", "acme/gadgets"}
    assert len(gh.fetches) == 2


def test_without_cache_every_call_fetches():
    gh = _FakeGitHub({"acme/widgets": V1_V2})

    get_milestone_caches(gh, "acme", "widgets")  # type: ignore[arg-type]
    get_milestone_caches(gh, "acme", "widgets", None)  # type: ignore[arg-type]

    assert len(gh.fetches) == 2


def test_number_and_title_round_trip():
    gh = _FakeGitHub({"acme/widgets": V1_V2})
    cache = new_milestone_cache()

    assert get_milestone_number(gh, "acme", "widgets", "v2", cache) == 2  # type: ignore[arg-type]
    assert get_milestone_title(gh, "acme", "widgets", 1, cache) == "v1"  # type: ignore[arg-type]
    assert len(gh.fetches) == 1


def test_missing_milestone_is_none_not_error():
    gh = _FakeGitHub({"acme/widgets": V1_V2})

    assert get_milestone_number(gh, "acme", "widgets", "v9") is None  # type: ignore[arg-type]
    assert get_milestone_title(gh, "acme", "widgets", 99) is None  # type: ignore[arg-type]


def test_duplicate_titles_last_write_wins():
    caches = MilestoneCaches.from_milestones(
        [GitHubMilestone(1, "dup"), GitHubMilestone(3, "dup")]
    )
    assert caches.title_to_number["dup"] == 3
    assert caches.number_to_title[caches.title_to_number["dup"]] == "dup"


def test_fetch_failure_propagates_and_leaves_cache_empty():
    gh = _FakeGitHub()
    gh.fail_fetch = True
    cache = new_milestone_cache()

    with pytest.raises(GitHubAPIError):
        get_milestone_number(gh, "acme", "widgets", "v1", cache)  # type: ignore[arg-type]
    assert cache == {}


def test_full_page_is_flagged_truncated():
    page = [GitHubMilestone(n, f"m{n}") for n in range(1, 101)]
    gh = _FakeGitHub({"acme/big": page})

    caches = get_milestone_caches(gh, "acme", "big")  # type: ignore[arg-type]

    assert caches.truncated is True
    assert len(caches.title_to_number) == 100
    assert get_milestone_caches(_FakeGitHub({"acme/big": V1_V2}), "acme", "big").truncated is False  # type: ignore[arg-type]


def test_update_issue_milestone_sets_and_clears():
    gh = _FakeGitHub()

    update_github_issue_milestone(gh, "acme", "widgets", 42, 2)  # type: ignore[arg-type]
    update_github_issue_milestone(gh, "acme", "widgets", 42, None)  # type: ignore[arg-type]

    assert gh.patches == [("acme", "widgets", 42, 2), ("acme", "widgets", 42, None)]


def test_update_issue_milestone_failure_propagates():
    gh = _FakeGitHub()
    gh.patch_error = GitHubAPIError.from_status(422, "Validation Failed")

    with pytest.raises(GitHubAPIError, match="422"):
        update_github_issue_milestone(gh, "acme", "widgets", 42, 2)  # type: ignore[arg-type]


def test_sync_issue_milestone_outcomes():
    gh = _FakeGitHub({"acme/widgets": V1_V2})
    cache = new_milestone_cache()

    assert sync_issue_milestone(gh, "acme", "widgets", 42, "v1", "v1", cache) == "unchanged"  # type: ignore[arg-type]
    assert gh.fetches == []

    assert sync_issue_milestone(gh, "acme", "widgets", 42, "v2", "v1", cache) == "updated"  # type: ignore[arg-type]
    assert gh.patches[-1] == ("acme", "widgets", 42, 2)

    assert sync_issue_milestone(gh, "acme", "widgets", 42, None, "v2", cache) == "updated"  # type: ignore[arg-type]
    assert gh.patches[-1] == ("acme", "widgets", 42, None)

    assert sync_issue_milestone(gh, "acme", "widgets", 42, "Backlog", "v2", cache) == "missing"  # type: ignore[arg-type]
    assert len(gh.patches) == 2
    assert len(gh.fetches) == 1
