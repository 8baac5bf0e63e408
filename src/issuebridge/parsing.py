"""Pure parsers for the conventions linking Todoist tasks to GitHub issues.

Grammar:
  issue URL       github.com/<owner>/<repo>/issues/<number>  (anywhere in text)
  content prefix  ^\\[#<number>\\]                             (start of content)

Tasks created from GitHub issues carry the issue URL in their description and
the ``[#N]`` prefix in their content. Older tasks may use ``[repo#N]`` or
``[owner/repo#N]`` prefixes; ``strip_task_prefix`` removes those as well, but
only the bare ``[#N]`` form is used to reconstruct URLs.
"""

from __future__ import annotations

import re

from .models import ParsedGitHubUrl

GITHUB_WEB_BASE = "https://github.com"

_ISSUE_URL_RE = re.compile(r"github\.com/([^/\s]+)/([^/\s]+)/issues/(\d+)")
_CONTENT_PREFIX_RE = re.compile(r"^\[#(\d+)\]")
_ANY_PREFIX_RE = re.compile(r"^\[[\w./-]*#\d+\]\s*")


def build_issue_url(full_repo: str, issue_number: int | str) -> str:
    return f"{GITHUB_WEB_BASE}/{full_repo}/issues/{issue_number}"


def parse_github_url(text: str | None) -> ParsedGitHubUrl | None:
    """Find the first GitHub issue URL in ``text``.

    Returns None for empty input, non-GitHub hosts, pull request links and
    repository URLs without an issue path.
    """
    if not text:
        return None
    match = _ISSUE_URL_RE.search(text)
    if not match:
        return None
    owner, repo, number = match.group(1), match.group(2), int(match.group(3))
    return ParsedGitHubUrl(
        owner=owner,
        repo=repo,
        issue_number=number,
        url=build_issue_url(f"{owner}/{repo}", number),
    )


def extract_issue_number_from_content(content: str | None) -> int | None:
    if not content:
        return None
    match = _CONTENT_PREFIX_RE.match(content)
    if not match:
        return None
    return int(match.group(1))


def strip_task_prefix(content: str | None) -> str:
    if not content:
        return ""
    return _ANY_PREFIX_RE.sub("", content, count=1)


def format_task_content(issue_number: int, title: str) -> str:
    return f"[#{issue_number}] {title}"


__all__ = [
    "GITHUB_WEB_BASE",
    "build_issue_url",
    "extract_issue_number_from_content",
    "format_task_content",
    "parse_github_url",
    "strip_task_prefix",
]
