"""Resolve a completed Todoist task to the GitHub issue it tracks.

Layers, cheapest first:

1. ``kv``            stored ``task:<id>`` mapping
2. ``description``   issue URL in the task description from the completed feed
3. ``content_parse`` ``[#N]`` content prefix + the repository of the task's project
4. ``rest_api``      re-fetch the task from Todoist and parse its description;
                     a hit is written back to the store for next time

Each layer returns ``Found``, ``NotFound`` or ``SoftError``. The first
``Found`` wins; a ``SoftError`` is logged and otherwise counts as ``NotFound``,
so a broken fallback never aborts resolution.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from .errors import classify_error, redact
from .kv_store import KeyValueStore, store_task_mapping, task_key
from .logging import StructuredLogger, get_logger
from .models import CompletedTask, ResolutionSource, ResolvedGitHubUrl
from .parsing import build_issue_url, extract_issue_number_from_content, parse_github_url
from .todoist_rest import TodoistRestClient

PREVIEW_CHARS = 100


@dataclass(frozen=True)
class Found:
    url: str


@dataclass(frozen=True)
class NotFound:
    reason: str = ""


@dataclass(frozen=True)
class SoftError:
    reason: str
    error: BaseException | None = None


LayerOutcome = Union[Found, NotFound, SoftError]
Layer = Callable[[CompletedTask, StructuredLogger], LayerOutcome]


class ResolutionCascade:
    def __init__(
        self,
        store: KeyValueStore,
        todoist: TodoistRestClient,
        logger: StructuredLogger | None = None,
        cache_write_retries: int = 2,
    ) -> None:
        self.store = store
        self.todoist = todoist
        self.logger = logger or get_logger()
        self.cache_write_retries = cache_write_retries
        self._layers: list[tuple[ResolutionSource, Layer]] = [
            (ResolutionSource.KV, self._from_kv),
            (ResolutionSource.DESCRIPTION, self._from_description),
            (ResolutionSource.CONTENT_PARSE, self._from_content),
            (ResolutionSource.REST_API, self._from_rest),
        ]

    def resolve(self, task: CompletedTask) -> ResolvedGitHubUrl | None:
        log = self.logger.child(task_id=task.id)
        for source, layer in self._layers:
            try:
                outcome = layer(task, log)
            except Exception as exc:
                outcome = SoftError(f"{source.value} layer raised: {exc}", exc)
            if isinstance(outcome, Found):
                log.debug(f"GitHub URL resolved via {source.value}", source=source.value)
                return ResolvedGitHubUrl(url=outcome.url, source=source)
            if isinstance(outcome, SoftError):
                extra: dict[str, object] = {"source": source.value}
                if outcome.error is not None:
                    info = classify_error(outcome.error)
                    extra.update(error_category=info.category, transient=info.transient)
                log.warning(redact(outcome.reason), **extra)

        content = task.content or ""
        log.warning(
            "Could not resolve GitHub URL from any source",
            content=content[:PREVIEW_CHARS],
            has_description=bool(task.description),
            description_preview=(task.description or "")[:PREVIEW_CHARS] or None,
            full_repo=task.full_repo,
            content_has_issue_prefix=extract_issue_number_from_content(content) is not None,
        )
        return None

    # ---- layers -------------------------------------------------------
    def _from_kv(self, task: CompletedTask, log: StructuredLogger) -> LayerOutcome:
        try:
            url = self.store.get(task_key(task.id))
        except Exception as exc:
            return SoftError(f"KV lookup failed: {exc}", exc)
        if url:
            return Found(url)
        return NotFound("no stored mapping")

    def _from_description(self, task: CompletedTask, log: StructuredLogger) -> LayerOutcome:
        parsed = parse_github_url(task.description)
        if parsed is None:
            return NotFound("no issue URL in description")
        return Found(parsed.url)

    def _from_content(self, task: CompletedTask, log: StructuredLogger) -> LayerOutcome:
        issue_number = extract_issue_number_from_content(task.content)
        if issue_number is None:
            return NotFound("content has no [#N] prefix")
        if not task.full_repo:
            return NotFound("project is not mapped to a repository")
        return Found(build_issue_url(task.full_repo, issue_number))

    def _from_rest(self, task: CompletedTask, log: StructuredLogger) -> LayerOutcome:
        try:
            fetched = self.todoist.fetch_task_by_id(task.id)
        except Exception as exc:
            return SoftError(f"REST API fetch failed: {exc}", exc)
        if fetched is None:
            return NotFound("task not found via REST API")
        parsed = parse_github_url(fetched.description)
        if parsed is None:
            return NotFound("no issue URL in fetched description")
        if not store_task_mapping(
            self.store, task.id, parsed.url, self.cache_write_retries, log
        ):
            log.warning("Failed to store KV mapping", url=parsed.url)
        return Found(parsed.url)


def resolve_github_url_for_completed_task(
    task: CompletedTask,
    *,
    store: KeyValueStore,
    todoist: TodoistRestClient,
    logger: StructuredLogger | None = None,
) -> ResolvedGitHubUrl | None:
    return ResolutionCascade(store, todoist, logger).resolve(task)


__all__ = [
    "Found",
    "LayerOutcome",
    "NotFound",
    "ResolutionCascade",
    "SoftError",
    "resolve_github_url_for_completed_task",
]
