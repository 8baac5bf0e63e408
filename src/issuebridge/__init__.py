"""issuebridge - resolve completed Todoist tasks to GitHub issues and keep
issue milestones in step.

High-level public API:

from issuebridge import build_runtime, load_config

runtime = build_runtime(load_config('issuebridge.config.yaml'))
cache = runtime.new_milestone_cache()
for task in runtime.todoist.fetch_completed_tasks(project_repos=runtime.config.project_repos):
    resolved = runtime.cascade.resolve(task)
    if resolved is not None:
        print(resolved.source.value, resolved.url)

Milestone lookups (``issuebridge.milestones``) take the per-batch cache so
each repository's milestones are fetched once.
"""

from __future__ import annotations

from .config import BridgeConfig, ConfigError, load_config
from .models import (
    CompletedTask,
    MilestoneCache,
    MilestoneCaches,
    ResolutionSource,
    ResolvedGitHubUrl,
    new_milestone_cache,
)
from .resolution import ResolutionCascade, resolve_github_url_for_completed_task
from .runtime import BridgeRuntime, build_runtime

__version__ = "0.2.0"

__all__ = [
    "BridgeConfig",
    "BridgeRuntime",
    "CompletedTask",
    "ConfigError",
    "MilestoneCache",
    "MilestoneCaches",
    "ResolutionCascade",
    "ResolutionSource",
    "ResolvedGitHubUrl",
    "build_runtime",
    "load_config",
    "new_milestone_cache",
    "resolve_github_url_for_completed_task",
    "__version__",
]
