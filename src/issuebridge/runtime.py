"""Wire a ``BridgeConfig`` into ready-to-use collaborators."""

from __future__ import annotations

from dataclasses import dataclass

import requests

from .config import BridgeConfig, ConfigError
from .env_auth import EnvAuthConfig, create_env_auth_manager
from .github_rest import GitHubRestClient
from .kv_store import JsonFileKeyValueStore, KeyValueStore
from .logging import StructuredLogger, configure_logging
from .models import MilestoneCache, new_milestone_cache
from .resolution import ResolutionCascade
from .retry import RetryConfig
from .todoist_rest import TodoistRestClient


@dataclass
class BridgeRuntime:
    config: BridgeConfig
    logger: StructuredLogger
    github: GitHubRestClient
    todoist: TodoistRestClient
    store: KeyValueStore
    cascade: ResolutionCascade

    def new_milestone_cache(self) -> MilestoneCache:
        """Start a batch; pass the result to every milestone lookup in it."""
        return new_milestone_cache()


def build_runtime(
    cfg: BridgeConfig,
    *,
    github_session: requests.Session | None = None,
    todoist_session: requests.Session | None = None,
    store: KeyValueStore | None = None,
) -> BridgeRuntime:
    logger = configure_logging(
        json_logging=cfg.logging_json_enabled, level=cfg.logging_level
    )
    auth = create_env_auth_manager(
        EnvAuthConfig(
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
        )
    )
    github_token = cfg.github_token or auth.get_github_token()
    todoist_token = cfg.todoist_token or auth.get_todoist_token()
    if not github_token or not todoist_token:
        missing = [
            name
            for name, value in (("GitHub", github_token), ("Todoist", todoist_token))
            if not value
        ]
        raise ConfigError(f"Missing API token(s): {', '.join(missing)}")

    retry_cfg = RetryConfig(
        attempts=cfg.retry_attempts,
        base_sleep=cfg.retry_base_sleep,
        max_sleep=cfg.retry_max_sleep,
    )
    github = GitHubRestClient(
        token=github_token,
        base_url=cfg.github_api_url,
        session=github_session,
        retry_config=retry_cfg,
    )
    todoist = TodoistRestClient(
        token=todoist_token,
        base_url=cfg.todoist_api_url,
        session=todoist_session,
        retry_config=retry_cfg,
    )
    kv = store if store is not None else JsonFileKeyValueStore(cfg.store_path)
    cascade = ResolutionCascade(
        kv, todoist, logger=logger, cache_write_retries=cfg.cache_write_retries
    )
    logger.log_operation(
        "runtime_ready",
        github_api_url=cfg.github_api_url,
        mapped_projects=len(cfg.project_repos),
    )
    return BridgeRuntime(
        config=cfg,
        logger=logger,
        github=github,
        todoist=todoist,
        store=kv,
        cascade=cascade,
    )


__all__ = ["BridgeRuntime", "build_runtime"]
