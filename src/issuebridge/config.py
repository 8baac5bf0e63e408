from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .github_rest import DEFAULT_API_URL as GITHUB_API_URL
from .todoist_rest import DEFAULT_API_URL as TODOIST_API_URL

DEFAULT_STORE_PATH = ".issuebridge/kv.json"


class ConfigError(RuntimeError):
    pass


@dataclass
class BridgeConfig:
    version: int
    source_file: Path
    github_api_url: str = GITHUB_API_URL
    github_token: str | None = None
    todoist_api_url: str = TODOIST_API_URL
    todoist_token: str | None = None
    store_path: Path = Path(DEFAULT_STORE_PATH)
    # Todoist project id -> "owner/repo"
    project_repos: dict[str, str] = field(default_factory=dict)
    # Retry configuration
    retry_attempts: int = 4
    retry_base_sleep: float = 1.0
    retry_max_sleep: float = 10.0
    cache_write_retries: int = 2
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        resolved = os.getenv(value[1:])
        return resolved if resolved else None
    return value


def _project_repos(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    out: dict[str, str] = {}
    for project_id, repo in raw.items():
        if not isinstance(repo, str) or repo.count('/') != 1:
            raise ConfigError(f"projects.{project_id}: expected 'owner/repo', got {repo!r}")
        out[str(project_id)] = repo
    return out


def load_config(path: str | Path) -> BridgeConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw = cast(dict[str, Any], yaml.safe_load(p.read_text()) or {})
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    gh = cast(dict[str, Any], raw.get('github', {}) or {})
    todoist = cast(dict[str, Any], raw.get('todoist', {}) or {})
    store = cast(dict[str, Any], raw.get('store', {}) or {})
    retry = cast(dict[str, Any], raw.get('retry', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})
    env_auth = cast(dict[str, Any], raw.get('environment', {}) or {})

    store_path = Path(store.get('path', DEFAULT_STORE_PATH))
    if not store_path.is_absolute():
        store_path = p.parent / store_path

    return BridgeConfig(
        version=int(raw.get('version', 1)),
        source_file=p,
        github_api_url=gh.get('api_url', GITHUB_API_URL),
        github_token=_resolve_env_var(gh.get('token')),
        todoist_api_url=todoist.get('api_url', TODOIST_API_URL),
        todoist_token=_resolve_env_var(todoist.get('token')),
        store_path=store_path,
        project_repos=_project_repos(raw.get('projects')),
        retry_attempts=int(retry.get('attempts', 4)),
        retry_base_sleep=float(retry.get('base_sleep', 1.0)),
        retry_max_sleep=float(retry.get('max_sleep', 10.0)),
        cache_write_retries=int(store.get('write_retries', 2)),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=logging_config.get('level', 'INFO'),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=env_auth.get('dotenv_path'),
    )


__all__ = ["BridgeConfig", "ConfigError", "load_config"]
