"""Environment-based credentials for the GitHub and Todoist clients.

Tokens come from environment variables, optionally seeded from a ``.env``
file. Values set explicitly in the YAML config take precedence and are handled
by the caller.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

GITHUB_TOKEN_ALTERNATIVES = ("GH_TOKEN", "GITHUB_ACCESS_TOKEN", "GH_ACCESS_TOKEN", "GITHUB_PAT")
TODOIST_TOKEN_ALTERNATIVES = ("TODOIST_TOKEN",)


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"
    todoist_token_var: str = "TODOIST_API_TOKEN"


class EnvironmentAuthManager:
    """Finds API tokens in environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False

        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        """Load the configured .env file, or the first conventional one found."""
        candidates = (
            [self.config.dotenv_path]
            if self.config.dotenv_path
            else ['.env', '.env.local']
        )
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # Never clobber variables the process already has.
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def _first_set(self, primary: str, alternatives: tuple[str, ...]) -> str | None:
        for var in (primary, *alternatives):
            token = os.getenv(var)
            if token:
                if var != primary:
                    self.logger.debug(f"Found token in {var}")
                return token
        return None

    def get_github_token(self) -> str | None:
        return self._first_set(self.config.github_token_var, GITHUB_TOKEN_ALTERNATIVES)

    def get_todoist_token(self) -> str | None:
        return self._first_set(self.config.todoist_token_var, TODOIST_TOKEN_ALTERNATIVES)

    def missing_credentials(self) -> list[str]:
        missing: list[str] = []
        if not self.get_github_token():
            missing.append(self.config.github_token_var)
        if not self.get_todoist_token():
            missing.append(self.config.todoist_token_var)
        return missing


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = [
    "EnvAuthConfig",
    "EnvironmentAuthManager",
    "create_env_auth_manager",
]
