"""Centralized retry / backoff helpers.

Provides a single small function ``run_with_retries`` that encapsulates
exponential backoff with jitter and classification of transient HTTP failure
modes shared by the GitHub and Todoist clients.

Retried:
  - HTTP 429 (honouring ``Retry-After`` when the server sent one)
  - HTTP 5xx
  - ``requests`` connection errors and timeouts
  - any error whose text mentions a rate limit / abuse detection
Other 4xx responses propagate immediately.

Environment overrides:
  ISSUEBRIDGE_RETRY_ATTEMPTS (default 4)
  ISSUEBRIDGE_RETRY_BASE (seconds base, default 1.0)
  ISSUEBRIDGE_RETRY_MAX_SLEEP (hard cap applied on top of ``max_sleep``)
"""

from __future__ import annotations

import logging
import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import requests

from .errors import HTTP_CLIENT_ERROR, HTTP_SERVER_ERROR, HTTPAPIError

T = TypeVar("T")

TRANSIENT_TOKENS = (
    "rate limit",
    "abuse detection",
    "secondary rate",
)
HTTP_TOO_MANY_REQUESTS = 429

_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()

logger = logging.getLogger(__name__)


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from error text.

    Supports patterns like:
      Retry-After: 12
      retry after 12
      wait 30 seconds
    Returns None if no valid positive value found.
    """
    if not text:
        return None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


@dataclass
class RetryConfig:
    attempts: int = int(os.environ.get("ISSUEBRIDGE_RETRY_ATTEMPTS", "4"))
    base_sleep: float = float(os.environ.get("ISSUEBRIDGE_RETRY_BASE", "1.0"))
    max_sleep: float = 10.0


def is_transient(output: str) -> bool:
    out_lower = output.lower()
    return any(tok in out_lower for tok in TRANSIENT_TOKENS)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if is_transient(str(exc)):
        return True
    if isinstance(exc, HTTPAPIError) and exc.status is not None:
        if exc.status == HTTP_TOO_MANY_REQUESTS or exc.status >= HTTP_SERVER_ERROR:
            return True
        if exc.status >= HTTP_CLIENT_ERROR:
            return False
    return False


def _compute_sleep(attempt: int, cfg: RetryConfig, exc: BaseException) -> float:
    explicit: float | None = None
    if isinstance(exc, HTTPAPIError) and exc.retry_after:
        explicit = exc.retry_after
    if explicit is None:
        explicit = _extract_explicit_backoff(str(exc))
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    sleep_for = min(sleep_for, cfg.max_sleep)
    max_cap_env = os.environ.get("ISSUEBRIDGE_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:  # pragma: no cover
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(fn: Callable[[], T], *, cfg: RetryConfig | None = None) -> T:
    """Call ``fn`` until it succeeds, a non-retryable error occurs or attempts run out.

    The last error is re-raised unchanged once the budget is exhausted.
    """
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if attempt >= attempts or not is_retryable(exc):
                raise
            sleep_for = _compute_sleep(attempt, cfg, exc)
            logger.info(
                "transient error, attempt %d/%d, sleeping %.2fs: %s",
                attempt,
                attempts,
                sleep_for,
                exc,
            )
            time.sleep(sleep_for)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "is_retryable", "is_transient", "run_with_retries"]
