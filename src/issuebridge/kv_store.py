"""Key-value stores for task -> GitHub issue URL mappings.

Keys follow ``task:<todoist task id>``; values are issue URLs. Entries are
written once and never expire.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .logging import StructuredLogger

TASK_KEY_PREFIX = "task:"
STORE_VERSION = 1

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...


def task_key(task_id: str) -> str:
    return f"{TASK_KEY_PREFIX}{task_id}"


def compute_signature(entries: dict[str, str]) -> str:
    canonical = json.dumps(entries, sort_keys=True, separators=(",", ":")).encode(
        "utf-8"
    )
    return hashlib.sha256(canonical).hexdigest()


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


class JsonFileKeyValueStore:
    """Store persisted as a signed JSON document.

    Every ``put`` rewrites the file atomically (temp file + replace). A file
    whose signature does not match its entries is ignored on load.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._entries = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read key-value store %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict) or not isinstance(raw.get("entries"), dict):
            return {}
        entries = {str(k): str(v) for k, v in raw["entries"].items() if v is not None}
        signature = str(raw.get("signature") or "")
        if signature and signature != compute_signature(entries):
            logger.warning("Key-value store signature mismatch at %s; ignoring entries", self.path)
            return {}
        return entries

    def _persist(self, entries: dict[str, str]) -> None:
        payload = {
            "version": STORE_VERSION,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "entries": entries,
            "signature": compute_signature(entries),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def put(self, key: str, value: str) -> None:
        entries = {**self._entries, key: value}
        # Memory only changes once the file write succeeded.
        self._persist(entries)
        self._entries = entries


def store_task_mapping(
    store: KeyValueStore,
    task_id: str,
    issue_url: str,
    max_retries: int = 2,
    log: StructuredLogger | None = None,
) -> bool:
    """Write ``task:<id> -> issue_url`` and read it back.

    Retries up to ``max_retries`` times on errors or a read-back mismatch.
    Returns False instead of raising when every attempt failed.
    """
    key = task_key(task_id)
    for attempt in range(max_retries + 1):
        try:
            store.put(key, issue_url)
            if store.get(key) == issue_url:
                if attempt > 0 and log is not None:
                    log.debug("KV mapping stored on retry", task_id=task_id, attempt=attempt + 1)
                return True
            if log is not None:
                log.warning("KV verification mismatch", task_id=task_id, attempt=attempt + 1)
        except Exception as exc:
            if log is not None:
                log.warning(f"KV store attempt failed: {exc}", task_id=task_id, attempt=attempt + 1)
        if attempt < max_retries:
            time.sleep(0.1 * (attempt + 1))
    if log is not None:
        log.error(f"KV storage failed after {max_retries + 1} attempts", task_id=task_id)
    return False


__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "compute_signature",
    "store_task_mapping",
    "task_key",
]
