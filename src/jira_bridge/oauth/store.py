"""On-disk and in-memory storage for OAuth credentials.

This module exposes a *narrow* persistence interface (:class:`TokenStore`)
and two implementations:

* :class:`DiskTokenStore` – one JSON file per principal holding
  ``access_token, refresh_token, expires_at`` plus metadata.
* :class:`MemoryTokenStore` – process-local dict, used by tests and by
  browser-side tooling that never persists credentials.

Goals:

* **Atomicity** – writes use *temp-file + os.replace*, so a reader sees
  either the previous credential or the complete new one.
* **No refresh lock** – two requests refreshing the same credential may both
  write; the last writer wins and both tokens are valid.
* **Filename safety** – principal ids are slugified before hitting the
  filesystem.

Environment variables
---------------------
BRIDGE_STORAGE_DIR
    Base directory for persisted data.  Defaults to ``~/.jira-bridge``.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from contextlib import contextmanager
from hashlib import sha256
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from jira_bridge.oauth.models import OAuthCredential

_LOG = logging.getLogger("jira-bridge.oauth.store")

# --------------------------------------------------------------------------- #
# helpers                                                                     #
# --------------------------------------------------------------------------- #


def _slug(text: str, max_len: int = 64) -> str:
    """Filesystem-safe slug; a short hash keeps distinct ids distinct."""
    raw = (text or "").strip()
    slug = re.sub(r"[^a-z0-9._-]+", "-", raw.lower())
    slug = re.sub(r"-{2,}", "-", slug).strip("-.")[:max_len] or "unknown"
    if slug != raw:
        slug = f"{slug}-{sha256(raw.encode()).hexdigest()[:8]}"
    return slug


def atomic_write_json(path: Path, data: Any) -> None:
    """Serialise *data* next to *path* and atomically move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, separators=(",", ":"), sort_keys=True)
    os.replace(tmp, path)  # atomic on POSIX


def _lock_age(lock_path: Path) -> float | None:
    try:
        return time.time() - lock_path.stat().st_mtime
    except FileNotFoundError:
        return None


@contextmanager
def file_lock(
    lock_path: Path,
    retries: int = 25,
    delay: float = 0.2,
    stale_after: float = 30.0,
):
    """Advisory file lock using ``os.O_EXCL`` lock-file creation.

    A lock file older than *stale_after* seconds was left by a crashed holder
    and is removed before the next attempt.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    attempt = 0
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_RDWR)
            os.close(fd)
            break
        except FileExistsError:
            age = _lock_age(lock_path)
            if age is None:
                continue
            if age > stale_after:
                _LOG.warning("Removing stale lock %s (%.0fs old)", lock_path, age)
                lock_path.unlink(missing_ok=True)
                continue
            if attempt >= retries:
                raise TimeoutError(f"Could not acquire lock {lock_path}") from None
            attempt += 1
            time.sleep(delay)
    try:
        yield
    finally:
        lock_path.unlink(missing_ok=True)


def default_storage_dir() -> Path:
    return Path(os.getenv("BRIDGE_STORAGE_DIR") or Path.home() / ".jira-bridge").expanduser()


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class TokenStore(Protocol):
    """Minimal persistence contract for one credential per principal."""

    def get(self, principal_id: str) -> OAuthCredential | None: ...

    def put(self, principal_id: str, credential: OAuthCredential) -> None: ...

    def delete(self, principal_id: str) -> None: ...


class DiskTokenStore:
    """JSON-file implementation of :class:`TokenStore`."""

    def __init__(self, base_dir: str | os.PathLike | None = None) -> None:
        self.base_dir = Path(base_dir or default_storage_dir()).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, principal_id: str) -> Path:
        return self.base_dir / "tokens" / f"{_slug(principal_id)}.json"

    def get(self, principal_id: str) -> OAuthCredential | None:
        path = self.path_for(principal_id)
        if not path.exists():
            return None
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        return OAuthCredential.from_dict(data)

    def put(self, principal_id: str, credential: OAuthCredential) -> None:
        if credential.principal_id != principal_id:
            raise ValueError("credential principal_id does not match storage key")
        atomic_write_json(self.path_for(principal_id), credential.to_dict())
        _LOG.debug(
            "Stored credential for principal=%s (expires_at=%s)",
            principal_id,
            credential.expires_at,
        )

    def delete(self, principal_id: str) -> None:
        self.path_for(principal_id).unlink(missing_ok=True)


class MemoryTokenStore:
    """Thread-safe in-process implementation of :class:`TokenStore`."""

    def __init__(self, initial: dict[str, OAuthCredential] | None = None) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, OAuthCredential] = dict(initial or {})

    def get(self, principal_id: str) -> OAuthCredential | None:
        with self._lock:
            return self._items.get(principal_id)

    def put(self, principal_id: str, credential: OAuthCredential) -> None:
        if credential.principal_id != principal_id:
            raise ValueError("credential principal_id does not match storage key")
        with self._lock:
            self._items[principal_id] = credential

    def delete(self, principal_id: str) -> None:
        with self._lock:
            self._items.pop(principal_id, None)
