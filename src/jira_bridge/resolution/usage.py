"""Best-effort credential usage bookkeeping.

Each successful remote call through the OAuth path bumps ``usage_count`` and
``last_used_at`` for the principal.  The update runs as a detached task on a
small thread pool: the resolution path never waits for it and failures are
logged, never propagated.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from jira_bridge.oauth.clock import Clock, default_clock, isoformat
from jira_bridge.oauth.store import atomic_write_json, default_storage_dir, file_lock

_LOG = logging.getLogger("jira-bridge.resolution.usage")


@runtime_checkable
class UsageLedger(Protocol):
    def increment(self, principal_id: str, *, used_at: float) -> None: ...


class JsonUsageLedger:
    """``{principal_id: {"usage_count": n, "last_used_at": iso}}`` on disk."""

    def __init__(self, path: str | os.PathLike | None = None) -> None:
        self.path = Path(path or default_storage_dir() / "usage.json").expanduser()
        self._lock_path = self.path.with_name(self.path.name + ".lock")

    def read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with self.path.open(encoding="utf-8") as fh:
            return json.load(fh)

    def increment(self, principal_id: str, *, used_at: float) -> None:
        with file_lock(self._lock_path):
            data = self.read()
            entry = data.get(principal_id) or {}
            data[principal_id] = {
                "usage_count": int(entry.get("usage_count") or 0) + 1,
                "last_used_at": isoformat(used_at),
            }
            atomic_write_json(self.path, data)


class UsageTracker:
    """Fire-and-forget front end for a :class:`UsageLedger`."""

    def __init__(
        self,
        ledger: UsageLedger | None,
        *,
        executor: ThreadPoolExecutor | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.ledger = ledger
        self.clock = clock
        self._executor: ThreadPoolExecutor | None = executor
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        # a closed tracker reopens on the next record (new server lifespan)
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="jira-bridge-usage"
                )
            return self._executor

    def record(self, principal_id: str) -> None:
        """Schedule a usage bump and return immediately."""
        if self.ledger is None:
            return
        used_at = self.clock()
        try:
            future = self._get_executor().submit(
                self.ledger.increment, principal_id, used_at=used_at
            )
        except RuntimeError as exc:  # shut down while submitting
            _LOG.warning("Usage tracking skipped for %s: %s", principal_id, exc)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._done)

    def _done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        exc = future.exception()
        if exc is not None:
            _LOG.warning("Usage tracking failed (ignored): %s", exc)

    def close(self, wait: bool = True) -> None:
        """Drain scheduled bookkeeping (tests, shutdown)."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
