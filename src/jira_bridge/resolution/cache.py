"""Read-through snapshot cache of previously observed tickets.

The cache is a *snapshot*: consulted only for reads, populated whenever a
live fetch succeeds, never invalidated proactively.  Stale reads are an
accepted tradeoff.

The file format is one JSON object keyed by ticket key, each value the
denormalised projection produced by :meth:`TicketSnapshot.to_dict`.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, runtime_checkable

from jira_bridge.oauth.clock import Clock, default_clock
from jira_bridge.oauth.store import atomic_write_json, default_storage_dir, file_lock

_LOG = logging.getLogger("jira-bridge.resolution.cache")

DEFAULT_CACHE_FILENAME = "jira-story-cache.json"


def _name_of(value: Any) -> str | None:
    if isinstance(value, Mapping):
        name = value.get("name") or value.get("displayName") or value.get("value")
        return str(name) if name is not None else None
    return str(value) if value is not None else None


@dataclass(frozen=True, slots=True)
class TicketSnapshot:
    """Denormalised projection of one Jira issue."""

    ticket_key: str
    summary: str = ""
    status: str | None = None
    priority: str | None = None
    components: tuple[str, ...] = field(default_factory=tuple)
    labels: tuple[str, ...] = field(default_factory=tuple)
    assignee: str | None = None
    fetched_at: int = 0

    @classmethod
    def from_issue(
        cls, issue: Mapping[str, Any], *, clock: Clock = default_clock
    ) -> "TicketSnapshot":
        """Project a REST v3 issue payload (``{"key": ..., "fields": {...}}``)."""
        fields = issue.get("fields") or {}
        components = tuple(
            name for name in (_name_of(c) for c in fields.get("components") or ()) if name
        )
        return cls(
            ticket_key=str(issue["key"]),
            summary=str(fields.get("summary") or ""),
            status=_name_of(fields.get("status")),
            priority=_name_of(fields.get("priority")),
            components=components,
            labels=tuple(str(label) for label in fields.get("labels") or ()),
            assignee=_name_of(fields.get("assignee")),
            fetched_at=int(clock()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_key": self.ticket_key,
            "summary": self.summary,
            "status": self.status,
            "priority": self.priority,
            "components": list(self.components),
            "labels": list(self.labels),
            "assignee": self.assignee,
            "fetched_at": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, ticket_key: str, data: Mapping[str, Any]) -> "TicketSnapshot":
        return cls(
            ticket_key=str(data.get("ticket_key") or ticket_key),
            summary=str(data.get("summary") or ""),
            status=data.get("status"),
            priority=data.get("priority"),
            components=tuple(data.get("components") or ()),
            labels=tuple(data.get("labels") or ()),
            assignee=data.get("assignee"),
            fetched_at=int(data.get("fetched_at") or 0),
        )


@runtime_checkable
class ResultCache(Protocol):
    """Plain key-value contract for ticket snapshots."""

    def get(self, ticket_key: str) -> TicketSnapshot | None: ...

    def put(self, ticket_key: str, snapshot: TicketSnapshot) -> None: ...


class JsonFileResultCache:
    """Single JSON file keyed by ticket key.

    Reads go straight to disk so snapshots written by another process are
    visible.  Writes are read-modify-write under an advisory lock and land
    atomically.
    """

    def __init__(self, path: str | os.PathLike | None = None) -> None:
        self.path = Path(path or default_storage_dir() / DEFAULT_CACHE_FILENAME).expanduser()
        self._lock_path = self.path.with_name(self.path.name + ".lock")

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            _LOG.warning("Cache file %s unreadable, treating as empty: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            _LOG.warning("Cache file %s is not a JSON object, treating as empty", self.path)
            return {}
        return data

    def get(self, ticket_key: str) -> TicketSnapshot | None:
        entry = self._load().get(ticket_key)
        if not isinstance(entry, Mapping):
            return None
        _LOG.debug("Cache hit for %s", ticket_key)
        return TicketSnapshot.from_dict(ticket_key, entry)

    def put(self, ticket_key: str, snapshot: TicketSnapshot) -> None:
        with file_lock(self._lock_path):
            data = self._load()
            data[ticket_key] = snapshot.to_dict()
            atomic_write_json(self.path, data)

    def keys(self) -> list[str]:
        return sorted(self._load())


class MemoryResultCache:
    """In-process :class:`ResultCache` used by tests and short-lived tools."""

    def __init__(self, initial: Mapping[str, TicketSnapshot] | None = None) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, TicketSnapshot] = dict(initial or {})

    def get(self, ticket_key: str) -> TicketSnapshot | None:
        with self._lock:
            return self._items.get(ticket_key)

    def put(self, ticket_key: str, snapshot: TicketSnapshot) -> None:
        with self._lock:
            self._items[ticket_key] = snapshot
