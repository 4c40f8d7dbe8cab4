"""Clock abstraction for credential liveness checks.

Every expiry decision in :mod:`jira_bridge` goes through an injected ``Clock``
instead of calling ``time.time()`` directly, so tests can pin "now" to either
side of a credential's ``expires_at``.

Example
-------
>>> from jira_bridge.oauth.clock import default_clock, expires_at_from
>>> expires_at_from(3600, clock=lambda: 1000.0)
4600
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable protocol returning *seconds* since the UNIX epoch."""

    def __call__(self) -> float: ...


def default_clock() -> float:
    """Wall-clock implementation delegating to ``time.time()``."""
    return time.time()


def expires_at_from(
    expires_in: int | float | str | None,
    *,
    clock: Clock = default_clock,
    default: int = 3600,
) -> int:
    """Convert a provider ``expires_in`` (relative seconds) to an absolute instant.

    Atlassian returns ``expires_in`` as an integer, but some proxies stringify
    it; anything unparsable falls back to *default*.
    """
    try:
        seconds = int(expires_in) if expires_in is not None else default
    except (TypeError, ValueError):
        seconds = default
    return int(clock()) + seconds


def isoformat(ts: int | float) -> str:
    """Render a UNIX timestamp as an ISO-8601 UTC string (for status payloads)."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
