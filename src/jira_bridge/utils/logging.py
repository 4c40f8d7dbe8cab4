"""Logging helpers shared across the bridge.

* :func:`mask_sensitive` truncates identifiers before they are logged.
* :data:`correlation_id_var` carries the per-request correlation id set by
  :class:`jira_bridge.servers.correlation.CorrelationIdMiddleware`.
* :func:`setup_logging` installs a single stderr handler whose records always
  carry a ``correlation_id`` attribute.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from typing import TextIO

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* with everything after the first *keep_chars* masked."""
    if not value:
        return ""
    if len(value) <= keep_chars:
        return "*" * len(value)
    return value[:keep_chars] + "*" * (len(value) - keep_chars)


class CorrelationIdFilter(logging.Filter):
    """Ensure every record has a ``correlation_id`` attribute."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get() or "-"
        return True


def setup_logging(level: int | str | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Configure the ``jira-bridge`` logger hierarchy.

    Level resolution: explicit argument > ``BRIDGE_LOG_LEVEL`` > WARNING.
    Calling this twice replaces the handler instead of stacking a second one.
    """
    if level is None:
        level = os.getenv("BRIDGE_LOG_LEVEL", "WARNING").upper()
    logger = logging.getLogger("jira-bridge")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_jira_bridge", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    handler._jira_bridge = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger
