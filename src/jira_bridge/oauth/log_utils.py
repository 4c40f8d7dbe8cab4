"""Structured logging helpers for credential and resolution components.

This module restricts **which** contextual attributes are attached to log
records so that secrets never reach a handler by accident.  Helpers ONLY
inject the following *non-sensitive* fields:

- ``ticket_key``     – External issue key (``PROJ-123``)
- ``principal_id``   – Logical owner of the stored credential (``system``)
- ``action``         – Audit tag of the requested mutation
- ``context``        – Execution context of the resolver (``server``/``browser``)
- ``correlation_id`` – Request correlation id, first 8 chars kept

Usage
-----
>>> from jira_bridge.oauth.log_utils import get_resolution_logger
>>> log = get_resolution_logger(ticket_key="PROJ-1", context="server")
>>> log.info("Resolving write")
INFO jira-bridge.resolution ticket_key=PROJ-1 context=server ...
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping

from jira_bridge.utils.logging import correlation_id_var


class _ResolutionLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted resolution context into log records."""

    extra_keys = ("ticket_key", "principal_id", "action", "context", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if k == "correlation_id" and extra and extra.get("correlation_id"):
                extra_clean[k] = str(extra["correlation_id"])[:8]
            elif extra and k in extra and extra[k] is not None:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_resolution_logger(
    *,
    base_logger_name: str = "jira-bridge.resolution",
    ticket_key: str | None = None,
    principal_id: str | None = None,
    action: str | None = None,
    context: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with resolution context.

    When *correlation_id* is omitted the id bound to the current request by
    the correlation middleware (if any) is used.
    """
    logger = logging.getLogger(base_logger_name)
    return _ResolutionLoggerAdapter(
        logger,
        {
            "ticket_key": ticket_key,
            "principal_id": principal_id,
            "action": action,
            "context": context,
            "correlation_id": correlation_id or correlation_id_var.get(),
        },
    )
