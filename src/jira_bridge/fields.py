"""Field identifiers shared by the OAuth manager, the cache and the resolvers.

Jira field ids are opaque provider strings.  The only one the bridge knows by
purpose is the short-summary ("TL;DR") custom field, whose id differs per
site and is therefore overridable through ``JIRA_TLDR_FIELD_ID``.
"""

from __future__ import annotations

import os
from typing import Any, Final

SNAPSHOT_FIELDS: Final[tuple[str, ...]] = (
    "summary",
    "description",
    "status",
    "priority",
    "components",
    "labels",
    "assignee",
)

DEFAULT_SUMMARY_FIELD_ID: Final[str] = "customfield_10087"
SUMMARY_FIELD_ENV: Final[str] = "JIRA_TLDR_FIELD_ID"

SUMMARY_ACTION: Final[str] = "updateTLDR"
DEFAULT_ACTION: Final[str] = "update"


def snapshot_fields_param() -> str:
    """Comma-separated ``fields`` query value for fetch and search calls."""
    return ",".join(SNAPSHOT_FIELDS)


def summary_field_id() -> str:
    return os.getenv(SUMMARY_FIELD_ENV) or DEFAULT_SUMMARY_FIELD_ID


def summary_update(text: str, *, field_id: str | None = None) -> dict[str, Any]:
    """Field map writing *text* into the short-summary field."""
    return {field_id or summary_field_id(): text}
