"""Jira tools exposed over MCP.

Every tool returns the ``to_payload()`` shape of a resolution outcome, so a
write that cannot complete here comes back as ``{"jiraUpdateRequired": ...}``
for the browser context to finish.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastmcp import FastMCP
from pydantic import Field
from starlette.concurrency import run_in_threadpool

from jira_bridge.fields import DEFAULT_ACTION
from jira_bridge.resolution.outcomes import Failure, Success
from jira_bridge.servers.context import get_app_context

logger = logging.getLogger("jira-bridge.servers.jira")

jira_mcp = FastMCP(
    name="Jira Update Bridge",
    instructions="Read and update Jira issues through the server-side OAuth credential.",
)

_READ_ONLY_REASON = "server is in read-only mode"


def _read_only_payload(issue_key: str) -> dict[str, Any]:
    return Failure(
        reason=_READ_ONLY_REASON, ticket_key=issue_key, error_kind="read_only"
    ).to_payload()


def _parse_fields(fields: dict[str, Any] | str) -> dict[str, Any]:
    if isinstance(fields, str):
        parsed = json.loads(fields) if fields.strip() else {}
        if not isinstance(parsed, dict):
            raise ValueError("fields must be a JSON object")
        return parsed
    return dict(fields)


@jira_mcp.tool(tags={"jira", "read"})
async def get_issue(
    issue_key: Annotated[str, Field(description="Jira issue key (e.g. 'PROJ-123')")],
) -> dict[str, Any]:
    """Get a Jira issue, served from the local snapshot cache when possible."""
    ctx = get_app_context()
    outcome = await run_in_threadpool(ctx.resolver.read, issue_key)
    return outcome.to_payload()


@jira_mcp.tool(tags={"jira", "read"})
async def search_issues(
    jql: Annotated[str, Field(description="JQL query string")],
    limit: Annotated[
        int, Field(description="Maximum number of results (1-100)", ge=1, le=100)
    ] = 50,
) -> dict[str, Any]:
    """Search Jira issues with JQL through the OAuth credential."""
    ctx = get_app_context()
    result = await run_in_threadpool(lambda: ctx.oauth.search(jql, max_results=limit))
    if isinstance(result, (Success, Failure)):
        return result.to_payload()
    return Failure(reason=result.reason, error_kind=result.error.kind).to_payload()


@jira_mcp.tool(tags={"jira", "write"})
async def update_issue(
    issue_key: Annotated[str, Field(description="Jira issue key (e.g. 'PROJ-123')")],
    fields: Annotated[
        dict[str, Any] | str,
        Field(description="Field ids mapped to new values, as an object or a JSON string"),
    ],
    action: Annotated[str, Field(description="Label recorded with the update")] = DEFAULT_ACTION,
) -> dict[str, Any]:
    """Update fields of a Jira issue.

    Returns ``jiraUpdateRequired`` when no server-side credential can perform
    the write; the caller should repeat it through the browser tool channel.
    """
    ctx = get_app_context()
    if ctx.read_only:
        return _read_only_payload(issue_key)
    try:
        field_map = _parse_fields(fields)
    except ValueError as exc:
        return Failure(
            reason=f"invalid fields: {exc}",
            ticket_key=issue_key,
            error_kind="invalid_request",
        ).to_payload()
    outcome = await run_in_threadpool(ctx.resolver.update, issue_key, field_map, action)
    return outcome.to_payload()


@jira_mcp.tool(tags={"jira", "write"})
async def update_summary(
    issue_key: Annotated[str, Field(description="Jira issue key (e.g. 'PROJ-123')")],
    text: Annotated[str, Field(description="Short summary text")],
) -> dict[str, Any]:
    """Write the short-summary (TL;DR) custom field of a Jira issue."""
    ctx = get_app_context()
    if ctx.read_only:
        return _read_only_payload(issue_key)
    field_id = ctx.config.summary_field_id or None
    outcome = await run_in_threadpool(
        lambda: ctx.resolver.update_summary(issue_key, text, field_id=field_id)
    )
    return outcome.to_payload()
