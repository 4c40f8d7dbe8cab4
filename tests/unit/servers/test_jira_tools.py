"""Unit tests for the MCP Jira tools, called through an in-memory client."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from fastmcp import Client

from fakes import (
    CLOUD_ID,
    ISSUE_URL,
    NOW,
    FakeResponse,
    FakeSession,
    credential,
    fake_clock_factory,
    issue_payload,
)
from jira_bridge.config import BridgeConfig
from jira_bridge.oauth.store import MemoryTokenStore
from jira_bridge.resolution.cache import MemoryResultCache, TicketSnapshot
from jira_bridge.resolution.usage import UsageTracker
from jira_bridge.servers.context import build_app_context, set_app_context
from jira_bridge.servers.main import bridge_mcp


@pytest.fixture()
def http_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def tokens() -> MemoryTokenStore:
    return MemoryTokenStore()


def _install(tmp_path: Path, http_session: FakeSession, tokens: MemoryTokenStore, **kwargs: Any):
    config = BridgeConfig(
        client_id="client-id",
        client_secret="client-secret",
        storage_dir=tmp_path,
        cache_file=tmp_path / "cache.json",
        summary_field_id=kwargs.pop("summary_field_id", "customfield_10087"),
    )
    ctx = build_app_context(
        config,
        session=http_session,  # type: ignore[arg-type]
        tokens=tokens,
        cache=kwargs.pop("cache", MemoryResultCache()),
        usage=UsageTracker(None),
        clock=fake_clock_factory(NOW),
        **kwargs,
    )
    set_app_context(ctx)
    return ctx


@pytest.fixture(autouse=True)
def _reset_context():
    yield
    set_app_context(None)


async def _call(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    async with Client(bridge_mcp) as client:
        result = await client.call_tool(name, arguments)
    return json.loads(result.content[0].text)


@pytest.mark.anyio
async def test_tools_are_listed_with_jira_prefix(tmp_path, http_session, tokens):
    _install(tmp_path, http_session, tokens, read_only=False)
    async with Client(bridge_mcp) as client:
        names = {tool.name for tool in await client.list_tools()}
    assert {"jira_get_issue", "jira_update_issue", "jira_update_summary", "jira_search_issues"} <= names


@pytest.mark.anyio
async def test_update_without_credential_returns_bridge_payload(tmp_path, http_session, tokens):
    _install(tmp_path, http_session, tokens, read_only=False)

    payload = await _call(
        "jira_update_issue",
        {"issue_key": "PROJ-123", "fields": {"customfield_10087": "short summary"}},
    )

    assert payload == {
        "success": False,
        "jiraUpdateRequired": {
            "issueKey": "PROJ-123",
            "fields": {"customfield_10087": "short summary"},
            "action": "update",
        },
    }


@pytest.mark.anyio
async def test_update_accepts_fields_as_json_string(tmp_path, http_session, tokens):
    tokens.put("system", credential())
    http_session.add("PUT", f"{ISSUE_URL}/PROJ-1", FakeResponse(204))
    _install(tmp_path, http_session, tokens, read_only=False)

    payload = await _call("jira_update_issue", {"issue_key": "PROJ-1", "fields": '{"summary": "New"}'})

    assert payload == {"success": True, "source": "oauth", "updatedFields": ["summary"]}
    assert http_session.calls[0]["json"] == {"fields": {"summary": "New"}}


@pytest.mark.anyio
async def test_update_with_bad_json_is_invalid_request(tmp_path, http_session, tokens):
    _install(tmp_path, http_session, tokens, read_only=False)
    payload = await _call("jira_update_issue", {"issue_key": "PROJ-1", "fields": "{oops"})
    assert payload["success"] is False
    assert payload["errorKind"] == "invalid_request"


@pytest.mark.anyio
async def test_update_summary_writes_configured_field(tmp_path, http_session, tokens):
    _install(tmp_path, http_session, tokens, read_only=False, summary_field_id="customfield_555")

    payload = await _call("jira_update_summary", {"issue_key": "PROJ-8", "text": "tl;dr"})

    assert payload["jiraUpdateRequired"]["fields"] == {"customfield_555": "tl;dr"}
    assert payload["jiraUpdateRequired"]["action"] == "updateTLDR"


@pytest.mark.anyio
async def test_get_issue_served_from_cache(tmp_path, http_session, tokens):
    cache = MemoryResultCache({"PROJ-1": TicketSnapshot(ticket_key="PROJ-1", summary="Cached")})
    _install(tmp_path, http_session, tokens, read_only=False, cache=cache)

    payload = await _call("jira_get_issue", {"issue_key": "PROJ-1"})

    assert payload["success"] is True
    assert payload["source"] == "cache"
    assert payload["snapshot"]["summary"] == "Cached"
    assert http_session.calls == []


@pytest.mark.anyio
async def test_search_issues_uses_oauth(tmp_path, http_session, tokens):
    tokens.put("system", credential())
    url = f"https://api.atlassian.com/ex/jira/{CLOUD_ID}/rest/api/3/search"
    http_session.add("GET", url, FakeResponse(200, {"issues": [issue_payload()], "total": 1}))
    _install(tmp_path, http_session, tokens, read_only=False)

    payload = await _call("jira_search_issues", {"jql": "project = PROJ", "limit": 10})

    assert payload["success"] is True
    assert payload["record"]["total"] == 1
    assert http_session.calls[0]["params"]["maxResults"] == 10


@pytest.mark.anyio
async def test_search_without_credential_fails_cleanly(tmp_path, http_session, tokens):
    _install(tmp_path, http_session, tokens, read_only=False)
    payload = await _call("jira_search_issues", {"jql": "project = PROJ"})
    assert payload["success"] is False
    assert payload["errorKind"] == "auth"


@pytest.mark.anyio
async def test_read_only_mode_blocks_writes(tmp_path, http_session, tokens):
    _install(tmp_path, http_session, tokens, read_only=True)
    payload = await _call("jira_update_issue", {"issue_key": "PROJ-1", "fields": {"summary": "x"}})
    assert payload["errorKind"] == "read_only"
    assert http_session.calls == []
