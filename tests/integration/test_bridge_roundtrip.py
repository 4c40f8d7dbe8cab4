"""Integration test: one ticket update across both execution contexts.

Walks the whole lifecycle with disk-backed stores and a faked Atlassian:

1. no credential yet -> the server bridges the write, the browser completes it
2. browser-based OAuth authorization stores a credential with its site
3. later, the credential has expired -> refresh, write, usage recorded
4. a read populates the on-disk snapshot cache
"""

from __future__ import annotations

import json
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from starlette.testclient import TestClient

from fakes import (
    CLOUD_ID,
    ISSUE_URL,
    NOW,
    RESOURCES_URL,
    TOKEN_URL,
    FakeResponse,
    FakeSession,
    fake_clock_factory,
    issue_payload,
    token_response,
)
from jira_bridge.config import BridgeConfig
from jira_bridge.resolution import (
    CallableToolChannel,
    RequiresRemoteBridge,
    Success,
    browser_resolver,
)
from jira_bridge.servers.context import build_app_context, set_app_context
from jira_bridge.servers.main import bridge_mcp

SUMMARY_FIELD = "customfield_10087"


@pytest.mark.integration
@pytest.mark.ci_safe
def test_bridge_then_oauth_then_refresh(tmp_path):
    env_patch = {
        "ATLASSIAN_CLIENT_ID": "client-id",
        "ATLASSIAN_CLIENT_SECRET": "client-secret",
        "ATLASSIAN_REDIRECT_URI": "http://testserver/auth/atlassian/callback",
        "BRIDGE_STORAGE_DIR": str(tmp_path),
    }
    session = FakeSession()
    with patch.dict("os.environ", env_patch, clear=False):
        config = BridgeConfig.from_env()
    assert config.cache_file == tmp_path / "jira-story-cache.json"

    ctx = build_app_context(config, session=session, clock=fake_clock_factory(NOW))  # type: ignore[arg-type]
    set_app_context(ctx)
    try:
        # ------------------------------------------------------------------ #
        # 1. No credential: server bridges, browser completes                #
        # ------------------------------------------------------------------ #
        outcome = ctx.resolver.update_summary("PROJ-123", "short summary")
        assert isinstance(outcome, RequiresRemoteBridge)
        wire = json.loads(json.dumps(outcome.to_payload()))

        edits = []
        channel = CallableToolChannel({"getJiraIssue": lambda a: {}, "editJiraIssue": edits.append})
        completed = browser_resolver(channel).complete_bridge(wire)
        assert isinstance(completed, Success)
        assert edits == [{"issueIdOrKey": "PROJ-123", "fields": {SUMMARY_FIELD: "short summary"}}]

        # ------------------------------------------------------------------ #
        # 2. Browser-based authorization                                     #
        # ------------------------------------------------------------------ #
        client = TestClient(bridge_mcp.http_app(transport="sse"))
        start = client.get("/auth/atlassian/start", params={"format": "json"})
        state = parse_qs(urlparse(start.json()["authorize_url"]).query)["state"][0]

        session.add("POST", TOKEN_URL, token_response("at-1", "rt-1", expires_in=3600))
        sites = [{"id": CLOUD_ID, "scopes": ["write:jira-work"]}]
        session.add("GET", RESOURCES_URL, FakeResponse(200, sites))
        callback = client.get(
            "/auth/atlassian/callback",
            params={"code": "auth-code", "state": state},
            headers={"Cookie": f"atlassian_oauth_state={state}"},
        )
        assert callback.status_code == 200, callback.text
        status = client.get("/auth/status").json()
        assert status == {"principal_id": "system", "connected": True, "expired": False, "cloud_id": CLOUD_ID}
    finally:
        ctx.usage.close()
        set_app_context(None)

    token_file = tmp_path / "tokens" / "system.json"
    assert json.loads(token_file.read_text())["access_token"] == "at-1"

    # ---------------------------------------------------------------------- #
    # 3. Two hours later: refresh before the write                           #
    # ---------------------------------------------------------------------- #
    later = NOW + 7200
    session.add("POST", TOKEN_URL, token_response("at-2", None, expires_in=3600))
    session.add("PUT", f"{ISSUE_URL}/PROJ-123", FakeResponse(204))
    session.add("GET", f"{ISSUE_URL}/PROJ-123", FakeResponse(200, issue_payload("PROJ-123")))
    later_ctx = build_app_context(
        config, session=session, clock=fake_clock_factory(later)  # type: ignore[arg-type]
    )

    written = later_ctx.resolver.update_summary("PROJ-123", "short summary")
    assert isinstance(written, Success)
    assert written.updated_field_keys == (SUMMARY_FIELD,)
    stored = json.loads(token_file.read_text())
    assert stored["access_token"] == "at-2"
    assert stored["refresh_token"] == "rt-1"
    assert stored["expires_at"] == later + 3600
    assert stored["cloud_id"] == CLOUD_ID

    # ---------------------------------------------------------------------- #
    # 4. Read populates the disk cache; a fresh process reads it back        #
    # ---------------------------------------------------------------------- #
    assert later_ctx.resolver.read("PROJ-123").source == "oauth"
    later_ctx.usage.close()

    cold_ctx = build_app_context(
        config, session=FakeSession(), clock=fake_clock_factory(later)  # type: ignore[arg-type]
    )
    cached = cold_ctx.resolver.read("PROJ-123")
    cold_ctx.usage.close()
    assert cached.source == "cache"
    assert cached.snapshot.summary == "Checkout fails on retry"

    usage = json.loads((tmp_path / "usage.json").read_text())
    assert usage["system"]["usage_count"] == 2
