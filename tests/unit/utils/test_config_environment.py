"""Configuration loading, path probing and logging helpers."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from fakes import credential
from jira_bridge.config import BridgeConfig
from jira_bridge.oauth.store import MemoryTokenStore
from jira_bridge.utils.environment import get_available_paths, is_read_only_mode
from jira_bridge.utils.logging import correlation_id_var, mask_sensitive, setup_logging


def test_from_env_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("BRIDGE_STORAGE_DIR", str(tmp_path))
    monkeypatch.delenv("ATLASSIAN_CLIENT_ID", raising=False)
    monkeypatch.delenv("ATLASSIAN_CLIENT_SECRET", raising=False)
    monkeypatch.delenv("BRIDGE_CACHE_FILE", raising=False)
    monkeypatch.delenv("BRIDGE_HTTP_TIMEOUT", raising=False)

    config = BridgeConfig.from_env()

    assert config.principal_id == "system"
    assert config.redirect_uri == "http://localhost:3000/api/auth/atlassian/callback"
    assert config.summary_field_id == "customfield_10087"
    assert config.cache_file == tmp_path / "jira-story-cache.json"
    assert config.timeout == (5.0, 20.0)
    assert config.refresh_leeway_seconds == 0
    assert not config.is_oauth_configured()


def test_from_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("ATLASSIAN_CLIENT_ID", "cid")
    monkeypatch.setenv("ATLASSIAN_CLIENT_SECRET", "secret")
    monkeypatch.setenv("ATLASSIAN_CLOUD_ID", "cloud-9")
    monkeypatch.setenv("JIRA_TLDR_FIELD_ID", "customfield_1")
    monkeypatch.setenv("BRIDGE_PRINCIPAL_ID", "release-bot")
    monkeypatch.setenv("BRIDGE_CACHE_FILE", str(tmp_path / "c.json"))
    monkeypatch.setenv("BRIDGE_HTTP_TIMEOUT", "7.5")
    monkeypatch.setenv("BRIDGE_REFRESH_LEEWAY_SECONDS", "60")

    config = BridgeConfig.from_env()

    assert config.is_oauth_configured()
    assert config.cloud_id == "cloud-9"
    assert config.summary_field_id == "customfield_1"
    assert config.principal_id == "release-bot"
    assert config.cache_file == Path(tmp_path / "c.json")
    assert config.timeout == (5.0, 7.5)
    assert config.refresh_leeway_seconds == 60


def test_bad_numeric_env_falls_back(monkeypatch):
    monkeypatch.setenv("BRIDGE_HTTP_TIMEOUT", "soon")
    monkeypatch.setenv("BRIDGE_REFRESH_LEEWAY_SECONDS", "1.5")
    config = BridgeConfig.from_env()
    assert config.read_timeout == 20.0
    assert config.refresh_leeway_seconds == 0


def test_available_paths(tmp_path):
    config = BridgeConfig(client_id="c", client_secret="s", cache_file=tmp_path / "cache.json")
    tokens = MemoryTokenStore()

    assert get_available_paths(config, tokens) == {"oauth_client": True, "oauth": False, "cache": False}

    tokens.put("system", credential())
    (tmp_path / "cache.json").write_text("{}")
    assert get_available_paths(config, tokens) == {"oauth_client": True, "oauth": True, "cache": True}


def test_read_only_mode_flag(monkeypatch):
    assert not is_read_only_mode()
    monkeypatch.setenv("READ_ONLY_MODE", "yes")
    assert is_read_only_mode()


def test_mask_sensitive():
    assert mask_sensitive("abcdefgh") == "abcd****"
    assert mask_sensitive("abc") == "***"
    assert mask_sensitive(None) == ""


def test_setup_logging_includes_correlation_id():
    stream = io.StringIO()
    logger = setup_logging("INFO", stream=stream)
    try:
        token = correlation_id_var.set("corr-1")
        logging.getLogger("jira-bridge.test").info("hello")
        correlation_id_var.reset(token)
        logging.getLogger("jira-bridge.test").info("bye")
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    lines = stream.getvalue().splitlines()
    assert "[corr-1] hello" in lines[0]
    assert "[-] bye" in lines[1]
