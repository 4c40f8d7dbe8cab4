"""Process-wide services shared by the MCP tools and the HTTP auth routes."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import requests

from jira_bridge.config import BridgeConfig
from jira_bridge.oauth.clock import Clock, default_clock
from jira_bridge.oauth.manager import OAuthTokenManager
from jira_bridge.oauth.store import DiskTokenStore, TokenStore
from jira_bridge.resolution.cache import JsonFileResultCache, ResultCache
from jira_bridge.resolution.resolver import UpdateResolver, server_resolver
from jira_bridge.resolution.strategies import OAuthStrategy
from jira_bridge.resolution.usage import JsonUsageLedger, UsageTracker
from jira_bridge.utils.environment import is_read_only_mode

logger = logging.getLogger("jira-bridge.servers.context")


@dataclass(frozen=True)
class MainAppContext:
    """
    Fully wired server-side services built from environment configuration
    at startup. The resolver always runs in the server execution context.
    """

    config: BridgeConfig
    manager: OAuthTokenManager
    tokens: TokenStore
    cache: ResultCache
    oauth: OAuthStrategy
    resolver: UpdateResolver
    usage: UsageTracker
    read_only: bool = False


def build_app_context(
    config: BridgeConfig | None = None,
    *,
    session: requests.Session | None = None,
    tokens: TokenStore | None = None,
    cache: ResultCache | None = None,
    usage: UsageTracker | None = None,
    clock: Clock = default_clock,
    read_only: bool | None = None,
) -> MainAppContext:
    config = config or BridgeConfig.from_env()
    manager = OAuthTokenManager.from_config(config, session=session, clock=clock)
    tokens = tokens if tokens is not None else DiskTokenStore(config.storage_dir)
    cache = cache if cache is not None else JsonFileResultCache(config.cache_file)
    usage = usage or UsageTracker(JsonUsageLedger(config.storage_dir / "usage.json"), clock=clock)
    oauth = OAuthStrategy(
        manager,
        tokens,
        cache=cache,
        principal_id=config.principal_id,
        cloud_id=config.cloud_id,
        usage=usage,
        clock=clock,
        refresh_leeway=config.refresh_leeway_seconds,
    )
    return MainAppContext(
        config=config,
        manager=manager,
        tokens=tokens,
        cache=cache,
        oauth=oauth,
        resolver=server_resolver(cache=cache, oauth=oauth),
        usage=usage,
        read_only=is_read_only_mode() if read_only is None else read_only,
    )


_context: MainAppContext | None = None
_context_lock = threading.Lock()


def get_app_context() -> MainAppContext:
    """Return the shared context, building it from the environment on first use."""
    global _context
    with _context_lock:
        if _context is None:
            _context = build_app_context()
            logger.info(
                "Services initialised for principal=%s (oauth configured: %s)",
                _context.config.principal_id,
                _context.config.is_oauth_configured(),
            )
        return _context


def set_app_context(context: MainAppContext | None) -> None:
    """Install *context* (``None`` forces a rebuild on next access)."""
    global _context
    with _context_lock:
        _context = context
