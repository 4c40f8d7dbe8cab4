"""Utility functions related to environment checking."""

import logging
import os
from typing import Final, Tuple

from jira_bridge.config import BridgeConfig
from jira_bridge.oauth.store import TokenStore

logger = logging.getLogger("jira-bridge.utils.environment")

_TRUTHY: Final[Tuple[str, ...]] = ("true", "1", "yes", "y", "on")


def truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def is_read_only_mode() -> bool:
    """Return True if ``READ_ONLY_MODE`` disables the write tools."""
    return truthy(os.getenv("READ_ONLY_MODE"))


def get_available_paths(config: BridgeConfig, tokens: TokenStore | None = None) -> dict[str, bool]:
    """Report which server-side resolution paths can currently act.

    * ``oauth_client`` – client id/secret present (authorization flow works)
    * ``oauth`` – a credential is stored for the configured principal
    * ``cache`` – the snapshot cache file exists

    The browser tool channel is not probed here; it lives in another process.
    """
    oauth_client = config.is_oauth_configured()
    has_credential = False
    if tokens is not None:
        try:
            has_credential = tokens.get(config.principal_id) is not None
        except (OSError, ValueError) as exc:
            logger.warning("Stored credential unreadable: %s", exc)
    cache = config.cache_file.exists()

    if oauth_client and has_credential:
        logger.info("OAuth path available for principal=%s", config.principal_id)
    elif oauth_client:
        logger.info(
            "OAuth client configured; no credential stored yet (visit /auth/atlassian/start)"
        )
    else:
        logger.info("OAuth is not configured; writes will be bridged to the browser context.")
    if cache:
        logger.info("Snapshot cache found at %s", config.cache_file)

    return {"oauth_client": oauth_client, "oauth": oauth_client and has_credential, "cache": cache}
