"""Environment-driven configuration for the bridge."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from jira_bridge.fields import summary_field_id
from jira_bridge.oauth.manager import (
    DEFAULT_API_BASE_URL,
    DEFAULT_AUTH_BASE_URL,
    DEFAULT_REDIRECT_URI,
)
from jira_bridge.oauth.models import DEFAULT_PRINCIPAL
from jira_bridge.oauth.store import default_storage_dir
from jira_bridge.resolution.cache import DEFAULT_CACHE_FILENAME

logger = logging.getLogger("jira-bridge.config")

_CONNECT_TIMEOUT = 5.0


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class BridgeConfig:
    """Settings for the server-side resolver and the OAuth routes."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    auth_base_url: str = DEFAULT_AUTH_BASE_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    cloud_id: str | None = None
    summary_field_id: str = ""
    principal_id: str = DEFAULT_PRINCIPAL
    storage_dir: Path = Path(".")
    cache_file: Path = Path(DEFAULT_CACHE_FILENAME)
    read_timeout: float = 20.0
    refresh_leeway_seconds: int = 0

    @property
    def timeout(self) -> tuple[float, float]:
        return (_CONNECT_TIMEOUT, self.read_timeout)

    def is_oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        storage_dir = default_storage_dir()
        cache_file = os.getenv("BRIDGE_CACHE_FILE")
        config = cls(
            client_id=os.getenv("ATLASSIAN_CLIENT_ID", ""),
            client_secret=os.getenv("ATLASSIAN_CLIENT_SECRET", ""),
            redirect_uri=os.getenv("ATLASSIAN_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
            auth_base_url=os.getenv("ATLASSIAN_AUTH_BASE_URL") or DEFAULT_AUTH_BASE_URL,
            api_base_url=os.getenv("ATLASSIAN_API_BASE_URL") or DEFAULT_API_BASE_URL,
            cloud_id=os.getenv("ATLASSIAN_CLOUD_ID") or None,
            summary_field_id=summary_field_id(),
            principal_id=os.getenv("BRIDGE_PRINCIPAL_ID") or DEFAULT_PRINCIPAL,
            storage_dir=storage_dir,
            cache_file=(
                Path(cache_file).expanduser()
                if cache_file
                else storage_dir / DEFAULT_CACHE_FILENAME
            ),
            read_timeout=_float_env("BRIDGE_HTTP_TIMEOUT", 20.0),
            refresh_leeway_seconds=_int_env("BRIDGE_REFRESH_LEEWAY_SECONDS", 0),
        )
        if not config.is_oauth_configured():
            logger.warning(
                "Atlassian OAuth not configured. Set ATLASSIAN_CLIENT_ID and "
                "ATLASSIAN_CLIENT_SECRET; writes will be bridged to the browser context."
            )
        return config
