"""oauth_setup.py

One-off bootstrap of the server-side Atlassian OAuth credential without
running the HTTP server.

Flow
----
1. Print the authorize URL (and open it in a browser unless ``--no-browser``).
2. Approve access; the provider redirects to ``ATLASSIAN_REDIRECT_URI``.
3. Paste the full redirect URL (or just the ``code``) back into the prompt.
4. The code is exchanged, the Jira site is chosen and the credential is
   stored for ``BRIDGE_PRINCIPAL_ID``.

Only masked values are ever printed.

Example
-------
    uv run python scripts/oauth_setup.py --env-file .env
"""
from __future__ import annotations

import argparse
import os
import sys
import webbrowser
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from jira_bridge.config import BridgeConfig
from jira_bridge.oauth.manager import OAuthTokenManager
from jira_bridge.oauth.models import choose_tenant
from jira_bridge.oauth.state import states_match
from jira_bridge.oauth.store import DiskTokenStore
from jira_bridge.utils.logging import mask_sensitive, setup_logging

DEFAULT_ENV_FILE = Path(".env")


# --------------------------------------------------------------------------- #
# Environment helpers
# --------------------------------------------------------------------------- #
def _load_env_file(env_path: Path | None) -> None:
    """Load KEY=VALUE pairs from a .env style file into *os.environ*."""
    if env_path is None or not env_path.exists():
        return

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = val


def _parse_pasted(value: str) -> tuple[str | None, str | None]:
    """Return ``(code, state)`` from a pasted redirect URL or bare code."""
    value = value.strip()
    if "://" not in value and "?" not in value:
        return (value or None), None
    query = parse_qs(urlparse(value).query)
    if "error" in query:
        sys.exit(f"Provider returned an error: {query['error'][0]}")
    return (query.get("code") or [None])[0], (query.get("state") or [None])[0]


# --------------------------------------------------------------------------- #
# Main
# --------------------------------------------------------------------------- #
def main() -> None:
    parser = argparse.ArgumentParser(description="Authorize the bridge against Atlassian Cloud.")
    parser.add_argument(
        "--env-file", type=Path, help=f"Env file (default: {DEFAULT_ENV_FILE} if present)"
    )
    parser.add_argument(
        "--no-browser", action="store_true", help="Print the URL instead of opening a browser"
    )
    parser.add_argument("--code", help="Authorization code (skips the interactive prompt)")
    args = parser.parse_args()

    _load_env_file(args.env_file or (DEFAULT_ENV_FILE if DEFAULT_ENV_FILE.exists() else None))
    setup_logging()

    config = BridgeConfig.from_env()
    if not config.is_oauth_configured():
        sys.exit("ATLASSIAN_CLIENT_ID and ATLASSIAN_CLIENT_SECRET must be set.")

    manager = OAuthTokenManager.from_config(config)
    authorization = manager.build_authorization_request()

    code, returned_state = args.code, None
    if not code:
        print("Open this URL and approve access:\n")
        print(f"  {authorization.url}\n")
        if not args.no_browser:
            webbrowser.open(authorization.url)
        code, returned_state = _parse_pasted(input("Paste the redirect URL (or the code): "))
    if not code:
        sys.exit("No authorization code supplied.")
    if returned_state is not None and not states_match(authorization.state, returned_state):
        sys.exit("State mismatch – restart the authorization.")

    exchanged = manager.exchange_code(code, principal_id=config.principal_id)
    if not exchanged.ok or exchanged.value is None:
        sys.exit(f"Code exchange failed: {exchanged.error}")
    credential = exchanged.value

    cloud_id = config.cloud_id
    if not cloud_id:
        resources = manager.list_accessible_resources(credential.access_token)
        if not resources.ok:
            sys.exit(f"Resource discovery failed: {resources.error}")
        tenant = choose_tenant(resources.value or [])
        if tenant is None:
            sys.exit("The authorised account has no accessible Jira site.")
        print(f"Using Jira site {tenant.name} ({tenant.url})")
        cloud_id = tenant.id

    store = DiskTokenStore(config.storage_dir)
    store.put(config.principal_id, credential.with_cloud_id(cloud_id))
    print(
        f"Stored credential for principal={config.principal_id} "
        f"access_token={mask_sensitive(credential.access_token, 6)} "
        f"at {store.path_for(config.principal_id)}"
    )


if __name__ == "__main__":
    main()
