"""State parameter helpers for the OAuth 2.0 web-flow.

The *state* parameter protects the callback against CSRF.  The manager only
*generates* it; binding it to the browser (cookie) and comparing it on the
callback is the HTTP layer's job, using :func:`states_match`.

Logging
-------
Only a truncated prefix of the state is ever logged.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Final

from jira_bridge.utils.logging import mask_sensitive

_LOG = logging.getLogger("jira-bridge.oauth.state")

STATE_BYTES: Final[int] = 32
STATE_COOKIE: Final[str] = "atlassian_oauth_state"
STATE_COOKIE_MAX_AGE: Final[int] = 600


def generate_state(nbytes: int = STATE_BYTES) -> str:
    """Return *nbytes* of cryptographically random data, hex-encoded."""
    state = secrets.token_hex(nbytes)
    _LOG.debug("Generated state=%s", mask_sensitive(state, 6))
    return state


def states_match(expected: str | None, received: str | None) -> bool:
    """Constant-time comparison of the stored and received state values."""
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
