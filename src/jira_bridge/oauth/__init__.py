"""Credential lifecycle package.

Building blocks for the Atlassian OAuth 2.0 (3LO) flow used by the bridge.
Nothing here knows about resolution strategies; the resolver consumes these
pieces through :class:`OAuthTokenManager` and :class:`TokenStore`.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
state
    CSRF ``state`` generation and comparison.
models
    Immutable credential and resource records.
errors
    Error taxonomy and the ``CallResult`` value type.
store
    Credential persistence (disk and memory).
manager
    Code exchange, refresh, resource discovery and record calls.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .errors import (  # noqa: F401
    AuthError,
    BridgeError,
    CacheMiss,
    CallResult,
    ChannelUnavailable,
    ProviderRejection,
    TransportError,
)
from .log_utils import get_resolution_logger  # noqa: F401
from .manager import OAuthTokenManager  # noqa: F401
from .models import (  # noqa: F401
    DEFAULT_PRINCIPAL,
    AccessibleResource,
    AuthorizationRequest,
    OAuthCredential,
)
from .state import generate_state, states_match  # noqa: F401
from .store import DiskTokenStore, MemoryTokenStore, TokenStore  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # errors
    "AuthError",
    "BridgeError",
    "CacheMiss",
    "CallResult",
    "ChannelUnavailable",
    "ProviderRejection",
    "TransportError",
    # models
    "DEFAULT_PRINCIPAL",
    "AccessibleResource",
    "AuthorizationRequest",
    "OAuthCredential",
    # state
    "generate_state",
    "states_match",
    # store
    "DiskTokenStore",
    "MemoryTokenStore",
    "TokenStore",
    # manager
    "OAuthTokenManager",
    # logging helpers
    "get_resolution_logger",
]
