"""Multi-path resolution of ticket reads and writes.

Sub-modules
-----------
outcomes
    ``Success`` / ``Failure`` / ``RequiresRemoteBridge`` and ``UpdateRequest``.
cache
    Ticket snapshots and the read-only result cache.
strategies
    Cache, OAuth and tool-channel strategy variants.
tool_channel
    Adapters for the browser-side tool credential channel.
usage
    Fire-and-forget credential usage bookkeeping.
resolver
    ``UpdateResolver`` and the server/browser factories.
"""

from __future__ import annotations

from .cache import (  # noqa: F401
    JsonFileResultCache,
    MemoryResultCache,
    ResultCache,
    TicketSnapshot,
)
from .outcomes import (  # noqa: F401
    MANUAL_UPDATE_REASON,
    NO_READ_PATH_REASON,
    Failure,
    RequiresRemoteBridge,
    ResolutionOutcome,
    Success,
    Unavailable,
    UpdateRequest,
)
from .resolver import (  # noqa: F401
    ExecutionContext,
    UpdateResolver,
    browser_resolver,
    server_resolver,
)
from .strategies import OAuthStrategy, ResultCacheStrategy, ToolChannelStrategy  # noqa: F401
from .tool_channel import CallableToolChannel, McpToolChannel, ToolChannel  # noqa: F401
from .usage import JsonUsageLedger, UsageTracker  # noqa: F401

__all__ = [
    # cache
    "JsonFileResultCache",
    "MemoryResultCache",
    "ResultCache",
    "TicketSnapshot",
    # outcomes
    "MANUAL_UPDATE_REASON",
    "NO_READ_PATH_REASON",
    "Failure",
    "RequiresRemoteBridge",
    "ResolutionOutcome",
    "Success",
    "Unavailable",
    "UpdateRequest",
    # resolver
    "ExecutionContext",
    "UpdateResolver",
    "browser_resolver",
    "server_resolver",
    # strategies
    "OAuthStrategy",
    "ResultCacheStrategy",
    "ToolChannelStrategy",
    # tool channel
    "CallableToolChannel",
    "McpToolChannel",
    "ToolChannel",
    # usage
    "JsonUsageLedger",
    "UsageTracker",
]
