"""UpdateResolver – ordered multi-path resolution of ticket reads and writes.

The same class runs in both execution contexts; only the strategy list and
the write-exhaustion policy differ:

=========  ===========================  =====================================
context    strategies                   all strategies unavailable on write
=========  ===========================  =====================================
server     cache, oauth                 :class:`RequiresRemoteBridge`
browser    tool_channel                 :class:`Failure` (manual update)
=========  ===========================  =====================================

Public methods never raise: every path ends in a
:data:`~jira_bridge.resolution.outcomes.ResolutionOutcome`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Sequence

from jira_bridge.fields import DEFAULT_ACTION, SUMMARY_ACTION, summary_update
from jira_bridge.oauth.errors import TransportError
from jira_bridge.oauth.log_utils import get_resolution_logger
from jira_bridge.resolution.outcomes import (
    MANUAL_UPDATE_REASON,
    NO_READ_PATH_REASON,
    Failure,
    RequiresRemoteBridge,
    ResolutionOutcome,
    StrategyResult,
    Success,
    Unavailable,
    UpdateRequest,
)
from jira_bridge.resolution.cache import ResultCache
from jira_bridge.resolution.strategies import (
    OAuthStrategy,
    ResolutionStrategy,
    ResultCacheStrategy,
    ToolChannelStrategy,
)
from jira_bridge.resolution.tool_channel import ToolChannel

_LOG = logging.getLogger("jira-bridge.resolution.resolver")


class ExecutionContext(str, Enum):
    SERVER = "server"
    BROWSER = "browser"


class UpdateResolver:
    """Try each strategy top-to-bottom; the first one that is not
    *unavailable* decides the outcome."""

    def __init__(
        self,
        strategies: Sequence[ResolutionStrategy],
        *,
        context: ExecutionContext = ExecutionContext.SERVER,
    ) -> None:
        self.strategies = tuple(strategies)
        self.context = ExecutionContext(context)

    # ------------------------------------------------------------------ #
    # Internal                                                           #
    # ------------------------------------------------------------------ #
    def _attempt(
        self,
        strategy: ResolutionStrategy,
        op: str,
        arg: Any,
        log: logging.LoggerAdapter,
    ) -> StrategyResult:
        try:
            if op == "read":
                return strategy.try_read(arg)
            return strategy.try_write(arg)
        except Exception as exc:  # strategy bug or storage failure: never escape the resolver
            log.exception("Strategy %s raised during %s", strategy.name, op)
            return Unavailable(strategy.name, TransportError(f"{type(exc).__name__}: {exc}"))

    def _run(
        self, op: str, arg: Any, log: logging.LoggerAdapter
    ) -> tuple[ResolutionOutcome | None, list[Unavailable]]:
        skipped: list[Unavailable] = []
        for strategy in self.strategies:
            result = self._attempt(strategy, op, arg, log)
            if isinstance(result, Unavailable):
                log.info("Strategy unavailable (%s)", result.reason)
                skipped.append(result)
                continue
            if isinstance(result, Success):
                log.info("Resolved %s via %s", op, result.source)
            else:
                log.warning("%s failed via %s: %s", op.capitalize(), strategy.name, result.reason)
            return result, skipped
        return None, skipped

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def read(self, ticket_key: str) -> ResolutionOutcome:
        log = get_resolution_logger(
            ticket_key=ticket_key, action="read", context=self.context.value
        )
        outcome, skipped = self._run("read", ticket_key, log)
        if outcome is not None:
            return outcome
        log.warning("No read path available: %s", "; ".join(u.reason for u in skipped))
        return Failure(
            reason=NO_READ_PATH_REASON,
            ticket_key=ticket_key,
            error_kind=skipped[-1].error.kind if skipped else None,
        )

    def write(self, request: UpdateRequest) -> ResolutionOutcome:
        log = get_resolution_logger(
            ticket_key=request.ticket_key,
            action=request.requested_action,
            context=self.context.value,
        )
        if request.is_noop:
            log.debug("Empty field map; nothing to write")
            return Success(source="noop")

        outcome, skipped = self._run("write", request, log)
        if outcome is not None:
            return outcome

        reasons = "; ".join(u.reason for u in skipped)
        if self.context is ExecutionContext.SERVER:
            log.info("No server-side write path (%s); bridging to browser context", reasons)
            return RequiresRemoteBridge.from_request(request)

        log.warning("No automated write path remains (%s)", reasons)
        return Failure(
            reason=MANUAL_UPDATE_REASON,
            ticket_key=request.ticket_key,
            error_kind=skipped[-1].error.kind if skipped else None,
            requires_manual_update=True,
            field_map=dict(request.field_map),
        )

    def update(
        self,
        ticket_key: str,
        field_map: Mapping[str, Any],
        requested_action: str = DEFAULT_ACTION,
    ) -> ResolutionOutcome:
        try:
            request = UpdateRequest(ticket_key, field_map, requested_action)
        except ValueError as exc:
            return Failure(
                reason=str(exc),
                ticket_key=ticket_key or None,
                error_kind="invalid_request",
            )
        return self.write(request)

    def update_summary(
        self, ticket_key: str, text: str, *, field_id: str | None = None
    ) -> ResolutionOutcome:
        """Write *text* into the configurable short-summary field."""
        return self.update(ticket_key, summary_update(text, field_id=field_id), SUMMARY_ACTION)

    def complete_bridge(
        self, signal: RequiresRemoteBridge | Mapping[str, Any]
    ) -> ResolutionOutcome:
        """Run a write that another execution context handed over."""
        if not isinstance(signal, (RequiresRemoteBridge, Mapping)):
            return Failure(
                reason="bridged update payload must be a mapping",
                error_kind="invalid_request",
            )
        if isinstance(signal, Mapping):
            if not signal.get("jiraUpdateRequired") and not signal.get("issueKey"):
                return Success(source="noop")
        try:
            if not isinstance(signal, RequiresRemoteBridge):
                signal = RequiresRemoteBridge.from_payload(signal)
            request = signal.to_request()
        except ValueError as exc:
            return Failure(reason=str(exc), error_kind="invalid_request")
        return self.write(request)


# --------------------------------------------------------------------------- #
# Factories                                                                   #
# --------------------------------------------------------------------------- #
def server_resolver(*, cache: ResultCache, oauth: OAuthStrategy) -> UpdateResolver:
    """Server context: snapshot cache first (reads only), then OAuth."""
    return UpdateResolver([ResultCacheStrategy(cache), oauth], context=ExecutionContext.SERVER)


def browser_resolver(channel: ToolChannel | None) -> UpdateResolver:
    """Browser context: the tool channel is the single strategy."""
    return UpdateResolver([ToolChannelStrategy(channel)], context=ExecutionContext.BROWSER)
