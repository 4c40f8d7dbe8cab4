"""Resolution strategies: one contract, one variant per execution context.

Every strategy implements ``try_read(ticket_key)`` and ``try_write(request)``
and returns a :data:`~jira_bridge.resolution.outcomes.StrategyResult`:

* :class:`Success` / :class:`Failure` – the strategy acted; the resolver stops.
* :class:`Unavailable` – no usable credential or channel here; advance.

The split between the last two is the crux of fallback: a missing, expired
or rejected credential (or a transport failure) is *unavailable*, while a
provider rejecting the request content is a terminal *failure*.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Any, Protocol, runtime_checkable

from cachetools import TTLCache

from jira_bridge.oauth.clock import Clock, default_clock
from jira_bridge.oauth.errors import (
    AuthError,
    BridgeError,
    CacheMiss,
    ChannelUnavailable,
    TransportError,
)
from jira_bridge.oauth.manager import OAuthTokenManager
from jira_bridge.oauth.models import DEFAULT_PRINCIPAL, OAuthCredential, choose_tenant
from jira_bridge.oauth.store import TokenStore
from jira_bridge.resolution.cache import ResultCache, TicketSnapshot
from jira_bridge.resolution.outcomes import (
    StrategyResult,
    Success,
    Unavailable,
    UpdateRequest,
    failure_from_error,
)
from jira_bridge.resolution.tool_channel import ToolChannel
from jira_bridge.resolution.usage import UsageTracker

_LOG = logging.getLogger("jira-bridge.resolution.strategies")


@runtime_checkable
class ResolutionStrategy(Protocol):
    name: str

    def try_read(self, ticket_key: str) -> StrategyResult: ...

    def try_write(self, request: UpdateRequest) -> StrategyResult: ...


def _unavailable_or_failure(
    strategy: str, error: BridgeError, ticket_key: str
) -> StrategyResult:
    """Map a classified error to *unavailable* (fallback) or terminal failure."""
    if error.triggers_fallback:
        if isinstance(error, TransportError):
            _LOG.warning(
                "%s: transport failure treated as unavailable for %s: %s",
                strategy,
                ticket_key,
                error,
            )
        return Unavailable(strategy, error)
    return failure_from_error(error, ticket_key=ticket_key)


# --------------------------------------------------------------------------- #
# Disk cache                                                                  #
# --------------------------------------------------------------------------- #
class ResultCacheStrategy:
    """Serve reads from the snapshot cache; never handles writes."""

    name = "cache"

    def __init__(self, cache: ResultCache) -> None:
        self.cache = cache

    def try_read(self, ticket_key: str) -> StrategyResult:
        snapshot = self.cache.get(ticket_key)
        if snapshot is None:
            return Unavailable(self.name, CacheMiss(f"no cached snapshot for {ticket_key}"))
        return Success(source=self.name, snapshot=snapshot, record=snapshot.to_dict())

    def try_write(self, request: UpdateRequest) -> StrategyResult:
        return Unavailable(self.name, ChannelUnavailable("result cache is read-only"))


# --------------------------------------------------------------------------- #
# Server-side OAuth                                                           #
# --------------------------------------------------------------------------- #
class OAuthStrategy:
    """Use the stored OAuth credential of a fixed principal.

    An expired credential is refreshed before any remote call; a successful
    refresh is persisted as a full replacement, a failed one leaves the
    stored credential untouched and makes this strategy unavailable.
    """

    name = "oauth"

    def __init__(
        self,
        manager: OAuthTokenManager,
        tokens: TokenStore,
        *,
        cache: ResultCache | None = None,
        principal_id: str = DEFAULT_PRINCIPAL,
        cloud_id: str | None = None,
        usage: UsageTracker | None = None,
        clock: Clock = default_clock,
        refresh_leeway: int = 0,
        tenant_cache_ttl: float = 300,
    ) -> None:
        self.manager = manager
        self.tokens = tokens
        self.cache = cache
        self.principal_id = principal_id
        self.cloud_id = cloud_id
        self.usage = usage
        self.clock = clock
        self.refresh_leeway = refresh_leeway
        # token hash -> cloud id; discovery costs one extra round-trip
        self._tenants: TTLCache[str, str] = TTLCache(maxsize=32, ttl=tenant_cache_ttl)
        self._tenants_lock = threading.Lock()

    # ---------------- credential & tenant ------------------------------- #
    def live_credential(self) -> OAuthCredential | Unavailable:
        """Return a non-expired credential, refreshing it if necessary."""
        credential = self.tokens.get(self.principal_id)
        if credential is None:
            return Unavailable(
                self.name,
                AuthError(f"no stored credential for principal {self.principal_id!r}"),
            )

        if credential.is_expired(clock=self.clock, leeway=self.refresh_leeway):
            _LOG.info("Credential for principal=%s expired; refreshing", self.principal_id)
            result = self.manager.refresh(credential)
            if not result.ok or result.value is None:
                return Unavailable(self.name, result.error or AuthError("refresh failed"))
            credential = result.value
            if credential.is_expired(clock=self.clock):
                return Unavailable(
                    self.name, AuthError("provider issued an already expired token")
                )
            self.tokens.put(self.principal_id, credential)
        return credential

    def _tenant_id(self, credential: OAuthCredential) -> str | BridgeError:
        if self.cloud_id:
            return self.cloud_id
        if credential.cloud_id:
            return credential.cloud_id
        token_key = hashlib.sha256(credential.access_token.encode()).hexdigest()[:16]
        with self._tenants_lock:
            cached = self._tenants.get(token_key)
        if cached:
            return cached
        result = self.manager.list_accessible_resources(credential.access_token)
        if not result.ok:
            return result.error  # type: ignore[return-value]
        tenant = choose_tenant(result.value or [])
        if tenant is None:
            return AuthError("credential is not authorised for any Jira site")
        with self._tenants_lock:
            self._tenants[token_key] = tenant.id
        return tenant.id

    def _prepare(self, ticket_key: str) -> tuple[str, str] | StrategyResult:
        credential = self.live_credential()
        if isinstance(credential, Unavailable):
            return credential
        tenant = self._tenant_id(credential)
        if isinstance(tenant, BridgeError):
            return _unavailable_or_failure(self.name, tenant, ticket_key)
        return credential.access_token, tenant

    def _record_usage(self) -> None:
        if self.usage is not None:
            self.usage.record(self.principal_id)

    # ---------------- contract ------------------------------------------ #
    def try_read(self, ticket_key: str) -> StrategyResult:
        prepared = self._prepare(ticket_key)
        if not isinstance(prepared, tuple):
            return prepared
        access_token, tenant = prepared

        result = self.manager.fetch_record(access_token, tenant, ticket_key)
        if not result.ok:
            return _unavailable_or_failure(
                self.name, result.error, ticket_key  # type: ignore[arg-type]
            )
        self._record_usage()

        issue: dict[str, Any] = result.value or {}
        issue.setdefault("key", ticket_key)
        snapshot = TicketSnapshot.from_issue(issue, clock=self.clock)
        if self.cache is not None:
            try:
                self.cache.put(ticket_key, snapshot)
            except (OSError, TimeoutError) as exc:
                _LOG.warning("Could not cache snapshot for %s: %s", ticket_key, exc)
        return Success(source=self.name, snapshot=snapshot, record=issue)

    def try_write(self, request: UpdateRequest) -> StrategyResult:
        prepared = self._prepare(request.ticket_key)
        if not isinstance(prepared, tuple):
            return prepared
        access_token, tenant = prepared

        result = self.manager.update_record(
            access_token, tenant, request.ticket_key, request.field_map
        )
        if not result.ok:
            return _unavailable_or_failure(
                self.name, result.error, request.ticket_key  # type: ignore[arg-type]
            )
        self._record_usage()
        return Success(source=self.name, updated_field_keys=tuple(request.field_map))

    def search(self, jql: str, *, max_results: int = 50) -> StrategyResult:
        """JQL search through the same credential path (no cache involvement)."""
        prepared = self._prepare(jql)
        if not isinstance(prepared, tuple):
            return prepared
        access_token, tenant = prepared
        result = self.manager.search_records(access_token, tenant, jql, max_results=max_results)
        if not result.ok:
            return _unavailable_or_failure(self.name, result.error, jql)  # type: ignore[arg-type]
        self._record_usage()
        return Success(source=self.name, record=result.value or {})


# --------------------------------------------------------------------------- #
# Browser-side tool channel                                                   #
# --------------------------------------------------------------------------- #
class ToolChannelStrategy:
    """Use the tool-injected credential channel of the browser context.

    Availability is probed once, at construction, and exposed as the
    ``available`` attribute.
    """

    name = "tool_channel"

    def __init__(self, channel: ToolChannel | None, *, clock: Clock = default_clock) -> None:
        self.channel = channel
        self.clock = clock
        self.available: bool = bool(channel is not None and channel.available())
        if not self.available:
            _LOG.warning("Tool channel not available in this execution context")

    def _missing(self) -> Unavailable:
        return Unavailable(
            self.name, ChannelUnavailable("tool channel not available in this context")
        )

    def try_read(self, ticket_key: str) -> StrategyResult:
        if not self.available or self.channel is None:
            return self._missing()
        try:
            issue = dict(self.channel.get_issue(ticket_key))
        except BridgeError as exc:
            return _unavailable_or_failure(self.name, exc, ticket_key)
        issue.setdefault("key", ticket_key)
        return Success(
            source=self.name,
            snapshot=TicketSnapshot.from_issue(issue, clock=self.clock),
            record=issue,
        )

    def try_write(self, request: UpdateRequest) -> StrategyResult:
        if not self.available or self.channel is None:
            return self._missing()
        try:
            self.channel.edit_issue(request.ticket_key, request.field_map)
        except BridgeError as exc:
            return _unavailable_or_failure(self.name, exc, request.ticket_key)
        return Success(source=self.name, updated_field_keys=tuple(request.field_map))
