"""OAuthTokenManager – Atlassian 3LO code exchange, refresh and record calls.

The manager is **stateless** beyond its configuration: it never caches or
stores tokens.  Every method performs at most one HTTP attempt and returns a
:class:`~jira_bridge.oauth.errors.CallResult`; nothing is raised across the
component boundary.  Retry policy and persistence belong to the caller.

Status classification for API calls
-----------------------------------
* 2xx                → success
* 401                → :class:`AuthError` (credential rejected)
* 408, 429, 5xx      → :class:`TransportError` (nothing wrong with the data)
* any other non-2xx  → :class:`ProviderRejection` (body kept verbatim)

Token-endpoint failures (4xx) are always :class:`AuthError`, since a code or
refresh token the provider refuses cannot be fixed by resending it.

Secrets (client secret, codes, tokens) are **never** logged.
"""

from __future__ import annotations

import logging
from typing import Any, Final, Iterable, Mapping
from urllib.parse import quote, urlencode

import requests

from jira_bridge.fields import snapshot_fields_param
from jira_bridge.oauth.clock import Clock, default_clock, expires_at_from
from jira_bridge.oauth.errors import (
    AuthError,
    BridgeError,
    CallResult,
    ProviderRejection,
    TransportError,
)
from jira_bridge.oauth.models import (
    DEFAULT_PRINCIPAL,
    AccessibleResource,
    AuthorizationRequest,
    OAuthCredential,
)
from jira_bridge.oauth.state import generate_state
from jira_bridge.utils.logging import mask_sensitive

_LOG = logging.getLogger("jira-bridge.oauth.manager")

DEFAULT_AUTH_BASE_URL: Final[str] = "https://auth.atlassian.com"
DEFAULT_API_BASE_URL: Final[str] = "https://api.atlassian.com"
DEFAULT_REDIRECT_URI: Final[str] = "http://localhost:3000/api/auth/atlassian/callback"
AUDIENCE: Final[str] = "api.atlassian.com"
DEFAULT_SCOPES: Final[tuple[str, ...]] = (
    "read:jira-work",
    "write:jira-work",
    "read:jira-user",
    "offline_access",
)
# (connect, read) seconds, matching the requests timeout tuple form
DEFAULT_TIMEOUT: Final[tuple[float, float]] = (5, 20)

_TRANSIENT_STATUS: Final[frozenset[int]] = frozenset({408, 429})


def _response_payload(resp: requests.Response) -> Any:
    """Parsed JSON body when possible, else the (truncated) raw text."""
    try:
        return resp.json()
    except ValueError:
        return (resp.text or "")[:2000]


def _provider_message(payload: Any, status_code: int) -> str:
    """Extract the provider's own error text without rewording it."""
    if isinstance(payload, Mapping):
        parts: list[str] = []
        for msg in payload.get("errorMessages") or ():
            parts.append(str(msg))
        errors = payload.get("errors")
        if isinstance(errors, Mapping):
            parts.extend(f"{field}: {msg}" for field, msg in errors.items())
        if not parts:
            for key in ("error_description", "message", "error"):
                if payload.get(key):
                    parts.append(str(payload[key]))
                    break
        if parts:
            return "; ".join(parts)
    elif isinstance(payload, str) and payload.strip():
        return payload.strip()
    return f"HTTP {status_code}"


def _classify(status_code: int, payload: Any) -> BridgeError:
    message = _provider_message(payload, status_code)
    if status_code == 401:
        return AuthError(message, status_code=status_code, payload=payload)
    if status_code in _TRANSIENT_STATUS or status_code >= 500:
        return TransportError(message, status_code=status_code, payload=payload)
    return ProviderRejection(message, status_code=status_code, payload=payload)


class OAuthTokenManager:
    """Owns the Atlassian authorization-code exchange and refresh grants."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        auth_base_url: str = DEFAULT_AUTH_BASE_URL,
        api_base_url: str = DEFAULT_API_BASE_URL,
        scopes: Iterable[str] = DEFAULT_SCOPES,
        product: str = "jira",
        session: requests.Session | None = None,
        timeout: float | tuple[float, float] = DEFAULT_TIMEOUT,
        clock: Clock = default_clock,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.auth_base_url = auth_base_url.rstrip("/")
        self.api_base_url = api_base_url.rstrip("/")
        self.scopes = tuple(scopes)
        self.product = product
        self.session = session or requests.Session()
        self.timeout = timeout
        self.clock = clock

    @classmethod
    def from_config(cls, config: Any, **overrides: Any) -> "OAuthTokenManager":
        """Build from a :class:`jira_bridge.config.BridgeConfig`."""
        kwargs: dict[str, Any] = {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "redirect_uri": config.redirect_uri,
            "auth_base_url": config.auth_base_url,
            "api_base_url": config.api_base_url,
            "timeout": config.timeout,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def token_url(self) -> str:
        return f"{self.auth_base_url}/oauth/token"

    def _issue_url(self, tenant_id: str, record_key: str = "") -> str:
        site = quote(tenant_id, safe="")
        base = f"{self.api_base_url}/ex/{self.product}/{site}/rest/api/3/issue"
        return f"{base}/{quote(record_key, safe='')}" if record_key else base

    # ------------------------------------------------------------------ #
    # Authorization                                                      #
    # ------------------------------------------------------------------ #
    def build_authorization_request(self, state: str | None = None) -> AuthorizationRequest:
        """Return the provider authorize URL and the state it is bound to.

        The state is generated when not supplied; persisting and verifying it
        is the caller's responsibility.
        """
        state = state or generate_state()
        params = {
            "audience": AUDIENCE,
            "client_id": self.client_id,
            "scope": " ".join(self.scopes),
            "redirect_uri": self.redirect_uri,
            "state": state,
            "response_type": "code",
            "prompt": "consent",
        }
        url = f"{self.auth_base_url}/authorize?{urlencode(params)}"
        _LOG.debug("Built authorize URL state=%s", mask_sensitive(state, 6))
        return AuthorizationRequest(url=url, state=state)

    def exchange_code(
        self, code: str, *, principal_id: str = DEFAULT_PRINCIPAL
    ) -> CallResult[OAuthCredential]:
        """Exchange a single-use authorization *code* for a credential."""
        result = self._token_grant(
            {
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        if not result.ok:
            _LOG.warning("Authorization code exchange failed: %s", result.error)
            return CallResult.failure(result.error)  # type: ignore[arg-type]

        data = result.value or {}
        obtained_at = int(self.clock())
        credential = OAuthCredential(
            principal_id=principal_id,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at_from(data.get("expires_in"), clock=self.clock),
            obtained_at=obtained_at,
            scope=data.get("scope"),
        )
        _LOG.info(
            "Exchanged OAuth code for principal=%s (expires in %ss)",
            principal_id,
            credential.ttl,
        )
        return CallResult.success(credential)

    def refresh(self, credential: OAuthCredential) -> CallResult[OAuthCredential]:
        """Run the refresh grant; on success return the full replacement."""
        if not credential.refresh_token:
            return CallResult.failure(
                AuthError("credential has no refresh token; re-authorization required")
            )
        result = self._token_grant(
            {
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": credential.refresh_token,
            }
        )
        if not result.ok:
            _LOG.warning(
                "Refresh failed for principal=%s: %s",
                credential.principal_id,
                result.error,
            )
            return CallResult.failure(result.error)  # type: ignore[arg-type]

        data = result.value or {}
        new_credential = credential.refreshed(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at_from(data.get("expires_in"), clock=self.clock),
            obtained_at=int(self.clock()),
            scope=data.get("scope"),
        )
        _LOG.info(
            "Refreshed access token for principal=%s (expires in %ss)",
            credential.principal_id,
            new_credential.ttl,
        )
        return CallResult.success(new_credential)

    # ------------------------------------------------------------------ #
    # Resource discovery & record calls                                  #
    # ------------------------------------------------------------------ #
    def list_accessible_resources(self, access_token: str) -> CallResult[list[AccessibleResource]]:
        url = f"{self.api_base_url}/oauth/token/accessible-resources"
        result = self._api("GET", url, access_token)
        if not result.ok:
            return CallResult.failure(result.error)  # type: ignore[arg-type]
        items = result.value if isinstance(result.value, list) else []
        return CallResult.success([AccessibleResource.from_payload(item) for item in items])

    def fetch_record(
        self,
        access_token: str,
        tenant_id: str,
        record_key: str,
        *,
        fields: str | None = None,
    ) -> CallResult[dict[str, Any]]:
        return self._api(
            "GET",
            self._issue_url(tenant_id, record_key),
            access_token,
            params={"fields": fields or snapshot_fields_param()},
        )

    def search_records(
        self,
        access_token: str,
        tenant_id: str,
        jql: str,
        *,
        max_results: int = 50,
        fields: str | None = None,
    ) -> CallResult[dict[str, Any]]:
        site = quote(tenant_id, safe="")
        url = f"{self.api_base_url}/ex/{self.product}/{site}/rest/api/3/search"
        return self._api(
            "GET",
            url,
            access_token,
            params={
                "jql": jql,
                "maxResults": max_results,
                "fields": fields or snapshot_fields_param(),
            },
        )

    def update_record(
        self,
        access_token: str,
        tenant_id: str,
        record_key: str,
        field_map: Mapping[str, Any],
    ) -> CallResult[None]:
        result = self._api(
            "PUT",
            self._issue_url(tenant_id, record_key),
            access_token,
            json_body={"fields": dict(field_map)},
        )
        if not result.ok:
            return CallResult.failure(result.error)  # type: ignore[arg-type]
        return CallResult.success(None)

    # ---------------- internal helpers --------------------------------- #
    def _token_grant(self, payload: dict[str, str]) -> CallResult[dict[str, Any]]:
        grant = payload.get("grant_type", "?")
        try:
            resp = self.session.request(
                "POST",
                self.token_url,
                json=payload,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return CallResult.failure(TransportError(f"Token request ({grant}) failed: {exc}"))

        body = _response_payload(resp)
        if not resp.ok:
            message = _provider_message(body, resp.status_code)
            error_cls = TransportError if resp.status_code >= 500 else AuthError
            return CallResult.failure(
                error_cls(message, status_code=resp.status_code, payload=body)
            )
        if not isinstance(body, Mapping) or not body.get("access_token"):
            return CallResult.failure(
                AuthError("Token response missing access_token", status_code=resp.status_code)
            )
        return CallResult.success(dict(body))

    def _api(
        self,
        method: str,
        url: str,
        access_token: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
    ) -> CallResult[Any]:
        if not access_token:
            return CallResult.failure(AuthError("no access token supplied"))
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        if json_body is not None:
            headers["Content-Type"] = "application/json"
        try:
            resp = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            return CallResult.failure(TransportError(f"{method} {url} failed: {exc}"))

        if resp.status_code == 204:
            return CallResult.success(None)
        body = _response_payload(resp)
        if not resp.ok:
            error = _classify(resp.status_code, body)
            _LOG.debug("%s %s -> %s (%s)", method, url, resp.status_code, error.kind)
            return CallResult.failure(error)
        return CallResult.success(body)
