"""Typed, immutable records used by the credential lifecycle."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Final, Mapping

from jira_bridge.oauth.clock import Clock, default_clock

DEFAULT_PRINCIPAL: Final[str] = "system"


@dataclass(frozen=True, slots=True)
class OAuthCredential:
    """One OAuth credential set owned by a logical principal.

    ``expires_at`` is the authoritative liveness check.  Instances are never
    mutated; a refresh produces a complete replacement via :meth:`refreshed`.
    """

    principal_id: str
    access_token: str
    expires_at: int
    refresh_token: str | None = None
    obtained_at: int = 0
    scope: str | None = None
    cloud_id: str | None = None

    def is_expired(self, *, clock: Clock = default_clock, leeway: int = 0) -> bool:
        """Return *True* once ``now + leeway >= expires_at``."""
        return clock() + leeway >= self.expires_at

    @property
    def ttl(self) -> int:
        """Seconds between *obtained_at* and *expires_at*."""
        return self.expires_at - self.obtained_at

    def refreshed(
        self,
        *,
        access_token: str,
        expires_at: int,
        obtained_at: int,
        refresh_token: str | None = None,
        scope: str | None = None,
    ) -> "OAuthCredential":
        """Return the full replacement triple produced by a refresh grant.

        The refresh token is rotated only when the provider sent a new one.
        """
        return replace(
            self,
            access_token=access_token,
            expires_at=expires_at,
            obtained_at=obtained_at,
            refresh_token=refresh_token or self.refresh_token,
            scope=scope or self.scope,
        )

    def with_cloud_id(self, cloud_id: str | None) -> "OAuthCredential":
        return replace(self, cloud_id=cloud_id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OAuthCredential":
        return cls(
            principal_id=str(data["principal_id"]),
            access_token=str(data["access_token"]),
            expires_at=int(data["expires_at"]),
            refresh_token=data.get("refresh_token"),
            obtained_at=int(data.get("obtained_at") or 0),
            scope=data.get("scope"),
            cloud_id=data.get("cloud_id"),
        )


@dataclass(frozen=True, slots=True)
class AccessibleResource:
    """A Jira site (tenant) the access token is authorised for."""

    id: str
    name: str = ""
    url: str = ""
    scopes: tuple[str, ...] = field(default_factory=tuple)
    avatar_url: str | None = None

    def can_write(self) -> bool:
        return "write:jira-work" in self.scopes

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "AccessibleResource":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            scopes=tuple(data.get("scopes") or ()),
            avatar_url=data.get("avatarUrl"),
        )


@dataclass(frozen=True, slots=True)
class AuthorizationRequest:
    """Authorization URL plus the state the caller must bind to the browser."""

    url: str
    state: str


def choose_tenant(resources: list[AccessibleResource]) -> AccessibleResource | None:
    """Pick the site to address: first writable one, else the first listed."""
    for resource in resources:
        if resource.can_write():
            return resource
    return resources[0] if resources else None
