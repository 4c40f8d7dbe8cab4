"""Error taxonomy shared by the OAuth manager and the resolution strategies.

Only lightweight, **data-carrying** exceptions live here.  The core never
raises them across a component boundary: the manager wraps them in a
:class:`CallResult` and strategies translate them into outcomes.  They are
still real exceptions so that outer layers (scripts, HTTP handlers) may
``raise result.error`` when that reads better.

Classification
--------------
==================  ===========================================  =================
class               meaning                                      triggers fallback
==================  ===========================================  =================
TransportError      network failure, timeout, 408/429/5xx        yes (logged apart)
AuthError           credential missing, expired or rejected      yes
ChannelUnavailable  no tool channel in this execution context    yes
ProviderRejection   auth accepted, request content rejected      no
CacheMiss           no snapshot for the ticket                   yes
==================  ===========================================  =================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class BridgeError(RuntimeError):
    """Base class for every classified failure in the bridge."""

    kind: str = "error"
    triggers_fallback: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code
        # Raw provider body (parsed JSON when possible, else text).
        self.payload: Any = payload

    @property
    def message(self) -> str:
        return str(self)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        data: dict[str, Any] = {"error": self.kind, "message": str(self)}
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.payload is not None:
            data["provider_payload"] = self.payload
        return data


class TransportError(BridgeError):
    """Network failure or transient provider outage on a single attempt."""

    kind = "transport"
    triggers_fallback = True


class AuthError(BridgeError):
    """Credential missing, expired, or rejected by the provider."""

    kind = "auth"
    triggers_fallback = True


class ChannelUnavailable(BridgeError):
    """The tool-injected credential channel is absent in this context."""

    kind = "channel_unavailable"
    triggers_fallback = True


class ProviderRejection(BridgeError):
    """The provider accepted the credential but rejected the request content."""

    kind = "provider_rejection"


class CacheMiss(BridgeError):
    """No cached snapshot exists for the requested ticket."""

    kind = "cache_miss"
    triggers_fallback = True


@dataclass(frozen=True, slots=True)
class CallResult(Generic[T]):
    """Value-or-error returned by every remote call of the OAuth manager."""

    value: T | None = None
    error: BridgeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "CallResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BridgeError) -> "CallResult[T]":
        return cls(error=error)
