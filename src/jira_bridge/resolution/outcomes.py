"""Outcome vocabulary shared by every resolver and strategy.

``ResolutionOutcome`` is the *only* channel of information between the
resolver and its caller.  Strategies additionally use :class:`Unavailable`
to say "I cannot act in this execution context", which the resolver never
hands back to callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Mapping, Union

from jira_bridge.fields import DEFAULT_ACTION
from jira_bridge.oauth.errors import BridgeError

if TYPE_CHECKING:  # pragma: no cover
    from jira_bridge.resolution.cache import TicketSnapshot

MANUAL_UPDATE_REASON: Final[str] = "automated update unavailable; manual update required"
NO_READ_PATH_REASON: Final[str] = "no resolution path available in this execution context"


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    if not isinstance(mapping, Mapping):
        raise ValueError(f"field map must be a mapping, got {type(mapping).__name__}")
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True, slots=True)
class UpdateRequest:
    """A desired mutation of one ticket.

    ``requested_action`` is an audit tag only; it never changes resolution.
    """

    ticket_key: str
    field_map: Mapping[str, Any]
    requested_action: str = DEFAULT_ACTION

    def __post_init__(self) -> None:
        if not self.ticket_key:
            raise ValueError("ticket_key is required")
        object.__setattr__(self, "field_map", _frozen(self.field_map))

    @property
    def is_noop(self) -> bool:
        return not self.field_map


@dataclass(frozen=True, slots=True)
class Success:
    source: str
    updated_field_keys: tuple[str, ...] = ()
    snapshot: TicketSnapshot | None = None
    record: Mapping[str, Any] | None = None

    ok = True

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": True, "source": self.source}
        if self.updated_field_keys:
            data["updatedFields"] = list(self.updated_field_keys)
        if self.snapshot is not None:
            data["snapshot"] = self.snapshot.to_dict()
        if self.record is not None:
            data["record"] = dict(self.record)
        return data


@dataclass(frozen=True, slots=True)
class Failure:
    reason: str
    ticket_key: str | None = None
    error_kind: str | None = None
    requires_manual_update: bool = False
    field_map: Mapping[str, Any] | None = None
    provider_payload: Any = None

    ok = False

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": False, "error": self.reason}
        if self.ticket_key:
            data["issueKey"] = self.ticket_key
        if self.error_kind:
            data["errorKind"] = self.error_kind
        if self.requires_manual_update:
            data["requiresManualUpdate"] = True
        if self.field_map is not None:
            data["fields"] = dict(self.field_map)
        if self.provider_payload is not None:
            data["providerPayload"] = self.provider_payload
        return data


@dataclass(frozen=True, slots=True)
class RequiresRemoteBridge:
    """The write must be retried in the browser/tool execution context."""

    ticket_key: str
    field_map: Mapping[str, Any]
    requested_action: str = DEFAULT_ACTION

    ok = False

    def to_request(self) -> UpdateRequest:
        return UpdateRequest(self.ticket_key, self.field_map, self.requested_action)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "jiraUpdateRequired": {
                "issueKey": self.ticket_key,
                "fields": dict(self.field_map),
                "action": self.requested_action,
            },
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RequiresRemoteBridge":
        """Accept either the full outcome payload or its ``jiraUpdateRequired`` part."""
        if not isinstance(payload, Mapping):
            raise ValueError("bridged update payload must be a mapping")
        body = payload.get("jiraUpdateRequired", payload)
        if not isinstance(body, Mapping) or not body.get("issueKey"):
            raise ValueError("payload carries no bridged update")
        fields = body.get("fields") or {}
        if not isinstance(fields, Mapping):
            raise ValueError("bridged update fields must be a mapping")
        return cls(
            ticket_key=str(body["issueKey"]),
            field_map=dict(fields),
            requested_action=str(body.get("action") or DEFAULT_ACTION),
        )

    @classmethod
    def from_request(cls, request: UpdateRequest) -> "RequiresRemoteBridge":
        return cls(request.ticket_key, dict(request.field_map), request.requested_action)


ResolutionOutcome = Union[Success, Failure, RequiresRemoteBridge]


@dataclass(frozen=True, slots=True)
class Unavailable:
    """A strategy could not act here; the resolver advances to the next one."""

    strategy: str
    error: BridgeError
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def reason(self) -> str:
        return f"{self.strategy}: {self.error}"


StrategyResult = Union[Success, Failure, Unavailable]


def failure_from_error(error: BridgeError, *, ticket_key: str | None = None) -> Failure:
    """Terminal failure carrying the provider's message verbatim."""
    return Failure(
        reason=str(error),
        ticket_key=ticket_key,
        error_kind=error.kind,
        provider_payload=error.payload,
    )
