"""Tool-injected credential channel used by the browser-side resolver.

In the browser/tool execution context the bridge has no OAuth credential;
instead an agent host injects Atlassian tools (``getJiraIssue``,
``editJiraIssue``) that carry their own credential.  Two adapters expose
them behind one :class:`ToolChannel` protocol:

* :class:`CallableToolChannel` wraps tool callables handed in by the host.
* :class:`McpToolChannel` calls the same tools on an Atlassian MCP server
  through :class:`fastmcp.Client`.

Adapters raise :mod:`jira_bridge.oauth.errors` types;
:class:`~jira_bridge.resolution.strategies.ToolChannelStrategy` turns them
into outcomes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Final, Mapping, Protocol, runtime_checkable

from fastmcp import Client

from jira_bridge.oauth.errors import ChannelUnavailable, ProviderRejection, TransportError

_LOG = logging.getLogger("jira-bridge.resolution.tool_channel")

EDIT_TOOL: Final[str] = "editJiraIssue"
GET_TOOL: Final[str] = "getJiraIssue"


@runtime_checkable
class ToolChannel(Protocol):
    def available(self) -> bool: ...

    def get_issue(self, ticket_key: str) -> Mapping[str, Any]: ...

    def edit_issue(self, ticket_key: str, fields: Mapping[str, Any]) -> Mapping[str, Any]: ...


def _check_tool_result(result: Any, ticket_key: str) -> Mapping[str, Any]:
    """Tools report content problems in-band as ``{"error": ...}``."""
    if result is None:
        return {}
    if isinstance(result, Mapping):
        if result.get("error"):
            raise ProviderRejection(str(result["error"]), payload=dict(result))
        return result
    return {"result": result, "issueKey": ticket_key}


class CallableToolChannel:
    """Channel backed by tool callables injected into this process."""

    def __init__(
        self,
        tools: Mapping[str, Callable[..., Any]] | None,
        *,
        cloud_id: str | None = None,
    ) -> None:
        self.tools = dict(tools or {})
        self.cloud_id = cloud_id

    def available(self) -> bool:
        return callable(self.tools.get(EDIT_TOOL))

    def _call(self, name: str, **arguments: Any) -> Any:
        tool = self.tools.get(name)
        if not callable(tool):
            raise ChannelUnavailable(f"tool {name!r} not available in this context")
        if self.cloud_id:
            arguments["cloudId"] = self.cloud_id
        return tool(arguments)

    def get_issue(self, ticket_key: str) -> Mapping[str, Any]:
        return _check_tool_result(self._call(GET_TOOL, issueIdOrKey=ticket_key), ticket_key)

    def edit_issue(self, ticket_key: str, fields: Mapping[str, Any]) -> Mapping[str, Any]:
        result = self._call(EDIT_TOOL, issueIdOrKey=ticket_key, fields=dict(fields))
        return _check_tool_result(result, ticket_key)


class McpToolChannel:
    """Channel that reaches the Atlassian tools over MCP.

    *target* is anything :class:`fastmcp.Client` accepts: a server URL, a
    script path or an in-process ``FastMCP`` instance.  Calls are synchronous
    wrappers and must not be made from inside a running event loop.
    """

    def __init__(self, target: Any, *, cloud_id: str | None = None, timeout: float = 30.0) -> None:
        self.target = target
        self.cloud_id = cloud_id
        self.timeout = timeout

    def _client(self) -> Client:
        return Client(self.target, timeout=self.timeout)

    async def _list_tool_names(self) -> set[str]:
        async with self._client() as client:
            tools = await client.list_tools()
        return {tool.name for tool in tools}

    async def _call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        async with self._client() as client:
            return await client.call_tool(name, arguments, raise_on_error=False)

    def available(self) -> bool:
        try:
            names = asyncio.run(self._list_tool_names())
        except Exception as exc:  # probe only: any failure means "not available"
            _LOG.info("MCP tool channel probe failed: %s", exc)
            return False
        return EDIT_TOOL in names

    def _call(self, name: str, ticket_key: str, **arguments: Any) -> Mapping[str, Any]:
        arguments["issueIdOrKey"] = ticket_key
        if self.cloud_id:
            arguments["cloudId"] = self.cloud_id
        try:
            result = asyncio.run(self._call_tool(name, arguments))
        except Exception as exc:
            raise TransportError(f"MCP tool {name} call failed: {exc}") from exc

        text = "".join(getattr(block, "text", "") for block in result.content or ())
        if result.is_error:
            raise ProviderRejection(text or f"MCP tool {name} returned an error")
        data = result.structured_content
        if data is None and text:
            try:
                data = json.loads(text)
            except ValueError:
                data = {"result": text}
        # fastmcp wraps non-object returns as {"result": ...}
        if (
            isinstance(data, Mapping)
            and set(data) == {"result"}
            and isinstance(data["result"], Mapping)
        ):
            data = data["result"]
        return _check_tool_result(data, ticket_key)

    def get_issue(self, ticket_key: str) -> Mapping[str, Any]:
        return self._call(GET_TOOL, ticket_key)

    def edit_issue(self, ticket_key: str, fields: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._call(EDIT_TOOL, ticket_key, fields=dict(fields))
