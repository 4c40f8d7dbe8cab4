"""Main FastMCP server setup for the Jira update bridge."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from jira_bridge.utils.environment import get_available_paths

from .auth import register_auth_routes
from .context import MainAppContext, get_app_context
from .correlation import CorrelationIdMiddleware
from .jira import jira_mcp

logger = logging.getLogger("jira-bridge.server.main")


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


@asynccontextmanager
async def main_lifespan(app: FastMCP[MainAppContext]) -> AsyncIterator[dict]:
    logger.info("Jira bridge lifespan starting...")
    app_context = get_app_context()
    paths = get_available_paths(app_context.config, app_context.tokens)
    logger.info("Available server-side paths: %s", paths)
    logger.info("Read-only mode: %s", "ENABLED" if app_context.read_only else "DISABLED")

    try:
        yield {"app_lifespan_context": app_context}
    except Exception as e:
        logger.error("Error during lifespan: %s", e, exc_info=True)
        raise
    finally:
        # drain pending usage bookkeeping; never fails shutdown
        app_context.usage.close(wait=True)
        logger.info("Jira bridge lifespan shutdown complete.")


class BridgeMCP(FastMCP[MainAppContext]):
    """FastMCP server that always runs HTTP requests through correlation ids."""

    def http_app(
        self,
        path: str | None = None,
        middleware: list[Middleware] | None = None,
        transport: Literal["streamable-http", "sse"] = "streamable-http",
        **kwargs: Any,
    ) -> "Starlette":
        final_middleware_list = [Middleware(CorrelationIdMiddleware)]
        if middleware:
            final_middleware_list.extend(middleware)
        return super().http_app(
            path=path, middleware=final_middleware_list, transport=transport, **kwargs
        )


bridge_mcp = BridgeMCP(name="Jira Update Bridge", lifespan=main_lifespan)
bridge_mcp.mount(jira_mcp, prefix="jira")
register_auth_routes(bridge_mcp)


@bridge_mcp.custom_route("/healthz", methods=["GET"], include_in_schema=False)
async def _health_check_route(request: Request) -> JSONResponse:
    return await health_check(request)
