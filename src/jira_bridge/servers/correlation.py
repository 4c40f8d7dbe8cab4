"""Correlation ID middleware for request tracing.

Reuses the caller's ``X-Correlation-ID`` header or mints a UUID4 hex string,
exposes it as ``request.state.correlation_id``, publishes it through
:data:`jira_bridge.utils.logging.correlation_id_var` so log records carry it,
and echoes it on the response.
"""

from __future__ import annotations

import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from jira_bridge.utils.logging import correlation_id_var

_HEADER_NAME = "X-Correlation-ID"
_MAX_LENGTH = 128
_logger = logging.getLogger("jira-bridge.correlation")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that attaches a per-request correlation ID."""

    def __init__(self, app: ASGIApp, header_name: str = _HEADER_NAME) -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = (request.headers.get(self.header_name) or "").strip()
        correlation_id = incoming[:_MAX_LENGTH] if incoming else uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        try:
            _logger.debug("%s %s", request.method, request.url.path)
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers[self.header_name] = correlation_id
        return response
