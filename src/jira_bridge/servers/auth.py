"""Browser-based OAuth endpoints for the server-side credential.

Handlers are intentionally thin:

1. Parse and validate HTTP-layer parameters.
2. Delegate to :class:`~jira_bridge.oauth.manager.OAuthTokenManager` and the
   token store held by the shared :class:`MainAppContext`.
3. Return an appropriate Starlette ``Response`` type.

The base path is configurable (default: ``/auth``) so that reverse-proxies can
mount the application under arbitrary prefixes.

SECURITY NOTE
-------------
• No raw secrets (state, authorization codes, access / refresh tokens, client
  secrets) are ever logged.
• The ``state`` value lives only in an ``HttpOnly`` cookie between the start
  and callback requests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from jira_bridge.oauth.models import OAuthCredential, choose_tenant
from jira_bridge.oauth.state import STATE_COOKIE, STATE_COOKIE_MAX_AGE, states_match
from jira_bridge.servers.context import MainAppContext, get_app_context

if TYPE_CHECKING:  # pragma: no cover
    from jira_bridge.servers.main import BridgeMCP  # circular – only for typing

_LOG = logging.getLogger("jira-bridge.auth.routes")


def _html_page(title: str, body: str, status: int = 200) -> HTMLResponse:
    """Return a tiny success / error HTML page."""
    content = (
        "<!doctype html><html lang='en'>"
        "<head><meta charset='utf-8'><title>"
        f"{title}</title></head><body><h1>{title}</h1><p>{body}</p></body></html>"
    )
    return HTMLResponse(content, status_code=status)


def _authorize(ctx: MainAppContext, code: str) -> OAuthCredential:
    """Exchange *code*, pick the tenant and persist the credential.

    Raises the classified error on any failure so the callback can map it.
    """
    principal_id = ctx.config.principal_id
    exchanged = ctx.manager.exchange_code(code, principal_id=principal_id)
    if not exchanged.ok or exchanged.value is None:
        raise exchanged.error  # type: ignore[misc]
    credential = exchanged.value

    cloud_id = ctx.config.cloud_id
    if not cloud_id:
        resources = ctx.manager.list_accessible_resources(credential.access_token)
        if not resources.ok:
            raise resources.error  # type: ignore[misc]
        tenant = choose_tenant(resources.value or [])
        if tenant is None:
            raise ValueError("the authorised account has no accessible Jira site")
        cloud_id = tenant.id

    credential = credential.with_cloud_id(cloud_id)
    ctx.tokens.put(principal_id, credential)
    return credential


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #
def register_auth_routes(
    app: "BridgeMCP",
    *,
    base_path: str = "/auth",
    context_provider: Callable[[], MainAppContext] = get_app_context,
) -> None:
    """Attach the OAuth endpoints to *app* under *base_path*."""

    # ----- GET /auth/atlassian/start -------------------------------------- #
    @app.custom_route(f"{base_path}/atlassian/start", methods=["GET"])
    async def _start_oauth(request: Request) -> Response:  # noqa: D401
        ctx = context_provider()
        if not ctx.manager.configured:
            return JSONResponse(
                {"error": "ATLASSIAN_CLIENT_ID and ATLASSIAN_CLIENT_SECRET are not configured"},
                status_code=400,
            )

        authorization = ctx.manager.build_authorization_request()
        _LOG.info(
            "OAuth start principal=%s correlation_id=%s",
            ctx.config.principal_id,
            getattr(request.state, "correlation_id", "-"),
        )

        # ------------------------------------------------------------------
        # Content negotiation + explicit override for browser vs API clients
        # ------------------------------------------------------------------
        fmt_param = request.query_params.get("format")
        accept_header = (request.headers.get("accept") or "").lower()

        response: Response
        if fmt_param == "json":
            response = JSONResponse({"authorize_url": authorization.url})
        elif fmt_param == "redirect" or "text/html" in accept_header:
            # 303 See Other for GET safety across methods
            response = RedirectResponse(authorization.url, status_code=303)
        else:
            response = JSONResponse({"authorize_url": authorization.url})

        response.set_cookie(
            STATE_COOKIE,
            authorization.state,
            max_age=STATE_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=request.url.scheme == "https",
        )
        return response

    # ----- GET /auth/atlassian/callback ----------------------------------- #
    @app.custom_route(f"{base_path}/atlassian/callback", methods=["GET"])
    async def _oauth_callback(request: Request) -> Response:  # noqa: D401
        # Check for provider-side errors first (e.g., invalid_scope, access_denied)
        oauth_error = request.query_params.get("error")
        if oauth_error:
            description = request.query_params.get("error_description", "")
            return _html_page(
                "Authorization error",
                f"{oauth_error}: {description}" if description else oauth_error,
                400,
            )

        code = request.query_params.get("code")
        state = request.query_params.get("state")
        if not code or not state:
            return _html_page("Missing parameters", "code or state missing", 400)

        if not states_match(request.cookies.get(STATE_COOKIE), state):
            _LOG.warning(
                "OAuth state mismatch correlation_id=%s",
                getattr(request.state, "correlation_id", "-"),
            )
            return _html_page(
                "Authorization failed", "state mismatch; restart the authorization", 400
            )

        ctx = context_provider()
        try:
            credential = await run_in_threadpool(_authorize, ctx, code)
        except Exception as exc:  # broad: mapped to user-visible failure
            _LOG.warning("OAuth callback error: %s", exc, exc_info=True)
            return _html_page("Authorization failed", str(exc), 400)

        _LOG.info(
            "OAuth success principal=%s cloud_id=%s correlation_id=%s",
            credential.principal_id,
            credential.cloud_id,
            getattr(request.state, "correlation_id", "-"),
        )
        response = _html_page("Authorization successful", "You may close this window.")
        response.delete_cookie(STATE_COOKIE)
        return response

    # ----- GET /auth/status ---------------------------------------------- #
    @app.custom_route(f"{base_path}/status", methods=["GET"])
    async def _status(request: Request) -> Response:  # noqa: D401
        ctx = context_provider()
        principal_id = ctx.config.principal_id
        credential = ctx.tokens.get(principal_id)
        return JSONResponse(
            {
                "principal_id": principal_id,
                "connected": credential is not None,
                "expired": credential.is_expired(clock=ctx.oauth.clock) if credential else None,
                "cloud_id": credential.cloud_id if credential else None,
            }
        )

    # ----- POST /auth/atlassian/disconnect -------------------------------- #
    @app.custom_route(f"{base_path}/atlassian/disconnect", methods=["POST"])
    async def _disconnect(request: Request) -> Response:  # noqa: D401
        ctx = context_provider()
        ctx.tokens.delete(ctx.config.principal_id)
        _LOG.info(
            "Disconnected principal=%s correlation_id=%s",
            ctx.config.principal_id,
            getattr(request.state, "correlation_id", "-"),
        )
        return Response(status_code=204)
