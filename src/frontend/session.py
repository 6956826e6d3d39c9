"""Session keys and the middleware that binds the Jira tenant to a browser session.

The session itself is a signed cookie managed by Starlette's SessionMiddleware
(see create_app), so it must wrap every middleware in this module.
"""

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from src.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "session"

# Session keys
TENANT_HOST_KEY = "tenant_host"
GITHUB_TOKEN_KEY = "github_token"
OAUTH_STATE_KEY = "oauth_state"
OAUTH_RETURN_TO_KEY = "oauth_return_to"
CSRF_SECRET_KEY = "csrf_secret"


def get_tenant_host(request: Request) -> str | None:
    """The Jira tenant this browser is currently acting for, if any."""
    return request.session.get(TENANT_HOST_KEY)


class SessionHostBinderMiddleware:
    """Record the tenant host query parameter in the session on every request.

    Jira loads the app's pages in an iframe and appends its base URL as a
    query parameter, on authenticated and first-time visits alike. A request
    carrying the parameter always overwrites the bound host; requests without
    it leave the session untouched. This never fails a request.
    """

    def __init__(self, app: ASGIApp, param: str):
        self.app = app
        self.param = param

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and "session" in scope:
            request = Request(scope)
            tenant_host = request.query_params.get(self.param)
            if tenant_host:
                if request.session.get(TENANT_HOST_KEY) != tenant_host:
                    logger.debug("Binding tenant host to session", tenant_host=tenant_host)
                request.session[TENANT_HOST_KEY] = tenant_host

        await self.app(scope, receive, send)
