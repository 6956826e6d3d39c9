"""GitHub OAuth login flow.

/github/login stores a random state in the session and sends the browser to
GitHub; /github/callback checks the state, exchanges the code and stores the
grant. Any failure on the way sends the browser back to the login entry point.
"""

import secrets

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from connectors.github import GitHubOAuthClient, GitHubOAuthError
from src.frontend.error_classifier import render_page
from src.frontend.errors import LoginRedirect
from src.frontend.session import (
    GITHUB_TOKEN_KEY,
    OAUTH_RETURN_TO_KEY,
    OAUTH_STATE_KEY,
    TENANT_HOST_KEY,
)
from src.frontend.settings import Settings
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

DEFAULT_RETURN_TO = "/github/configuration"


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _oauth_client(request: Request) -> GitHubOAuthClient:
    return request.app.state.github_oauth


def _is_local_path(url: str | None) -> bool:
    # Only same-site paths, never protocol-relative URLs
    return bool(url) and url.startswith("/") and not url.startswith("//")


def _state_matches(state: str | None, expected: str) -> bool:
    return secrets.compare_digest((state or "").encode("utf-8"), expected.encode("utf-8"))


async def login_redirect_handler(request: Request, exc: LoginRedirect) -> RedirectResponse:
    """Send a browser without a usable GitHub grant to the login entry point."""
    if _is_local_path(exc.return_to):
        request.session[OAUTH_RETURN_TO_KEY] = exc.return_to
    return RedirectResponse(_settings(request).login_path, status_code=302)


@router.get("/github/login")
async def github_login(request: Request):
    settings = _settings(request)
    state = secrets.token_hex(16)
    request.session[OAUTH_STATE_KEY] = state
    redirect_uri = f"{settings.app_url}{settings.callback_path}"
    return RedirectResponse(_oauth_client(request).authorize_url(redirect_uri, state), 302)


@router.get("/github/callback")
async def github_callback(request: Request):
    settings = _settings(request)
    expected_state = request.session.pop(OAUTH_STATE_KEY, None)
    state = request.query_params.get("state")
    code = request.query_params.get("code")

    if not code or not expected_state or not _state_matches(state, expected_state):
        logger.warning("OAuth callback rejected", has_code=bool(code), state_matches=False)
        return RedirectResponse(settings.login_path, status_code=302)

    try:
        token = await _oauth_client(request).exchange_code(
            code, f"{settings.app_url}{settings.callback_path}", state or ""
        )
    except (GitHubOAuthError, httpx.HTTPError) as e:
        logger.warning("OAuth code exchange failed", error=str(e))
        return RedirectResponse(settings.login_path, status_code=302)

    request.session[GITHUB_TOKEN_KEY] = token
    return_to = request.session.pop(OAUTH_RETURN_TO_KEY, None)
    logger.info("GitHub login completed")
    return RedirectResponse(
        return_to if _is_local_path(return_to) else DEFAULT_RETURN_TO, status_code=302
    )


@router.get("/github/logout")
async def github_logout(request: Request):
    """Drop the GitHub grant and the bound Jira tenant from the session."""
    request.session.pop(GITHUB_TOKEN_KEY, None)
    request.session.pop(TENANT_HOST_KEY, None)
    request.session.pop(OAUTH_RETURN_TO_KEY, None)
    return render_page(request, "logged-out.html")
