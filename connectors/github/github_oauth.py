"""GitHub OAuth web flow and user-token verification."""

from typing import Any
from urllib.parse import urlencode

import httpx

from src.frontend.errors import ErrorKind
from src.frontend.verification import VerificationResult
from src.utils.http_auth import TokenAuth
from src.utils.logging import get_logger

logger = get_logger(__name__)

GITHUB_WEB_URL = "https://github.com"
GITHUB_API_URL = "https://api.github.com"
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0


class GitHubOAuthError(Exception):
    """GitHub answered an OAuth call with something other than a usable result."""


class GitHubOAuthClient:
    """Thin httpx client for the OAuth endpoints used by the login flow.

    A custom transport can be passed for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        web_url: str = GITHUB_WEB_URL,
        api_url: str = GITHUB_API_URL,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.transport = transport
        self.timeout = timeout
        self.web_url = web_url
        self.api_url = api_url

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout, **kwargs)

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        """URL of the GitHub consent screen for this app."""
        params = {"client_id": self.client_id, "redirect_uri": redirect_uri, "state": state}
        return f"{self.web_url}/login/oauth/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str, state: str) -> str:
        """Exchange an authorization code for a user access token.

        Raises:
            GitHubOAuthError: If GitHub does not return an access token
        """
        async with self._client() as client:
            response = await client.post(
                f"{self.web_url}/login/oauth/access_token",
                headers={"Accept": "application/json"},
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "state": state,
                },
            )

        if response.status_code != 200:
            raise GitHubOAuthError(f"Token exchange failed with status {response.status_code}")

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            # GitHub reports bad or expired codes as 200 with an error field
            raise GitHubOAuthError(f"Token exchange failed: {payload.get('error', 'no token')}")
        return token

    async def get_authenticated_user(self, token: str) -> dict[str, Any] | None:
        """Fetch the user owning `token`.

        Returns:
            The user payload, or None if GitHub rejects the token

        Raises:
            GitHubOAuthError: If GitHub fails for any other reason
        """
        async with self._client(auth=TokenAuth(token)) as client:
            response = await client.get(
                f"{self.api_url}/user",
                headers={"Accept": "application/vnd.github+json"},
            )

        if response.status_code == 401:
            return None
        if response.status_code != 200:
            raise GitHubOAuthError(f"GitHub user lookup failed with status {response.status_code}")
        return response.json()


class GitHubSessionVerifier:
    """Checks that the OAuth grant stored in a browser session is still valid."""

    def __init__(self, oauth_client: GitHubOAuthClient):
        self.oauth_client = oauth_client

    async def verify(self, token: str | None) -> VerificationResult:
        if not token:
            return VerificationResult.failed("No GitHub token in session", ErrorKind.UNAUTHORIZED)

        try:
            user = await self.oauth_client.get_authenticated_user(token)
        except (GitHubOAuthError, httpx.HTTPError) as e:
            logger.warning("GitHub token verification unavailable", error=str(e))
            return VerificationResult.failed(
                f"GitHub token verification failed: {e}", ErrorKind.UNKNOWN
            )

        if user is None:
            return VerificationResult.failed(
                "GitHub rejected session token", ErrorKind.UNAUTHORIZED
            )
        return VerificationResult.ok(subject=user.get("login"))
