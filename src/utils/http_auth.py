"""HTTP client authentication utilities for httpx."""

import httpx


class TokenAuth(httpx.Auth):
    """Token authentication for httpx client requests.

    GitHub accepts OAuth user tokens with either the "token" or "Bearer" scheme.

    Example:
        >>> auth = TokenAuth("gho_abc123")
        >>> async with httpx.AsyncClient(auth=auth) as client:
    """

    def __init__(self, token: str, scheme: str = "Bearer"):
        self.token = token
        self.scheme = scheme

    def auth_flow(self, request: httpx.Request):
        request.headers["Authorization"] = f"{self.scheme} {self.token}"
        yield request
