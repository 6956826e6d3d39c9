"""Atlassian Connect JWT verification.

Jira signs every request it sends to a Connect app (lifecycle callbacks and
iframe page loads) with an HS256 JWT keyed by the tenant's shared secret. The
token is sent as `Authorization: JWT <token>` or as the `jwt` query parameter,
and its `qsh` claim binds it to the request's method, path and query string.
"""

import hashlib
from collections.abc import Mapping
from urllib.parse import quote

import jwt

from src.frontend.errors import ErrorKind
from src.frontend.verification import VerificationResult
from src.utils.logging import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
JWT_QUERY_PARAM = "jwt"
# qsh value Jira uses for tokens not bound to one request (iframe context tokens)
CONTEXT_QSH = "context-qsh"
# Allowed clock skew between Jira and us
CLOCK_LEEWAY_SECONDS = 180


def _encode_rfc3986(value: str) -> str:
    return quote(value, safe="~")


def canonical_uri(path: str) -> str:
    """Canonical path component of the query string hash."""
    if not path:
        return "/"
    uri = path if path.startswith("/") else f"/{path}"
    if len(uri) > 1:
        uri = uri.rstrip("/")
    return uri.replace("&", "%26")


def canonical_query(query: Mapping[str, list[str]]) -> str:
    """Canonical query component: sorted, encoded, jwt parameter excluded."""
    parts = []
    for key in sorted(query):
        if key == JWT_QUERY_PARAM:
            continue
        values = ",".join(_encode_rfc3986(value) for value in sorted(query[key]))
        parts.append(f"{_encode_rfc3986(key)}={values}")
    return "&".join(parts)


def create_query_string_hash(method: str, path: str, query: Mapping[str, list[str]]) -> str:
    """Compute the `qsh` claim for a request."""
    canonical_request = f"{method.upper()}&{canonical_uri(path)}&{canonical_query(query)}"
    return hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()


def extract_connect_token(
    headers: Mapping[str, str], query: Mapping[str, list[str]]
) -> str | None:
    """Extract the Connect JWT from the Authorization header or the jwt query parameter."""
    authorization = headers.get("authorization")
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.upper() == "JWT" and token.strip():
            return token.strip()

    values = query.get(JWT_QUERY_PARAM)
    if values and values[0]:
        return values[0]
    return None


def decode_connect_jwt(
    token: str,
    shared_secret: str,
    *,
    method: str,
    path: str,
    query: Mapping[str, list[str]],
    allow_context_qsh: bool = False,
) -> dict:
    """Verify signature, expiry and request binding of a Connect JWT.

    Raises:
        jwt.InvalidTokenError: If any check fails
    """
    claims = jwt.decode(
        token,
        shared_secret,
        algorithms=[JWT_ALGORITHM],
        options={"require": ["iss", "iat", "exp"], "verify_aud": False},
        leeway=CLOCK_LEEWAY_SECONDS,
    )

    qsh = claims.get("qsh")
    if not qsh:
        raise jwt.MissingRequiredClaimError("qsh")
    if allow_context_qsh and qsh == CONTEXT_QSH:
        return claims
    if qsh != create_query_string_hash(method, path, query):
        raise jwt.InvalidTokenError("Query string hash does not match request")
    return claims


class JiraConnectVerifier:
    """Verifies Connect JWTs against the tenant's shared secret."""

    def __init__(self, allow_context_qsh: bool = False):
        self.allow_context_qsh = allow_context_qsh

    def verify(
        self,
        headers: dict[str, str],
        method: str,
        path: str,
        query: dict[str, list[str]],
        shared_secret: str,
    ) -> VerificationResult:
        token = extract_connect_token(headers, query)
        if not token:
            return VerificationResult.failed("Missing Connect JWT", ErrorKind.UNAUTHORIZED)

        try:
            claims = decode_connect_jwt(
                token,
                shared_secret,
                method=method,
                path=path,
                query=query,
                allow_context_qsh=self.allow_context_qsh,
            )
        except jwt.InvalidTokenError as e:
            logger.warning("Connect JWT rejected", reason=str(e))
            return VerificationResult.failed(f"Invalid Connect JWT: {e}", ErrorKind.UNAUTHORIZED)

        return VerificationResult.ok(subject=claims.get("iss"))
