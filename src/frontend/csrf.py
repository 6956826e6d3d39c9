"""Anti-forgery tokens for browser forms.

Each session holds a random secret. Pages that render forms embed a salted
token derived from it; state-changing browser requests must send it back as
the `_csrf` form field or a csrf header. Webhook and machine-to-machine routes
do not use this guard.
"""

import hashlib
import hmac
import secrets

from fastapi import Request

from src.frontend.errors import ErrorKind, IntegrationError
from src.frontend.session import CSRF_SECRET_KEY
from src.utils.logging import get_logger

logger = get_logger(__name__)

CSRF_FORM_FIELD = "_csrf"
CSRF_HEADERS = ("csrf-token", "x-csrf-token", "x-xsrf-token")
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_SALT_BYTES = 8


def _sign(secret: str, salt: str) -> str:
    return hmac.new(secret.encode("utf-8"), salt.encode("utf-8"), hashlib.sha256).hexdigest()


def create_token(secret: str) -> str:
    salt = secrets.token_urlsafe(_SALT_BYTES)
    return f"{salt}-{_sign(secret, salt)}"


def verify_token(secret: str | None, token: str | None) -> bool:
    if not secret or not token:
        return False
    salt, _, signature = token.rpartition("-")
    if not salt:
        return False
    return hmac.compare_digest(signature.encode("utf-8"), _sign(secret, salt).encode("utf-8"))


def issue_csrf_token(request: Request) -> str:
    """Token to embed in a rendered form, creating the session secret on first use."""
    secret = request.session.get(CSRF_SECRET_KEY)
    if not secret:
        secret = secrets.token_urlsafe(32)
        request.session[CSRF_SECRET_KEY] = secret
    return create_token(secret)


async def _submitted_token(request: Request) -> str | None:
    for header in CSRF_HEADERS:
        if header in request.headers:
            return request.headers[header]

    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        value = form.get(CSRF_FORM_FIELD)
        return value if isinstance(value, str) else None

    return request.query_params.get(CSRF_FORM_FIELD)


async def require_csrf(request: Request) -> None:
    """Dependency rejecting state-changing requests without a valid token.

    Raises:
        IntegrationError: FORBIDDEN when the token is missing or not minted for this session
    """
    settings = request.app.state.settings
    ignored = SAFE_METHODS | settings.csrf_bypass_methods
    if request.method.upper() in ignored:
        return

    token = await _submitted_token(request)
    if not verify_token(request.session.get(CSRF_SECRET_KEY), token):
        logger.warning("Anti-forgery check failed", method=request.method, path=request.url.path)
        raise IntegrationError(ErrorKind.FORBIDDEN, "invalid csrf token")
