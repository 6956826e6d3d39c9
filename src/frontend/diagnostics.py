"""Attach request context to New Relic before a failure is classified.

Strictly observational: nothing here may raise, block the response or change
the error being handled.
"""

import json
from typing import Any

import newrelic.agent
from starlette.requests import Request

from src.frontend.session import TENANT_HOST_KEY
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Request bodies larger than this are truncated before being reported
MAX_REPORTED_BODY_BYTES = 16 * 1024


def _tenant_host(request: Request, tenant_host_param: str) -> str | None:
    session = request.scope.get("session") or {}
    return session.get(TENANT_HOST_KEY) or request.query_params.get(tenant_host_param)


def _describe_body(body: bytes) -> Any:
    if not body:
        return None
    truncated = body[:MAX_REPORTED_BODY_BYTES]
    try:
        return json.loads(truncated)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return truncated.decode("utf-8", errors="replace")


def enrich_diagnostics(
    request: Request, exc: BaseException, body: bytes, tenant_host_param: str
) -> None:
    """Report tenant host and request body for a failed request."""
    try:
        tenant_host = _tenant_host(request, tenant_host_param)
        if tenant_host:
            newrelic.agent.add_custom_attribute("tenant_host", tenant_host)

        described = _describe_body(body)
        if described is not None:
            if not isinstance(described, str):
                described = json.dumps(described)
            newrelic.agent.add_custom_attribute("request_body", described)

        newrelic.agent.notice_error(error=(type(exc), exc, exc.__traceback__))
    except Exception as e:
        logger.debug("Failed to attach diagnostics", error=str(e))
