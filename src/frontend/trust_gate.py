"""Route-level trust enforcement.

Every protected route declares exactly one trust domain with
`Depends(require_trust(...))`. The dependency runs the matching verifier and,
on success, attaches the principal to `request.state.principal` for this
request only. Failures are raised, never rendered here: IntegrationError goes
to the error classifier and LoginRedirect becomes a redirect to the OAuth login.
"""

import json
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from fastapi import Request
from pydantic import ValidationError

from connectors.github import GitHubSessionVerifier
from connectors.jira import JiraConnectVerifier, extract_connect_token
from src.database.tenant_records import TenantStore
from src.frontend.errors import ErrorKind, IntegrationError, LoginRedirect
from src.frontend.principal import GitHubUser, TrackerTenant
from src.frontend.session import GITHUB_TOKEN_KEY, get_tenant_host
from src.frontend.settings import Settings
from src.frontend.verification import raise_for_result
from src.jira.models import LifecycleEvent, LifecyclePayload
from src.jira.webhook_authenticator import AuthenticatedLifecycleEvent, WebhookAuthenticator
from src.utils.logging import add_log_context, get_logger
from src.utils.timeout import TimeoutError, with_timeout

logger = get_logger(__name__)


class TrustDomain(str, Enum):
    GITHUB_SESSION = "github_session"
    TRACKER_WEBHOOK = "tracker_webhook"
    TRACKER_SESSION_BOUND = "tracker_session_bound"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tenant_store(request: Request) -> TenantStore:
    store = getattr(request.app.state, "tenant_store", None)
    if store is None:
        raise IntegrationError(ErrorKind.UNKNOWN, "Tenant store is not initialized")
    return store


def get_github_verifier(request: Request) -> GitHubSessionVerifier:
    return GitHubSessionVerifier(request.app.state.github_oauth)


def request_query(request: Request) -> dict[str, list[str]]:
    """Query parameters with every value per key, as needed for the query string hash."""
    params = request.query_params
    return {key: params.getlist(key) for key in set(params.keys())}


def _return_to(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def verify_github_session(request: Request) -> GitHubUser:
    """Require a GitHub OAuth grant that GitHub still accepts.

    Raises:
        LoginRedirect: If the session has no grant or GitHub rejects it
        IntegrationError: UNKNOWN if GitHub cannot be reached in time
    """
    token = request.session.get(GITHUB_TOKEN_KEY)
    if not token:
        raise LoginRedirect(return_to=_return_to(request))

    settings = get_settings(request)
    verifier = get_github_verifier(request)
    try:
        result = await with_timeout(
            verifier.verify(token), settings.verifier_timeout_seconds, "GitHub token verification"
        )
    except TimeoutError as e:
        raise IntegrationError(ErrorKind.UNKNOWN, str(e), cause=e)

    if not result.success and result.kind is ErrorKind.UNAUTHORIZED:
        request.session.pop(GITHUB_TOKEN_KEY, None)
        raise LoginRedirect(return_to=_return_to(request))
    raise_for_result(result)

    return GitHubUser(token=token, login=result.subject)


async def verify_tracker_session(request: Request) -> TrackerTenant:
    """Require a Jira tenant bound to the session.

    A Connect JWT sent along (iframe loads carry one) must verify against
    the tenant's shared secret.

    Raises:
        IntegrationError: UNAUTHORIZED without a bound host or with a bad token,
            NOT_FOUND when a token is sent for a host with no installation
    """
    host = get_tenant_host(request)
    if not host:
        raise IntegrationError(ErrorKind.UNAUTHORIZED, "No Jira host bound to session")

    headers = dict(request.headers)
    query = request_query(request)
    if extract_connect_token(headers, query):
        record = await get_tenant_store(request).get(host)
        if record is None:
            raise IntegrationError(ErrorKind.NOT_FOUND, f"No installation on file for {host}")
        verifier = JiraConnectVerifier(allow_context_qsh=True)
        raise_for_result(
            verifier.verify(headers, request.method, request.url.path, query, record.shared_secret)
        )

    return TrackerTenant(host=host)


async def read_lifecycle_payload(request: Request) -> LifecyclePayload:
    body = await request.body()
    try:
        return LifecyclePayload.model_validate(json.loads(body or b"{}"))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise IntegrationError(ErrorKind.UNKNOWN, "Malformed lifecycle payload", cause=e)


async def verify_tracker_webhook(
    request: Request, event: LifecycleEvent
) -> AuthenticatedLifecycleEvent:
    payload = await read_lifecycle_payload(request)
    authenticator = WebhookAuthenticator(get_tenant_store(request))
    return await authenticator.authenticate(
        event,
        payload,
        headers=dict(request.headers),
        method=request.method,
        path=request.url.path,
        query=request_query(request),
    )


def require_trust(
    domain: TrustDomain, event: LifecycleEvent | None = None
) -> Callable[[Request], Awaitable[Any]]:
    """Build the dependency enforcing `domain` on a route.

    TRACKER_WEBHOOK routes also name the lifecycle event they receive.
    """
    if domain is TrustDomain.TRACKER_WEBHOOK and event is None:
        raise ValueError("Webhook routes must declare their lifecycle event")

    async def dependency(request: Request) -> Any:
        request.state.trust_domain = domain
        add_log_context(trust_domain=domain.value)

        match domain:
            case TrustDomain.GITHUB_SESSION:
                principal = await verify_github_session(request)
                result: Any = principal
            case TrustDomain.TRACKER_SESSION_BOUND:
                principal = await verify_tracker_session(request)
                result = principal
            case TrustDomain.TRACKER_WEBHOOK:
                assert event is not None
                result = await verify_tracker_webhook(request, event)
                principal = result.principal

        if isinstance(principal, TrackerTenant):
            add_log_context(tenant_host=principal.host)
        request.state.principal = principal
        return result

    return dependency
