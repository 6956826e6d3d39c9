"""Browser-facing configuration routes.

Each route declares its trust domain; mutating routes also require an
anti-forgery token. The handlers only render or acknowledge: what the
configuration screens do with the data lives behind them.
"""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse

from src.frontend.csrf import issue_csrf_token, require_csrf
from src.frontend.error_classifier import render_page
from src.frontend.errors import ErrorKind, IntegrationError
from src.frontend.principal import GitHubUser, TrackerTenant, get_principal
from src.frontend.session import get_tenant_host
from src.frontend.trust_gate import TrustDomain, require_trust
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

github_session = require_trust(TrustDomain.GITHUB_SESSION)
tracker_session = require_trust(TrustDomain.TRACKER_SESSION_BOUND)


def _principal_host(request: Request) -> str | None:
    principal = get_principal(request)
    return principal.host if isinstance(principal, TrackerTenant) else None


def _github_page(request: Request, template: str, user: GitHubUser, **context) -> Response:
    return render_page(
        request,
        template,
        user_login=user.login,
        tenant_host=get_tenant_host(request),
        csrf_token=issue_csrf_token(request),
        **context,
    )


@router.get("/github/setup")
async def github_setup(request: Request, user: GitHubUser = Depends(github_session)):
    return _github_page(request, "github-setup.html", user)


@router.post("/github/setup", dependencies=[Depends(github_session), Depends(require_csrf)])
async def github_setup_submit(request: Request):
    return RedirectResponse("/github/configuration", status_code=303)


@router.get("/github/configuration")
async def github_configuration(request: Request, user: GitHubUser = Depends(github_session)):
    return _github_page(request, "github-configuration.html", user)


@router.post(
    "/github/configuration", dependencies=[Depends(github_session), Depends(require_csrf)]
)
async def github_configuration_submit(request: Request):
    logger.info("GitHub configuration submitted", tenant_host=get_tenant_host(request))
    return RedirectResponse("/github/configuration", status_code=303)


@router.get("/github/installations")
async def github_installations(request: Request, user: GitHubUser = Depends(github_session)):
    return _github_page(request, "github-installations.html", user)


@router.get("/github/subscriptions/{installation_id}")
async def github_subscriptions(
    request: Request, installation_id: int, user: GitHubUser = Depends(github_session)
):
    return _github_page(
        request, "github-subscriptions.html", user, installation_id=installation_id
    )


@router.post(
    "/github/subscription", dependencies=[Depends(github_session), Depends(require_csrf)]
)
async def github_subscription_delete(request: Request):
    return RedirectResponse("/github/configuration", status_code=303)


@router.get("/jira/configuration")
async def jira_configuration(request: Request, tenant: TrackerTenant = Depends(tracker_session)):
    return render_page(
        request,
        "jira-configuration.html",
        tenant_host=tenant.host,
        csrf_token=issue_csrf_token(request),
    )


@router.delete(
    "/jira/configuration", dependencies=[Depends(tracker_session), Depends(require_csrf)]
)
async def jira_configuration_delete(request: Request):
    logger.info("Jira configuration removal requested", tenant_host=_principal_host(request))
    return Response(status_code=204)


@router.post("/jira/sync", dependencies=[Depends(tracker_session), Depends(require_csrf)])
async def jira_sync(request: Request):
    logger.info("Jira sync retry requested", tenant_host=_principal_host(request))
    return Response(status_code=202)


# Mounted only in exception debug mode
debug_router = APIRouter()


@debug_router.get("/boom")
async def boom():
    raise RuntimeError("Boom")


@debug_router.get("/boom/integration")
async def boom_integration():
    raise IntegrationError(ErrorKind.UNKNOWN, "Boom")
