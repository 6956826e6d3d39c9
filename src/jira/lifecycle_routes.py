"""Connect lifecycle callback routes and the add-on descriptor."""

from fastapi import APIRouter, Depends, Request, Response

from src.frontend.settings import Settings
from src.frontend.trust_gate import TrustDomain, get_tenant_store, require_trust
from src.jira.models import LifecycleEvent
from src.jira.webhook_authenticator import AuthenticatedLifecycleEvent, WebhookAuthenticator
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

LIFECYCLE_PATH_PREFIX = "/jira/events/"
DESCRIPTOR_PATH = "/jira/atlassian-connect.json"
CONFIGURATION_PATH = "/jira/configuration"


async def _apply(request: Request, authenticated: AuthenticatedLifecycleEvent) -> Response:
    record = await WebhookAuthenticator(get_tenant_store(request)).apply(authenticated)
    logger.info(
        "Lifecycle event processed",
        lifecycle_event=authenticated.event.value,
        state=record.installation_state.value,
    )
    return Response(status_code=204)


# No signature check is possible here: the shared secret arrives in this payload
@router.post(f"{LIFECYCLE_PATH_PREFIX}installed", status_code=204)
async def jira_installed(
    request: Request,
    authenticated: AuthenticatedLifecycleEvent = Depends(
        require_trust(TrustDomain.TRACKER_WEBHOOK, LifecycleEvent.INSTALLED)
    ),
):
    return await _apply(request, authenticated)


@router.post(f"{LIFECYCLE_PATH_PREFIX}enabled", status_code=204)
async def jira_enabled(
    request: Request,
    authenticated: AuthenticatedLifecycleEvent = Depends(
        require_trust(TrustDomain.TRACKER_WEBHOOK, LifecycleEvent.ENABLED)
    ),
):
    return await _apply(request, authenticated)


@router.post(f"{LIFECYCLE_PATH_PREFIX}disabled", status_code=204)
async def jira_disabled(
    request: Request,
    authenticated: AuthenticatedLifecycleEvent = Depends(
        require_trust(TrustDomain.TRACKER_WEBHOOK, LifecycleEvent.DISABLED)
    ),
):
    return await _apply(request, authenticated)


@router.post(f"{LIFECYCLE_PATH_PREFIX}uninstalled", status_code=204)
async def jira_uninstalled(
    request: Request,
    authenticated: AuthenticatedLifecycleEvent = Depends(
        require_trust(TrustDomain.TRACKER_WEBHOOK, LifecycleEvent.UNINSTALLED)
    ),
):
    return await _apply(request, authenticated)


def build_descriptor(settings: Settings) -> dict:
    """Atlassian Connect descriptor advertising the lifecycle callbacks and pages."""
    return {
        "key": settings.addon_key,
        "name": settings.addon_name,
        "description": "Connect your GitHub organizations to Jira",
        "baseUrl": settings.app_url,
        "vendor": {"name": "GitHub", "url": "https://github.com"},
        "authentication": {"type": "jwt"},
        "lifecycle": {
            event.value: f"{LIFECYCLE_PATH_PREFIX}{event.value}" for event in LifecycleEvent
        },
        "apiVersion": 1,
        "scopes": ["READ", "WRITE", "DELETE"],
        "modules": {
            "postInstallPage": {
                "key": "github-post-install-page",
                "name": {"value": "GitHub Configuration"},
                "url": CONFIGURATION_PATH,
            },
        },
    }


@router.get(DESCRIPTOR_PATH)
async def atlassian_connect_descriptor(request: Request):
    return build_descriptor(request.app.state.settings)
