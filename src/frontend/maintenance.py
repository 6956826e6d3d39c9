"""Maintenance mode short-circuit."""

from fastapi import APIRouter, Request
from starlette.types import ASGIApp, Receive, Scope, Send

from src.frontend.error_classifier import MAINTENANCE_TEMPLATE, render_page
from src.frontend.errors import ErrorKind, IntegrationError
from src.frontend.settings import Settings

MAINTENANCE_PATH = "/maintenance"

router = APIRouter()


class MaintenanceModeMiddleware:
    """Fail every request with MAINTENANCE while maintenance mode is on.

    Runs before any trust check, so it wins over otherwise valid credentials.
    Only the maintenance page and the exempt paths are served.
    """

    def __init__(self, app: ASGIApp, settings: Settings, exempt_paths: frozenset[str]):
        self.app = app
        self.settings = settings
        self.exempt_paths = exempt_paths | {MAINTENANCE_PATH}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] == "http"
            and self.settings.maintenance_mode
            and scope["path"] not in self.exempt_paths
        ):
            raise IntegrationError(ErrorKind.MAINTENANCE, "Service is in maintenance mode")

        await self.app(scope, receive, send)


@router.get(MAINTENANCE_PATH)
async def maintenance_page(request: Request):
    """Maintenance page, always answered with the maintenance status."""
    settings: Settings = request.app.state.settings
    return render_page(request, MAINTENANCE_TEMPLATE, settings.maintenance_status_code)
