"""Central failure handling for the frontend.

ErrorClassifierMiddleware is the single place where failures become
responses. Errors raised anywhere inside it (middleware, trust gate,
handlers) are reported to diagnostics and then mapped by kind:

    UNAUTHORIZED -> 401, FORBIDDEN -> 403, NOT_FOUND -> 404,
    MAINTENANCE  -> maintenance status (503 by default),
    UNKNOWN and anything unclassified -> 400

Browser requests get a generic branded page; webhook requests get the bare
status. In exception debug mode the raw exception propagates instead.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import assert_never

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.frontend.diagnostics import MAX_REPORTED_BODY_BYTES, enrich_diagnostics
from src.frontend.errors import ErrorKind, IntegrationError
from src.frontend.settings import Settings
from src.frontend.trust_gate import TrustDomain
from src.jira.lifecycle_routes import LIFECYCLE_PATH_PREFIX
from src.utils.logging import clear_log_context, get_logger

logger = get_logger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

PAGE_TITLE = "GitHub + Jira integration"
ERROR_TEMPLATE = "github-error.html"
MAINTENANCE_TEMPLATE = "maintenance.html"

# Framework HTTP errors (unmatched routes, wrong methods) by status code
HTTP_ERROR_KINDS = {
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
}


@dataclass(frozen=True)
class ErrorResponse:
    status_code: int
    template: str


def classify(kind: ErrorKind, settings: Settings) -> ErrorResponse:
    match kind:
        case ErrorKind.UNAUTHORIZED:
            return ErrorResponse(401, ERROR_TEMPLATE)
        case ErrorKind.FORBIDDEN:
            return ErrorResponse(403, ERROR_TEMPLATE)
        case ErrorKind.NOT_FOUND:
            return ErrorResponse(404, ERROR_TEMPLATE)
        case ErrorKind.MAINTENANCE:
            return ErrorResponse(settings.maintenance_status_code, MAINTENANCE_TEMPLATE)
        case ErrorKind.UNKNOWN:
            return ErrorResponse(400, ERROR_TEMPLATE)
        case _:
            assert_never(kind)


def error_kind(exc: BaseException) -> ErrorKind:
    return exc.kind if isinstance(exc, IntegrationError) else ErrorKind.UNKNOWN


def render_page(request: Request, template: str, status_code: int = 200, **context) -> Response:
    return templates.TemplateResponse(
        request, template, {"title": PAGE_TITLE, **context}, status_code=status_code
    )


def is_webhook_request(request: Request) -> bool:
    # Maintenance fails lifecycle callbacks before the trust gate tags the request
    if getattr(request.state, "trust_domain", None) is TrustDomain.TRACKER_WEBHOOK:
        return True
    return request.url.path.startswith(LIFECYCLE_PATH_PREFIX)


def render_error(request: Request, kind: ErrorKind, settings: Settings) -> Response:
    classified = classify(kind, settings)
    if is_webhook_request(request):
        # Jira only looks at the status of a callback response
        return Response(status_code=classified.status_code)
    return render_page(request, classified.template, classified.status_code)


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Hand request validation failures to the classifier as UNKNOWN."""
    raise IntegrationError(ErrorKind.UNKNOWN, "Request validation failed", cause=exc) from exc


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Hand framework HTTP errors to the classifier so they get the branded page."""
    kind = HTTP_ERROR_KINDS.get(exc.status_code, ErrorKind.UNKNOWN)
    raise IntegrationError(kind, exc.detail, cause=exc) from exc


class ErrorClassifierMiddleware:
    def __init__(self, app: ASGIApp, settings: Settings):
        self.app = app
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        clear_log_context()
        body = bytearray()
        response_started = False

        async def recording_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request" and len(body) < MAX_REPORTED_BODY_BYTES:
                body.extend(message.get("body", b""))
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, recording_receive, tracking_send)
        except Exception as exc:
            request = Request(scope)
            kind = error_kind(exc)

            if kind is ErrorKind.MAINTENANCE:
                logger.info("Maintenance mode active", path=request.url.path)
            else:
                logger.warning(
                    "Request failed",
                    error_kind=kind.value,
                    path=request.url.path,
                    method=request.method,
                    error=str(exc),
                    exc_info=kind is ErrorKind.UNKNOWN,
                )
                enrich_diagnostics(request, exc, bytes(body), self.settings.tenant_host_param)

            if self.settings.exception_debug_mode or response_started:
                raise

            response = render_error(request, kind, self.settings)
            await response(scope, receive, send)
