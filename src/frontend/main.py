"""GitHub + Jira integration frontend service."""

import datetime
from contextlib import asynccontextmanager

import newrelic.agent

# Agent config comes from NEW_RELIC_CONFIG_FILE / NEW_RELIC_ENVIRONMENT / NEW_RELIC_* variables
newrelic.agent.initialize()

import asyncpg
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from connectors.github import GitHubOAuthClient
from src.database.tenant_records import TenantRecordsRepository, TenantStore
from src.frontend import maintenance, oauth_routes, routes
from src.frontend.error_classifier import (
    ErrorClassifierMiddleware,
    http_exception_handler,
    request_validation_error_handler,
)
from src.frontend.errors import LoginRedirect
from src.frontend.maintenance import MaintenanceModeMiddleware
from src.frontend.session import SESSION_COOKIE_NAME, SessionHostBinderMiddleware
from src.frontend.settings import Settings, load_settings
from src.jira import lifecycle_routes
from src.jira.lifecycle_routes import DESCRIPTOR_PATH
from src.utils.config import get_config_value, get_control_database_url
from src.utils.logging import get_logger, get_uvicorn_log_config

logger = get_logger(__name__)

LIVENESS_PATH = "/health/live"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the control database pool unless a tenant store was injected."""
    logger.info("🚀 Starting integration frontend...")

    pool: asyncpg.Pool | None = None
    if getattr(app.state, "tenant_store", None) is None:
        pool = await asyncpg.create_pool(
            get_control_database_url(), min_size=1, max_size=5, timeout=30
        )
        repository = TenantRecordsRepository(pool)
        await repository.ensure_schema()
        app.state.tenant_store = repository
        logger.info("Control database pool initialized")

    logger.info("✅ Integration frontend startup complete")

    yield

    logger.info("🛑 Shutting down integration frontend...")
    if pool is not None:
        await pool.close()
        logger.info("Control database pool closed")


def create_app(
    settings: Settings | None = None,
    tenant_store: TenantStore | None = None,
    github_oauth: GitHubOAuthClient | None = None,
) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(
        title="GitHub + Jira integration",
        description="Browser, OAuth and Jira lifecycle frontend for the GitHub integration",
        version="1.0.0",
        debug=settings.exception_debug_mode,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tenant_store = tenant_store
    app.state.github_oauth = github_oauth or GitHubOAuthClient(
        settings.github_client_id,
        settings.github_client_secret,
        timeout=settings.verifier_timeout_seconds,
    )

    app.add_exception_handler(LoginRedirect, oauth_routes.login_redirect_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Each add_middleware call wraps the previous ones, so SessionMiddleware runs first
    app.add_middleware(
        MaintenanceModeMiddleware,
        settings=settings,
        exempt_paths=frozenset({DESCRIPTOR_PATH, LIVENESS_PATH}),
    )
    app.add_middleware(SessionHostBinderMiddleware, param=settings.tenant_host_param)
    app.add_middleware(ErrorClassifierMiddleware, settings=settings)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        max_age=settings.session_max_age,
        same_site="none",
        https_only=True,
    )

    app.include_router(lifecycle_routes.router)
    app.include_router(maintenance.router)
    app.include_router(oauth_routes.router)
    app.include_router(routes.router)
    if settings.exception_debug_mode:
        app.include_router(routes.debug_router)

    @app.get(LIVENESS_PATH)
    async def liveness_check():
        """Liveness probe endpoint - checks if the application is alive."""
        return {"status": "alive", "timestamp": datetime.datetime.now().isoformat()}

    return app


def main():
    port = int(get_config_value("FRONTEND_PORT", 8080))
    logger.info(f"Starting integration frontend on port {port}")
    uvicorn.run(
        "src.frontend.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        log_config=get_uvicorn_log_config(),
    )


if __name__ == "__main__":
    main()
