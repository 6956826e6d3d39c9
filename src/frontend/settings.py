"""Process-wide settings for the frontend application.

Settings are read once from the environment by load_settings() and injected
into create_app(); request handling never consults the environment directly.
"""

from dataclasses import dataclass, field

from src.utils.config import (
    get_app_url,
    get_bridge_environment,
    get_config_value,
    get_config_value_str,
    is_flag_enabled,
    require_config_value,
)

SESSION_MAX_AGE_SECONDS = 30 * 24 * 60 * 60  # 30 days
DEFAULT_MAINTENANCE_STATUS_CODE = 503
DEFAULT_VERIFIER_TIMEOUT_SECONDS = 10.0

# Query parameter Jira appends to iframe URLs, carrying the tenant base URL
TENANT_HOST_PARAM = "xdm_e"


@dataclass(frozen=True)
class Settings:
    session_secret: str
    github_client_id: str = ""
    github_client_secret: str = ""
    app_url: str = "http://localhost:8080"
    environment: str = "local"
    maintenance_mode: bool = False
    maintenance_status_code: int = DEFAULT_MAINTENANCE_STATUS_CODE
    # Surfaces raw exceptions instead of the branded error page. Never on by default.
    exception_debug_mode: bool = False
    # Extra methods exempt from anti-forgery checks, e.g. for test harnesses
    csrf_bypass_methods: frozenset[str] = field(default_factory=frozenset)
    verifier_timeout_seconds: float = DEFAULT_VERIFIER_TIMEOUT_SECONDS
    session_max_age: int = SESSION_MAX_AGE_SECONDS
    tenant_host_param: str = TENANT_HOST_PARAM
    addon_key: str = "com.github.integration"
    addon_name: str = "GitHub"

    @property
    def login_path(self) -> str:
        return "/github/login"

    @property
    def callback_path(self) -> str:
        return "/github/callback"


def parse_methods(value: str | None) -> frozenset[str]:
    """Parse a comma separated list of HTTP verbs ("post, put") into an upper-case set."""
    if not value:
        return frozenset()
    return frozenset(method.strip().upper() for method in value.split(",") if method.strip())


def load_settings() -> Settings:
    """Build Settings from environment variables.

    Raises:
        ValueError: If neither SESSION_SECRET nor GITHUB_CLIENT_SECRET is set
    """
    github_client_secret = get_config_value_str("GITHUB_CLIENT_SECRET") or ""
    # The cookie was historically signed with the OAuth client secret
    session_secret = get_config_value_str("SESSION_SECRET") or github_client_secret
    if not session_secret:
        session_secret = require_config_value("SESSION_SECRET")

    environment = get_bridge_environment()
    return Settings(
        session_secret=session_secret,
        github_client_id=get_config_value_str("GITHUB_CLIENT_ID") or "",
        github_client_secret=github_client_secret,
        app_url=(get_app_url() or "http://localhost:8080").rstrip("/"),
        environment=environment,
        maintenance_mode=is_flag_enabled("MAINTENANCE_MODE"),
        maintenance_status_code=int(
            get_config_value("MAINTENANCE_STATUS_CODE", DEFAULT_MAINTENANCE_STATUS_CODE)
        ),
        exception_debug_mode=is_flag_enabled("EXCEPTION_DEBUG_MODE"),
        csrf_bypass_methods=parse_methods(get_config_value_str("CSRF_BYPASS_METHODS")),
        verifier_timeout_seconds=float(
            get_config_value("VERIFIER_TIMEOUT_SECONDS", DEFAULT_VERIFIER_TIMEOUT_SECONDS)
        ),
        addon_key=get_config_value_str("APP_KEY") or "com.github.integration",
    )
