"""Configuration utility for the GitHub + Jira integration.

This module provides centralized configuration management with:
- Environment variables as the only source
- Type-safe access to configuration values
"""

import os
from typing import Any


def parse_config_value(value: str) -> str | bool | int | float:
    if value.lower() == "true":
        return True
    elif value.lower() == "false":
        return False
    else:
        # Try to parse as a number
        try:
            return int(value)
        except ValueError:
            try:
                return float(value)
            except ValueError:
                # Return as string
                return value


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a configuration value from environment variables.

    Args:
        key: Configuration key name (e.g., "APP_URL")
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    env_value = os.environ.get(key)
    if env_value is not None:
        return parse_config_value(env_value)

    return default


def get_config_value_str(key: str) -> str | None:
    """
    Get a configuration value from environment variables. But sometimes you just want a string.
    """
    return os.environ.get(key)


def require_config_value(key: str) -> str:
    value = os.environ.get(key)
    if not value:
        raise ValueError(f"Environment variable {key} is required")
    return value


def get_control_database_url() -> str:
    """Get control database connection URL.

    Returns:
        PostgreSQL connection string from CONTROL_DATABASE_URL config

    Raises:
        ValueError: If CONTROL_DATABASE_URL is not configured
    """
    url = get_config_value_str("CONTROL_DATABASE_URL")
    if url:
        return url

    raise ValueError(
        "Control database URL not found. Please provide CONTROL_DATABASE_URL environment variable"
    )


def get_app_url() -> str | None:
    """Public base URL of this service, used for OAuth redirects and the Connect descriptor."""
    return get_config_value_str("APP_URL")


def get_bridge_environment() -> str:
    """Get deployment environment from env var."""
    return get_config_value("BRIDGE_ENVIRONMENT", "local")


def is_flag_enabled(key: str) -> bool:
    """True when the env var holds a truthy flag value ("true", "1", "yes")."""
    return os.getenv(key, "").lower() in ("true", "1", "yes")
