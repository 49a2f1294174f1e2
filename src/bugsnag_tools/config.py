"""Configuration parsing and validation for the BugSnag tool adapter."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .errors import AuthenticationError, ConfigurationError

HUB_PREFIX = "00000"
DEFAULT_DOMAIN = "bugsnag.com"
HUB_DOMAIN = "bugsnag.smartbear.com"


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the adapter."""

    auth_token: str
    project_api_key: Optional[str] = None
    endpoint: Optional[str] = None
    cache_enabled: bool = True
    timeout_seconds: int = 30

    @property
    def api_endpoint(self) -> str:
        return get_endpoint("api", self.project_api_key, self.endpoint)

    @property
    def app_endpoint(self) -> str:
        return get_endpoint("app", self.project_api_key, self.endpoint)


def get_endpoint(subdomain: str, api_key: Optional[str] = None, endpoint: Optional[str] = None) -> str:
    """Resolve the base URL for a BugSnag subdomain (``api`` or ``app``).

    Without an explicit endpoint the host is chosen from the project API key:
    keys starting with ``00000`` belong to the SmartBear hub. Explicit endpoints
    on a known BugSnag host are normalized to the standard HTTPS form, while
    custom (on-premise) endpoints are returned exactly as given.

    Raises:
        ConfigurationError: If ``endpoint`` is not an absolute URL.
    """
    if not endpoint:
        domain = HUB_DOMAIN if api_key and api_key.startswith(HUB_PREFIX) else DEFAULT_DOMAIN
        return f"https://{subdomain}.{domain}"

    hostname = urlparse(endpoint).hostname
    if not hostname:
        raise ConfigurationError(f"Invalid BugSnag endpoint '{endpoint}': expected an absolute URL.")

    if hostname.endswith(HUB_DOMAIN):
        return f"https://{subdomain}.{HUB_DOMAIN}"
    if hostname.endswith(DEFAULT_DOMAIN):
        return f"https://{subdomain}.{DEFAULT_DOMAIN}"
    return endpoint.rstrip("/")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def load_config(
    auth_token: Optional[str] = None,
    project_api_key: Optional[str] = None,
    endpoint: Optional[str] = None,
    timeout_seconds: int = 30,
) -> Config:
    """Build and validate application configuration.

    Explicit arguments win over the ``BUGSNAG_AUTH_TOKEN``,
    ``BUGSNAG_PROJECT_API_KEY`` and ``BUGSNAG_ENDPOINT`` environment variables.
    ``CACHE_ENABLED=false`` disables response caching.

    Returns:
        A validated ``Config`` instance.

    Raises:
        AuthenticationError: If no auth token is configured.
        ConfigurationError: If the endpoint or timeout is invalid.
    """
    token = (auth_token or os.getenv("BUGSNAG_AUTH_TOKEN", "")).strip()
    if not token:
        raise AuthenticationError(
            "Missing required BugSnag personal auth token. "
            "Set the 'BUGSNAG_AUTH_TOKEN' environment variable before starting the adapter."
        )

    if timeout_seconds <= 0:
        raise ConfigurationError("Invalid value for 'timeout_seconds': expected an integer greater than 0.")

    api_key = (project_api_key or os.getenv("BUGSNAG_PROJECT_API_KEY", "")).strip() or None
    custom_endpoint = (endpoint or os.getenv("BUGSNAG_ENDPOINT", "")).strip() or None

    config = Config(
        auth_token=token,
        project_api_key=api_key,
        endpoint=custom_endpoint,
        cache_enabled=_env_flag("CACHE_ENABLED", True),
        timeout_seconds=timeout_seconds,
    )
    # Fail early on a malformed endpoint rather than on the first request.
    get_endpoint("api", config.project_api_key, config.endpoint)
    return config
