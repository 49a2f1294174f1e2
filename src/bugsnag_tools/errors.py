"""Custom exception types for the BugSnag tool adapter."""

from __future__ import annotations

from typing import Optional


class AdapterError(Exception):
    """Base exception for all errors surfaced to tool callers."""


class ConfigurationError(AdapterError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(ConfigurationError):
    """Raised when the BugSnag auth token is unavailable."""


class InvalidConfigurationError(AdapterError):
    """Raised when no project can be resolved from the request or the configuration."""


class NotFoundError(AdapterError):
    """Raised when a required organization, project, error or field set is absent."""


class InvalidArgumentError(AdapterError):
    """Raised when tool arguments are rejected before any request is made."""


class ApiError(AdapterError):
    """Raised when a BugSnag API request fails or returns an unexpected response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
