"""BugSnag Data Access API client used by the resolvers and query services."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from . import __version__
from .config import Config
from .errors import ApiError

logger = logging.getLogger(__name__)

QueryParams = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]

_NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>\s*;\s*rel=(?:"next"|next\b)')
_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


@dataclass
class ApiResponse:
    """Status, headers and decoded JSON body of one API call."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def next_url(self) -> Optional[str]:
        return parse_next_link(_header(self.headers, "Link"))

    @property
    def total_count(self) -> Optional[int]:
        return parse_total_count(self.headers)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Read a header case-insensitively from any mapping."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Extract the ``rel="next"`` URL from a ``Link`` header, if any."""
    if not link_header:
        return None
    match = _NEXT_LINK_PATTERN.search(link_header)
    return match.group(1) if match else None


def parse_total_count(headers: Mapping[str, str]) -> Optional[int]:
    """Parse the ``X-Total-Count`` header; absent or malformed values yield ``None``."""
    raw = _header(headers, "X-Total-Count")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring malformed X-Total-Count header", extra={"value": raw})
        return None


def override_query_param(url: str, name: str, value: Any) -> str:
    """Return ``url`` with query parameter ``name`` replaced by ``value``."""
    parts = urlsplit(url)
    query = [(key, item) for key, item in parse_qsl(parts.query, keep_blank_values=True) if key != name]
    query.append((name, str(value)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class BugsnagApiClient:
    """Small client for the BugSnag Data Access API.

    Relative paths are joined to the configured API endpoint; absolute URLs
    (continuation links returned by a previous response) are requested as-is.
    """

    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30
    _PROJECTS_PAGE_SIZE = 100

    def __init__(self, config: Config, timeout_seconds: Optional[int] = None) -> None:
        """Initialize an authenticated BugSnag API client.

        Args:
            config: Validated runtime configuration including the auth token.
            timeout_seconds: Per-request timeout in seconds; defaults to the
                configured value.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds or config.timeout_seconds
        self._base_url = config.api_endpoint.rstrip("/")

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"token {config.auth_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": f"bugsnag-mcp-tools/{__version__}",
                "X-Bugsnag-API": "true",
                "X-Version": "2",
            }
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _build_url(self, path_or_url: str) -> str:
        """Build a fully qualified API URL from a path or pass through an absolute URL."""
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self._base_url}/{path_or_url.lstrip('/')}"

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _decode(self, response: requests.Response, method: str, url: str) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"BugSnag API returned invalid JSON: {method} {url}",
                status_code=response.status_code,
            ) from exc

    def request(
        self,
        method: str,
        path_or_url: str,
        params: Optional[QueryParams] = None,
        json_body: Optional[Dict[str, Any]] = None,
        raise_for_status: bool = True,
        not_found_ok: bool = False,
    ) -> ApiResponse:
        """Execute a request with retry logic for 429/5xx responses.

        Non-idempotent methods (``PATCH``, ``POST``) are only retried on 429,
        which the API answers before applying a change; a 5xx status or a
        transport error is reported on the first attempt.

        Args:
            method: HTTP method.
            path_or_url: API path below the endpoint, or an absolute URL.
            params: Query parameters; a sequence of pairs keeps repeated keys.
            json_body: Optional JSON request body.
            raise_for_status: Raise ``ApiError`` for HTTP >= 400 responses.
            not_found_ok: Map HTTP 404 to an empty response instead of raising.

        Raises:
            ApiError: If the request repeatedly fails, returns an error status
                that the caller asked to raise, or does not return valid JSON.
        """
        url = self._build_url(path_or_url)
        idempotent = method.upper() in _IDEMPOTENT_METHODS
        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if not idempotent:
                    raise ApiError(f"BugSnag request failed: {method} {url}") from exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"BugSnag request failed after retries: {method} {url}") from exc
                logger.debug(
                    "Retrying BugSnag request after transport error",
                    extra={"method": method, "url": url, "attempt": attempt},
                )
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or (idempotent and 500 <= status_code <= 599)

            if is_retryable and attempt < self._MAX_RETRIES:
                backoff = self._extract_backoff_seconds(response, attempt)
                logger.debug(
                    "Retrying BugSnag request after retryable status",
                    extra={"method": method, "url": url, "status": status_code, "backoff_seconds": backoff},
                )
                time.sleep(backoff)
                continue

            if status_code == 404 and not_found_ok:
                return ApiResponse(status=status_code, headers=response.headers, body=None)

            if status_code >= 400:
                if not raise_for_status:
                    return ApiResponse(status=status_code, headers=response.headers, body=None)
                raise ApiError(
                    "BugSnag API request failed: "
                    f"{method} {url} returned {status_code} - {response.text}",
                    status_code=status_code,
                )

            return ApiResponse(
                status=status_code,
                headers=response.headers,
                body=self._decode(response, method, url),
            )

        raise ApiError(f"BugSnag request failed after retries: {method} {url}") from last_error

    def _get_list(self, path_or_url: str, params: Optional[QueryParams] = None) -> ApiResponse:
        response = self.request("GET", path_or_url, params=params)
        if response.body is None:
            response.body = []
        if not isinstance(response.body, list):
            raise ApiError(f"BugSnag API returned unexpected payload shape: GET {self._build_url(path_or_url)}")
        return response

    def _get_object(self, path: str, params: Optional[QueryParams] = None) -> Optional[Dict[str, Any]]:
        response = self.request("GET", path, params=params, not_found_ok=True)
        if response.body is None:
            return None
        if not isinstance(response.body, dict):
            raise ApiError(f"BugSnag API returned unexpected payload shape: GET {self._build_url(path)}")
        return response.body

    def _get_page(
        self,
        path: str,
        params: Optional[QueryParams],
        next_url: Optional[str],
        per_page: Optional[int],
    ) -> ApiResponse:
        """Fetch one page, either fresh or from an opaque continuation URL.

        A continuation URL already carries the original query; only the page
        size may be overridden.
        """
        if next_url:
            url = override_query_param(next_url, "per_page", per_page) if per_page else next_url
            return self._get_list(url)
        return self._get_list(path, params=params)

    # Current user

    def list_user_organizations(self) -> List[Dict[str, Any]]:
        """List organizations visible to the auth token, in API order."""
        return self._get_list("user/organizations").body

    def list_organization_projects(self, organization_id: str) -> List[Dict[str, Any]]:
        """List every project in an organization, following ``Link`` pagination."""
        projects: List[Dict[str, Any]] = []
        response = self._get_list(
            f"organizations/{organization_id}/projects",
            params={"per_page": self._PROJECTS_PAGE_SIZE},
        )

        while True:
            projects.extend(response.body)
            next_url = response.next_url
            if not next_url:
                break
            response = self._get_list(next_url)

        return projects

    # Projects

    def list_project_event_fields(self, project_id: str) -> List[Dict[str, Any]]:
        return self._get_list(f"projects/{project_id}/event_fields").body

    def get_project_stability_targets(self, project_id: str) -> Dict[str, Any]:
        return self._get_object(f"projects/{project_id}/stability_targets") or {}

    # Errors and events

    def list_project_errors(
        self,
        project_id: str,
        params: Optional[QueryParams] = None,
        next_url: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> ApiResponse:
        return self._get_page(f"projects/{project_id}/errors", params, next_url, per_page)

    def view_error(self, project_id: str, error_id: str) -> Optional[Dict[str, Any]]:
        return self._get_object(f"projects/{project_id}/errors/{error_id}")

    def list_events(self, project_id: str, params: Optional[QueryParams] = None) -> List[Dict[str, Any]]:
        return self._get_list(f"projects/{project_id}/events", params=params).body

    def view_event(self, project_id: str, event_id: str) -> Optional[Dict[str, Any]]:
        return self._get_object(f"projects/{project_id}/events/{event_id}")

    def list_error_pivots(
        self,
        project_id: str,
        error_id: str,
        params: Optional[QueryParams] = None,
    ) -> List[Dict[str, Any]]:
        response = self.request("GET", f"projects/{project_id}/errors/{error_id}/pivots", params=params, not_found_ok=True)
        return response.body if isinstance(response.body, list) else []

    def update_error(self, project_id: str, error_id: str, body: Dict[str, Any]) -> ApiResponse:
        """Apply an update operation; the status is returned rather than raised."""
        return self.request(
            "PATCH",
            f"projects/{project_id}/errors/{error_id}",
            json_body=body,
            raise_for_status=False,
        )

    # Builds and releases

    def list_builds(
        self,
        project_id: str,
        params: Optional[QueryParams] = None,
        next_url: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> ApiResponse:
        return self._get_page(f"projects/{project_id}/builds", params, next_url, per_page)

    def get_build(self, project_id: str, build_id: str) -> Optional[Dict[str, Any]]:
        return self._get_object(f"projects/{project_id}/builds/{build_id}")

    def list_releases(
        self,
        project_id: str,
        params: Optional[QueryParams] = None,
        next_url: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> ApiResponse:
        return self._get_page(f"projects/{project_id}/releases", params, next_url, per_page)

    def get_release(self, project_id: str, release_id: str) -> Optional[Dict[str, Any]]:
        return self._get_object(f"projects/{project_id}/releases/{release_id}")

    def list_builds_in_release(self, project_id: str, release_id: str) -> List[Dict[str, Any]]:
        return self._get_list(f"projects/{project_id}/releases/{release_id}/builds").body
