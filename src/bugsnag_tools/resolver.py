"""Organization, project and event-field resolution backed by the cache."""

from __future__ import annotations

import logging
from typing import List, Optional

from .api_client import BugsnagApiClient
from .cache import CacheKey, CacheStore, CacheTTL
from .errors import AdapterError, InvalidConfigurationError, NotFoundError
from .models import EventField, Organization, Project

logger = logging.getLogger(__name__)

# "search" matches across many fields; it is a convenience for humans and
# over-matches when used as a structured filter.
EXCLUDED_EVENT_FIELDS = frozenset({"search"})


def fetch_project_event_fields(api_client: BugsnagApiClient, project: Project) -> List[EventField]:
    """Fetch the filterable event fields of a project, minus excluded fields.

    Performs no caching; callers decide where the result is stored.

    Raises:
        NotFoundError: If no usable event fields remain.
    """
    payload = api_client.list_project_event_fields(project.id)
    fields = [
        EventField.from_payload(item)
        for item in payload
        if item.get("display_id") and item.get("display_id") not in EXCLUDED_EVENT_FIELDS
    ]
    if not fields:
        raise NotFoundError(f"No event fields found for project {project.name}.")
    return fields


class ProjectResolver:
    """Resolves the organization and projects visible to the auth token.

    The organization is always the first one returned by the API. A
    "current project" exists only when a project API key is configured.
    """

    def __init__(
        self,
        api_client: BugsnagApiClient,
        cache: CacheStore,
        app_endpoint: str,
        project_api_key: Optional[str] = None,
    ) -> None:
        self._api_client = api_client
        self._cache = cache
        self._app_endpoint = app_endpoint.rstrip("/")
        self._project_api_key = project_api_key

    @property
    def has_project_api_key(self) -> bool:
        return bool(self._project_api_key)

    def forget_project_api_key(self) -> None:
        """Stop binding a current project so tools work across all projects."""
        self._project_api_key = None
        self._cache.delete(CacheKey.current_project())
        self._cache.delete(CacheKey.current_project_event_filters())

    def get_organization(self) -> Organization:
        """Return the first organization visible to the auth token.

        Raises:
            NotFoundError: If the token cannot see any organization.
        """
        organization = self._cache.get(CacheKey.org())
        if organization is not None:
            return organization

        payload = self._api_client.list_user_organizations()
        if not payload:
            raise NotFoundError("No organizations found for the current user.")

        organization = Organization.from_payload(payload[0])
        self._cache.set(CacheKey.org(), organization, CacheTTL.LONG)
        return organization

    def get_projects(self) -> List[Project]:
        """Return every project in the organization, populating per-id lookups."""
        projects = self._cache.get(CacheKey.projects())
        if projects is not None:
            return projects

        organization = self.get_organization()
        projects = [
            Project.from_payload(item)
            for item in self._api_client.list_organization_projects(organization.id)
        ]
        self._cache.set(CacheKey.projects(), projects, CacheTTL.MEDIUM)
        for project in projects:
            self._cache.set(CacheKey.project_lookup(project.id), project, CacheTTL.MEDIUM)

        logger.debug(
            "Cached organization projects",
            extra={"organization_id": organization.id, "project_count": len(projects)},
        )
        return projects

    def get_project(self, project_id: str) -> Optional[Project]:
        """Return the project with ``project_id`` or ``None`` if it does not exist."""
        project = self._cache.get(CacheKey.project_lookup(project_id))
        if project is not None:
            return project

        for candidate in self.get_projects():
            if candidate.id == project_id:
                self._cache.set(CacheKey.project_lookup(project_id), candidate, CacheTTL.MEDIUM)
                return candidate
        return None

    def get_project_by_slug(self, slug: str) -> Optional[Project]:
        for project in self.get_projects():
            if project.slug == slug:
                return project
        return None

    def get_current_project(self) -> Optional[Project]:
        """Return the project bound to the configured project API key.

        Without a configured key this is always ``None``. Resolving the
        project also pre-caches its event fields; a failure there is logged
        and does not fail the lookup.

        Raises:
            NotFoundError: If the configured key matches no visible project.
        """
        project = self._cache.get(CacheKey.current_project())
        if project is not None or not self._project_api_key:
            return project

        project = next(
            (candidate for candidate in self.get_projects() if candidate.api_key == self._project_api_key),
            None,
        )
        if project is None:
            raise NotFoundError("Unable to find project with the configured API key in the organization.")

        self._cache.set(CacheKey.current_project(), project, CacheTTL.LONG)

        try:
            fields = fetch_project_event_fields(self._api_client, project)
        except AdapterError as exc:
            logger.warning(
                "Failed to pre-cache event filters for current project",
                extra={"project_id": project.id, "error": str(exc)},
            )
        else:
            self._cache.set(CacheKey.current_project_event_filters(), fields, CacheTTL.MEDIUM)

        return project

    def get_input_project(self, project_id: Optional[str] = None) -> Project:
        """Resolve the project a tool call targets.

        Raises:
            NotFoundError: If an explicit ``project_id`` does not exist.
            InvalidConfigurationError: If no id is given and no current
                project is configured.
        """
        if project_id:
            project = self.get_project(project_id)
            if project is None:
                raise NotFoundError(f"Project with ID {project_id} not found.")
            return project

        current = self.get_current_project()
        if current is None:
            raise InvalidConfigurationError(
                "No current project found. Please provide a projectId or configure a project API key."
            )
        return current

    def get_event_fields(self, project: Project) -> List[EventField]:
        """Return the cached event-field vocabulary for ``project``, fetching on a miss."""
        current = self._cache.get(CacheKey.current_project())
        if current is not None and current.id == project.id:
            key = CacheKey.current_project_event_filters()
        else:
            key = CacheKey.event_fields(project.id)

        fields = self._cache.get(key)
        if fields is None:
            fields = fetch_project_event_fields(self._api_client, project)
            self._cache.set(key, fields, CacheTTL.MEDIUM)
        return fields

    def get_dashboard_url(self, project: Project) -> str:
        return f"{self._app_endpoint}/{self.get_organization().slug}/{project.slug}"

    def get_error_url(self, project: Project, error_id: str, query_string: str = "") -> str:
        """Build the dashboard link for an error, keeping the filter query string."""
        url = f"{self.get_dashboard_url(project)}/errors/{error_id}"
        return f"{url}?{query_string}" if query_string else url
