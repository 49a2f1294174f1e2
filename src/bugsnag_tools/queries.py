"""Error and event queries for a resolved project.

Filter keys are checked against the project's event-field vocabulary before
any list or detail request is sent. Best-effort enrichment (the latest event
of an error, per-project event lookups) is downgraded on failure; primary
fetches and updates propagate their errors.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from .api_client import BugsnagApiClient
from .errors import AdapterError, InvalidArgumentError, NotFoundError
from .filters import (
    DEFAULT_ERROR_FILTERS,
    FilterObject,
    merge_filters,
    parse_filters,
    to_query_params,
    to_query_string,
    validate_filter_keys,
)
from .models import Enrichment, EventField, PageResult, Project
from .resolver import ProjectResolver

logger = logging.getLogger(__name__)

ERROR_SORT_FIELDS = ("first_seen", "last_seen", "events", "users", "unsorted")
SORT_DIRECTIONS = ("asc", "desc")
PERMITTED_UPDATE_OPERATIONS = ("override_severity", "open", "fix", "ignore", "discard", "undiscard")
SEVERITIES = ("info", "warning", "error")

DEFAULT_PER_PAGE = 30
MAX_PER_PAGE = 100
PIVOT_SUMMARY_SIZE = 5


def validate_per_page(per_page: Optional[int]) -> None:
    if per_page is None:
        return
    if isinstance(per_page, bool) or not isinstance(per_page, int) or not 1 <= per_page <= MAX_PER_PAGE:
        raise InvalidArgumentError(f"perPage must be an integer between 1 and {MAX_PER_PAGE}.")


class ErrorQueryEngine:
    """Lists, inspects and updates errors and events of BugSnag projects."""

    def __init__(self, api_client: BugsnagApiClient, resolver: ProjectResolver, max_workers: int = 8) -> None:
        self._api_client = api_client
        self._resolver = resolver
        self._max_workers = max_workers

    def _checked_filters(self, project: Project, filters: FilterObject) -> None:
        if filters:
            validate_filter_keys(filters, self._resolver.get_event_fields(project))

    def list_project_errors(
        self,
        project_id: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        sort: str = "last_seen",
        direction: str = "desc",
        per_page: Optional[int] = None,
        next_url: Optional[str] = None,
    ) -> PageResult:
        """List one page of errors in a project.

        The ``event.since=30d`` and ``error.status=open`` filters apply unless
        the caller supplies those fields. With ``next_url`` the continuation
        URL is requested unchanged apart from an optional page size.

        Raises:
            InvalidArgumentError: On an unknown filter key or an invalid sort,
                direction or page size; raised before the list request.
        """
        user_filters = parse_filters(filters)
        if sort not in ERROR_SORT_FIELDS:
            raise InvalidArgumentError(f"Invalid sort field: {sort}")
        if direction not in SORT_DIRECTIONS:
            raise InvalidArgumentError(f"Invalid sort direction: {direction}")
        validate_per_page(per_page)

        project = self._resolver.get_input_project(project_id)
        self._checked_filters(project, user_filters)

        if next_url:
            response = self._api_client.list_project_errors(project.id, next_url=next_url, per_page=per_page)
        else:
            params = [
                ("sort", sort),
                ("direction", direction),
                ("per_page", per_page or DEFAULT_PER_PAGE),
            ]
            params.extend(to_query_params(merge_filters(DEFAULT_ERROR_FILTERS, user_filters)))
            response = self._api_client.list_project_errors(project.id, params=params)

        errors = response.body
        logger.debug(
            "Listed project errors",
            extra={"project_id": project.id, "count": len(errors), "total": response.total_count},
        )
        return PageResult(data=errors, count=len(errors), total=response.total_count, next_url=response.next_url)

    def _latest_event(self, project: Project, filters: FilterObject) -> Enrichment:
        params = to_query_params(filters)
        params.extend(
            [
                ("sort", "timestamp"),
                ("direction", "desc"),
                ("per_page", 1),
                ("full_reports", "true"),
            ]
        )
        try:
            events = self._api_client.list_events(project.id, params=params)
        except AdapterError as exc:
            logger.warning(
                "Failed to fetch latest event",
                extra={"project_id": project.id, "error": str(exc)},
            )
            return Enrichment.unavailable(exc)
        return Enrichment.available(events[0]) if events else Enrichment.empty()

    def get_error_details(
        self,
        error_id: str,
        project_id: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Return an error with its latest event, pivots and dashboard link.

        Raises:
            NotFoundError: If the error does not exist in the project.
        """
        if not error_id:
            raise InvalidArgumentError("errorId argument is required")
        user_filters = parse_filters(filters)

        project = self._resolver.get_input_project(project_id)
        self._checked_filters(project, user_filters)

        error_details = self._api_client.view_error(project.id, error_id)
        if error_details is None:
            raise NotFoundError(f"Error with ID {error_id} not found in project {project.id}.")

        event_filters = merge_filters({"error": [{"type": "eq", "value": error_id}]}, user_filters)
        latest_event = self._latest_event(project, event_filters)

        pivot_params = to_query_params(event_filters)
        pivot_params.append(("summary_size", PIVOT_SUMMARY_SIZE))
        pivots = self._api_client.list_error_pivots(project.id, error_id, params=pivot_params)

        return {
            "error_details": error_details,
            "latest_event": latest_event.value,
            "pivots": pivots or [],
            "url": self._resolver.get_error_url(project, error_id, to_query_string(event_filters)),
        }

    def update_error(
        self,
        error_id: str,
        operation: str,
        project_id: Optional[str] = None,
        severity: Optional[str] = None,
    ) -> bool:
        """Apply a workflow operation to an error.

        Returns:
            ``True`` when the API answers 200 or 204, otherwise ``False``.

        Raises:
            InvalidArgumentError: For an unknown operation, or a severity
                override without a valid severity; raised before any request.
        """
        if operation not in PERMITTED_UPDATE_OPERATIONS:
            raise InvalidArgumentError(
                f"Invalid operation: {operation}. Expected one of {', '.join(PERMITTED_UPDATE_OPERATIONS)}."
            )
        if operation == "override_severity" and severity not in SEVERITIES:
            raise InvalidArgumentError(
                f"override_severity requires a severity of {', '.join(SEVERITIES)}."
            )
        if not error_id:
            raise InvalidArgumentError("errorId argument is required")

        project = self._resolver.get_input_project(project_id)
        body: Dict[str, Any] = {"operation": operation}
        if severity is not None:
            body["severity"] = severity

        response = self._api_client.update_error(project.id, error_id, body)
        success = response.status in (200, 204)
        if not success:
            logger.warning(
                "Error update was not accepted",
                extra={"project_id": project.id, "error_id": error_id, "operation": operation, "status": response.status},
            )
        return success

    def _lookup_event(self, project_id: str, event_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._api_client.view_event(project_id, event_id)
        except AdapterError as exc:
            logger.debug(
                "Event lookup failed for project",
                extra={"project_id": project_id, "event_id": event_id, "error": str(exc)},
            )
            return None

    def get_event(self, event_id: str, project_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Find an event by id, searching every known project when none is given.

        Per-project lookups run concurrently; a failing project counts as
        "not found there". The first non-empty result in project order wins.
        """
        if project_id:
            project_ids = [project_id]
        else:
            project_ids = [project.id for project in self._resolver.get_projects()]
        if not project_ids:
            return None

        workers = max(1, min(self._max_workers, len(project_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(lambda pid: self._lookup_event(pid, event_id), project_ids))

        return next((event for event in results if event), None)

    def get_event_by_link(self, link: str) -> Dict[str, Any]:
        """Resolve a dashboard event link (``/{org}/{project}/errors/{id}?event_id=...``).

        Raises:
            InvalidArgumentError: If the link lacks a project slug or event id.
            NotFoundError: If the project or event cannot be found.
        """
        if not link:
            raise InvalidArgumentError("link argument is required")
        parts = urlsplit(link)
        event_id = (parse_qs(parts.query).get("event_id") or [None])[0]
        segments = parts.path.split("/")
        project_slug = segments[2] if len(segments) > 2 else None
        if not project_slug or not event_id:
            raise InvalidArgumentError("Both projectSlug and eventId must be present in the link")

        project = self._resolver.get_project_by_slug(project_slug)
        if project is None:
            raise NotFoundError("Project with the specified slug not found.")

        event = self.get_event(event_id, project.id)
        if event is None:
            raise NotFoundError(f"Event with ID {event_id} not found in project {project.id}.")
        return event

    def list_project_event_filters(self, project_id: Optional[str] = None) -> List[EventField]:
        project = self._resolver.get_input_project(project_id)
        return self._resolver.get_event_fields(project)
