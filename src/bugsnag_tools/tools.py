"""Agent tool definitions and handlers for the BugSnag adapter.

Handlers receive the tool arguments as a dictionary and return a result of
the form ``{"content": [{"type": "text", "text": ...}], "isError": True?}``.
Adapter errors raised while handling a call are converted into an error
result rather than escaping the tool boundary.
"""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import AdapterError, InvalidArgumentError
from .queries import PERMITTED_UPDATE_OPERATIONS, SEVERITIES, ErrorQueryEngine
from .releases import ReleaseService
from .resolver import ProjectResolver

logger = logging.getLogger(__name__)

ToolResult = Dict[str, Any]
Handler = Callable[[Dict[str, Any]], ToolResult]
GetInputFunction = Callable[[str, Dict[str, Any]], Dict[str, Any]]


@dataclass
class ToolParameter:
    name: str
    description: str
    type: str = "string"
    required: bool = False


@dataclass
class ToolDefinition:
    """Metadata describing a tool to the agent."""

    name: str
    title: str
    summary: str
    parameters: List[ToolParameter] = field(default_factory=list)
    read_only: bool = True


RegisterFunction = Callable[[ToolDefinition, Handler], None]


@dataclass
class ToolServices:
    resolver: ProjectResolver
    queries: ErrorQueryEngine
    releases: ReleaseService


class ToolRegistry:
    """In-process ``register`` implementation that can invoke tools by name."""

    def __init__(self) -> None:
        self._tools: Dict[str, tuple] = {}

    def register(self, definition: ToolDefinition, handler: Handler) -> None:
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered.")
        self._tools[definition.name] = (definition, handler)

    @property
    def definitions(self) -> List[ToolDefinition]:
        return [definition for definition, _ in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def call(self, name: str, args: Optional[Dict[str, Any]] = None) -> ToolResult:
        if name not in self._tools:
            return format_error_result(InvalidArgumentError(f"Unknown tool: {name}"))
        _, handler = self._tools[name]
        return handler(dict(args or {}))


def text_result(payload: Any) -> ToolResult:
    text = payload if isinstance(payload, str) else json.dumps(payload, default=str)
    return {"content": [{"type": "text", "text": text}]}


def format_error_result(exc: BaseException) -> ToolResult:
    return {"content": [{"type": "text", "text": f"Error: {exc}"}], "isError": True}


def tool_handler(tool_name: str) -> Callable[[Handler], Handler]:
    """Wrap a handler so every failure becomes an error result."""

    def decorator(func: Handler) -> Handler:
        @functools.wraps(func)
        def wrapper(args: Dict[str, Any]) -> ToolResult:
            try:
                return func(args)
            except AdapterError as exc:
                logger.info("Tool call failed", extra={"tool": tool_name, "error": str(exc)})
                return format_error_result(exc)
            except Exception as exc:  # noqa: BLE001 - reported to the caller as a tool error
                logger.exception("Unexpected error in tool", extra={"tool": tool_name})
                return format_error_result(exc)

        return wrapper

    return decorator


def _page_arg(args: Dict[str, Any], name: str) -> Optional[int]:
    value = args.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidArgumentError(f"{name} must be an integer of at least 1.")
    return value


def _project_param(has_project_api_key: bool, description: str) -> List[ToolParameter]:
    return [ToolParameter("projectId", description, required=not has_project_api_key)]


_FILTERS_DESCRIPTION = (
    "Filters as an object of field name to a list of {type, value} predicates, e.g. "
    '{"error.status": [{"type": "eq", "value": "open"}]}. '
    "Use the list_project_event_filters tool to discover available fields."
)
_NEXT_URL_DESCRIPTION = (
    "URL of the next page, exactly as returned in the 'next' field of a previous response."
)

SEVERITY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "severity": {
            "type": "string",
            "enum": list(SEVERITIES),
            "description": "The new severity level for the error",
        }
    },
    "required": ["severity"],
}


def register_tools(register: RegisterFunction, get_input: GetInputFunction, services: ToolServices) -> None:
    """Register every BugSnag tool with ``register``."""
    resolver = services.resolver
    queries = services.queries
    releases = services.releases
    bound = resolver.has_project_api_key

    if not bound:

        @tool_handler("list_projects")
        def list_projects(args: Dict[str, Any]) -> ToolResult:
            projects = resolver.get_projects()
            if not projects:
                return text_result("No projects found.")
            page_size = _page_arg(args, "pageSize")
            page = _page_arg(args, "page")
            if page_size is not None or page is not None:
                page_size = page_size or 10
                page = page or 1
                projects = projects[(page - 1) * page_size : page * page_size]
            data = [project.to_dict() for project in projects]
            return text_result({"data": data, "count": len(data)})

        register(
            ToolDefinition(
                name="list_projects",
                title="List Projects",
                summary="List all projects in the organization with optional pagination",
                parameters=[
                    ToolParameter("pageSize", "Number of projects to return per page", type="integer"),
                    ToolParameter("page", "Page number to return (starts from 1)", type="integer"),
                ],
            ),
            list_projects,
        )

    @tool_handler("get_error")
    def get_error(args: Dict[str, Any]) -> ToolResult:
        return text_result(
            queries.get_error_details(args.get("errorId"), args.get("projectId"), args.get("filters"))
        )

    register(
        ToolDefinition(
            name="get_error",
            title="Get Error",
            summary=(
                "Get full details on an error, including summarized data across its events, "
                "the latest event and a dashboard link to show the user"
            ),
            parameters=[
                ToolParameter("errorId", "Unique identifier of the error to retrieve", required=True),
                *_project_param(bound, "ID of the project containing the error"),
                ToolParameter("filters", _FILTERS_DESCRIPTION, type="object"),
            ],
        ),
        get_error,
    )

    @tool_handler("get_event_details")
    def get_event_details(args: Dict[str, Any]) -> ToolResult:
        return text_result(queries.get_event_by_link(args.get("link")))

    register(
        ToolDefinition(
            name="get_event_details",
            title="Get Event Details",
            summary="Get detailed information about a specific event using its dashboard URL",
            parameters=[
                ToolParameter(
                    "link",
                    "Full dashboard URL of the event, containing the project slug and an event_id parameter",
                    required=True,
                ),
            ],
        ),
        get_event_details,
    )

    @tool_handler("list_project_errors")
    def list_project_errors(args: Dict[str, Any]) -> ToolResult:
        page = queries.list_project_errors(
            project_id=args.get("projectId"),
            filters=args.get("filters"),
            sort=args.get("sort") or "last_seen",
            direction=args.get("direction") or "desc",
            per_page=args.get("perPage"),
            next_url=args.get("nextUrl"),
        )
        return text_result(page.to_dict())

    register(
        ToolDefinition(
            name="list_project_errors",
            title="List Project Errors",
            summary="List and search errors in a project using customizable filters and pagination",
            parameters=[
                *_project_param(bound, "ID of the project to query for errors"),
                ToolParameter(
                    "filters",
                    _FILTERS_DESCRIPTION + " Defaults to open errors seen in the last 30 days.",
                    type="object",
                ),
                ToolParameter("sort", "One of first_seen, last_seen, events, users, unsorted"),
                ToolParameter("direction", "asc or desc (default desc)"),
                ToolParameter("perPage", "Results per page, 1-100 (default 30)", type="integer"),
                ToolParameter("nextUrl", _NEXT_URL_DESCRIPTION),
            ],
        ),
        list_project_errors,
    )

    @tool_handler("list_project_event_filters")
    def list_project_event_filters(args: Dict[str, Any]) -> ToolResult:
        fields = queries.list_project_event_filters(args.get("projectId"))
        return text_result([event_field.to_dict() for event_field in fields])

    register(
        ToolDefinition(
            name="list_project_event_filters",
            title="List Project Event Filters",
            summary="Get the event filter fields available for a project",
            parameters=_project_param(True, "ID of the project; defaults to the configured project"),
        ),
        list_project_event_filters,
    )

    @tool_handler("update_error")
    def update_error(args: Dict[str, Any]) -> ToolResult:
        operation = args.get("operation")
        if operation not in PERMITTED_UPDATE_OPERATIONS:
            raise InvalidArgumentError(
                f"Invalid operation: {operation}. Expected one of {', '.join(PERMITTED_UPDATE_OPERATIONS)}."
            )
        severity = None
        if operation == "override_severity":
            answer = get_input(
                "Please provide the new severity for the error (e.g. 'info', 'warning', 'error')",
                SEVERITY_SCHEMA,
            )
            if answer.get("action") != "accept":
                raise InvalidArgumentError("Severity override was not confirmed; the error was not updated.")
            severity = (answer.get("content") or {}).get("severity")

        success = queries.update_error(
            args.get("errorId"),
            operation,
            project_id=args.get("projectId"),
            severity=severity,
        )
        return text_result({"success": success})

    register(
        ToolDefinition(
            name="update_error",
            title="Update Error",
            summary="Change an error's workflow state, such as marking it fixed or ignored",
            parameters=[
                *_project_param(bound, "ID of the project that contains the error"),
                ToolParameter("errorId", "ID of the error to update", required=True),
                ToolParameter(
                    "operation",
                    "One of " + ", ".join(PERMITTED_UPDATE_OPERATIONS),
                    required=True,
                ),
            ],
            read_only=False,
        ),
        update_error,
    )

    @tool_handler("list_releases")
    def list_releases(args: Dict[str, Any]) -> ToolResult:
        page = releases.list_releases(
            project_id=args.get("projectId"),
            release_stage=args.get("releaseStage") or "production",
            visible_only=bool(args.get("visibleOnly", False)),
            per_page=args.get("perPage"),
            next_url=args.get("nextUrl"),
        )
        return text_result(page.to_dict())

    register(
        ToolDefinition(
            name="list_releases",
            title="List Releases",
            summary="List releases for a project with stability data",
            parameters=[
                *_project_param(bound, "ID of the project to list releases for"),
                ToolParameter("releaseStage", "Release stage to list (default production)"),
                ToolParameter("visibleOnly", "Only include releases visible in the dashboard", type="boolean"),
                ToolParameter("perPage", "Results per page, 1-100 (default 30)", type="integer"),
                ToolParameter("nextUrl", _NEXT_URL_DESCRIPTION),
            ],
        ),
        list_releases,
    )

    @tool_handler("get_release")
    def get_release(args: Dict[str, Any]) -> ToolResult:
        return text_result(releases.get_release(args.get("releaseId"), args.get("projectId")))

    register(
        ToolDefinition(
            name="get_release",
            title="Get Release",
            summary="Get a release by ID with stability metrics and target compliance",
            parameters=[
                *_project_param(bound, "ID of the project containing the release"),
                ToolParameter("releaseId", "ID of the release to retrieve", required=True),
            ],
        ),
        get_release,
    )

    @tool_handler("list_builds_in_release")
    def list_builds_in_release(args: Dict[str, Any]) -> ToolResult:
        builds = releases.list_builds_in_release(args.get("releaseId"), args.get("projectId"))
        return text_result({"data": builds, "count": len(builds)})

    register(
        ToolDefinition(
            name="list_builds_in_release",
            title="List Builds in Release",
            summary="List the builds that make up a release, with stability data",
            parameters=[
                *_project_param(bound, "ID of the project containing the release"),
                ToolParameter("releaseId", "ID of the release", required=True),
            ],
        ),
        list_builds_in_release,
    )

    @tool_handler("list_builds")
    def list_builds(args: Dict[str, Any]) -> ToolResult:
        page = releases.list_builds(
            project_id=args.get("projectId"),
            release_stage=args.get("releaseStage"),
            per_page=args.get("perPage"),
            next_url=args.get("nextUrl"),
        )
        return text_result(page.to_dict())

    register(
        ToolDefinition(
            name="list_builds",
            title="List Builds",
            summary="List builds for a project with stability data",
            parameters=[
                *_project_param(bound, "ID of the project to list builds for"),
                ToolParameter("releaseStage", "Only list builds in this release stage"),
                ToolParameter("perPage", "Results per page, 1-100", type="integer"),
                ToolParameter("nextUrl", _NEXT_URL_DESCRIPTION),
            ],
        ),
        list_builds,
    )

    @tool_handler("get_build")
    def get_build(args: Dict[str, Any]) -> ToolResult:
        return text_result(releases.get_build(args.get("buildId"), args.get("projectId")))

    register(
        ToolDefinition(
            name="get_build",
            title="Get Build",
            summary="Get a build by ID with stability metrics and target compliance",
            parameters=[
                *_project_param(bound, "ID of the project containing the build"),
                ToolParameter("buildId", "ID of the build to retrieve", required=True),
            ],
        ),
        get_build,
    )
