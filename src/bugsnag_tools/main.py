"""Application orchestration for the BugSnag tool adapter CLI."""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict

from .api_client import BugsnagApiClient
from .cache import CacheStore
from .cli import parse_args
from .config import Config, load_config
from .errors import AdapterError, ApiError, AuthenticationError, ConfigurationError
from .queries import ErrorQueryEngine
from .releases import ReleaseService
from .resolver import ProjectResolver
from .tools import ToolRegistry, ToolServices, register_tools

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_TOOL_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_ERROR = 4
EXIT_UNEXPECTED_ERROR = 5


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_services(config: Config) -> ToolServices:
    """Wire the API client, cache, resolver and query services together."""
    api_client = BugsnagApiClient(config=config)
    cache = CacheStore(enabled=config.cache_enabled)
    resolver = ProjectResolver(
        api_client=api_client,
        cache=cache,
        app_endpoint=config.app_endpoint,
        project_api_key=config.project_api_key,
    )
    return ToolServices(
        resolver=resolver,
        queries=ErrorQueryEngine(api_client=api_client, resolver=resolver),
        releases=ReleaseService(api_client=api_client, resolver=resolver, cache=cache),
    )


def warm_up(services: ToolServices) -> None:
    """Pre-fetch projects and the current project before tools are registered.

    Failures do not stop start-up: tools stay registered so the agent can
    report the problem. A project API key that matches no project is dropped
    so the tools keep working across all projects.
    """
    resolver = services.resolver
    try:
        resolver.get_projects()
    except AdapterError as exc:
        logger.error(
            "Unable to connect to BugSnag APIs; check the configured auth token",
            extra={"error": str(exc)},
        )
        return

    if resolver.has_project_api_key:
        try:
            resolver.get_current_project()
        except AdapterError as exc:
            resolver.forget_project_api_key()
            logger.error(
                "Unable to find the configured BugSnag project; tools will work across all projects",
                extra={"error": str(exc)},
            )


def prompt_for_input(message: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    """Ask for elicited values on the terminal; non-interactive runs cancel."""
    if not sys.stdin.isatty():
        return {"action": "cancel"}

    content: Dict[str, Any] = {}
    print(message, file=sys.stderr)
    for name, spec in schema.get("properties", {}).items():
        choices = spec.get("enum")
        suffix = f" [{'/'.join(choices)}]" if choices else ""
        answer = input(f"{name}{suffix}: ").strip()
        if not answer:
            return {"action": "reject"}
        content[name] = answer
    return {"action": "accept", "content": content}


def run() -> int:
    """Run one tool invocation end-to-end and return a process exit code."""
    args = parse_args()
    configure_logging(args.verbose)

    try:
        config = load_config(
            project_api_key=args.project_api_key,
            endpoint=args.endpoint,
            timeout_seconds=args.timeout,
        )
        services = build_services(config)

        registry = ToolRegistry()
        if args.list_tools:
            register_tools(registry.register, prompt_for_input, services)
            for definition in registry.definitions:
                print(f"{definition.name}: {definition.summary}")
            return EXIT_SUCCESS

        warm_up(services)
        register_tools(registry.register, prompt_for_input, services)
        result = registry.call(args.tool, args.tool_args)
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION_ERROR
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except ApiError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_API_ERROR
    except Exception:  # noqa: BLE001 - final process boundary
        logger.exception("Unexpected error while running the BugSnag tool adapter")
        return EXIT_UNEXPECTED_ERROR

    for item in result.get("content", []):
        print(item.get("text", ""))
    return EXIT_TOOL_ERROR if result.get("isError") else EXIT_SUCCESS


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
