"""Command-line argument parsing for the BugSnag tool adapter."""

from __future__ import annotations

import argparse
import json
from typing import Any, Dict


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def _json_object(value: str) -> Dict[str, Any]:
    """Parse a JSON object CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a JSON object.
    """
    try:
        parsed = json.loads(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be valid JSON") from exc

    if not isinstance(parsed, dict):
        raise argparse.ArgumentTypeError("must be a JSON object")

    return parsed


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for a single tool invocation.

    Returns:
        Parsed CLI arguments containing the tool name, its JSON arguments and
        connection overrides. The auth token is read from ``BUGSNAG_AUTH_TOKEN``.
    """
    parser = argparse.ArgumentParser(
        prog="bugsnag-mcp-tools",
        description="Invoke a BugSnag agent tool and print its result.",
    )

    parser.add_argument(
        "tool",
        nargs="?",
        help="Name of the tool to invoke, e.g. list_project_errors.",
    )
    parser.add_argument(
        "--args",
        dest="tool_args",
        type=_json_object,
        default={},
        help='Tool arguments as a JSON object, e.g. \'{"errorId": "abc"}\'.',
    )
    parser.add_argument(
        "--list-tools",
        action="store_true",
        help="List the available tools and exit.",
    )
    parser.add_argument(
        "--project-api-key",
        default=None,
        help="Project API key binding the current project (default: BUGSNAG_PROJECT_API_KEY).",
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help="Custom BugSnag API endpoint (default: BUGSNAG_ENDPOINT or bugsnag.com).",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_int,
        default=30,
        help="Per-request timeout in seconds (default: 30).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging on stderr.",
    )

    args = parser.parse_args()
    if not args.tool and not args.list_tools:
        parser.error("a tool name is required unless --list-tools is given")
    return args
