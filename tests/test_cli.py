"""Tests for command-line argument parsing."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bugsnag_tools.cli import parse_args


def test_parse_args_with_tool_and_json_arguments(monkeypatch):
    """Verify CLI parsing reads the tool name and its JSON arguments."""
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "bugsnag-mcp-tools",
            "get_error",
            "--args",
            '{"errorId": "abc", "projectId": "p1"}',
            "--timeout",
            "10",
        ],
    )

    args = parse_args()

    assert args.tool == "get_error"
    assert args.tool_args == {"errorId": "abc", "projectId": "p1"}
    assert args.timeout == 10
    assert args.list_tools is False


def test_parse_args_defaults(monkeypatch):
    """Verify optional arguments fall back to their defaults."""
    monkeypatch.setattr(sys, "argv", ["bugsnag-mcp-tools", "list_builds"])

    args = parse_args()

    assert args.tool_args == {}
    assert args.project_api_key is None
    assert args.endpoint is None
    assert args.timeout == 30
    assert args.verbose is False


def test_parse_args_list_tools_without_tool_name(monkeypatch):
    """Verify --list-tools does not require a tool name."""
    monkeypatch.setattr(sys, "argv", ["bugsnag-mcp-tools", "--list-tools"])

    args = parse_args()

    assert args.list_tools is True
    assert args.tool is None


def test_parse_args_without_tool_fails(monkeypatch):
    """Verify CLI parsing exits with an error when no tool is named."""
    monkeypatch.setattr(sys, "argv", ["bugsnag-mcp-tools"])

    with pytest.raises(SystemExit):
        parse_args()


def test_parse_args_with_non_object_json_fails_validation(monkeypatch):
    """Verify --args must be a JSON object."""
    monkeypatch.setattr(sys, "argv", ["bugsnag-mcp-tools", "get_error", "--args", "[1, 2]"])

    with pytest.raises(SystemExit):
        parse_args()


def test_parse_args_with_negative_timeout_fails_validation(monkeypatch):
    """Verify CLI parsing exits with an error when --timeout is not positive."""
    monkeypatch.setattr(sys, "argv", ["bugsnag-mcp-tools", "get_error", "--timeout", "-1"])

    with pytest.raises(SystemExit):
        parse_args()
