"""Tests for BugSnag API client behavior with mocked HTTP."""

import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import requests
from requests.structures import CaseInsensitiveDict

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bugsnag_tools.api_client import (
    ApiResponse,
    BugsnagApiClient,
    override_query_param,
    parse_next_link,
    parse_total_count,
)
from bugsnag_tools.config import Config
from bugsnag_tools.errors import ApiError


def _build_client() -> BugsnagApiClient:
    return BugsnagApiClient(config=Config(auth_token="secret-token"))


def _response(status_code: int, payload=None, text: str = "", headers: dict | None = None):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.headers = CaseInsensitiveDict(headers or {})
    response.content = b"" if payload is None else b"{}"
    response.json.return_value = payload
    return response


def test_session_sends_token_auth_and_api_version_headers():
    """Verify the session authenticates with the auth token and pins API version 2."""
    client = _build_client()

    assert client._session.headers["Authorization"] == "token secret-token"
    assert client._session.headers["X-Version"] == "2"
    assert client.base_url == "https://api.bugsnag.com"


def test_request_joins_relative_paths_and_passes_absolute_urls_through():
    """Verify relative paths use the API base while continuation URLs are used verbatim."""
    client = _build_client()
    client._session.request = Mock(side_effect=[_response(200, []), _response(200, [])])

    client.request("GET", "projects/p1/errors")
    client.request("GET", "https://api.bugsnag.com/projects/p1/errors?offset=30")

    first_url = client._session.request.call_args_list[0].args[1]
    second_url = client._session.request.call_args_list[1].args[1]
    assert first_url == "https://api.bugsnag.com/projects/p1/errors"
    assert second_url == "https://api.bugsnag.com/projects/p1/errors?offset=30"


def test_request_retries_on_429_and_succeeds():
    """Verify requests are retried after HTTP 429 honoring Retry-After."""
    client = _build_client()
    first = _response(429, headers={"Retry-After": "2"})
    second = _response(200, payload=[{"id": "org-1"}])
    client._session.request = Mock(side_effect=[first, second])

    with patch("bugsnag_tools.api_client.time.sleep") as sleep_mock:
        response = client.request("GET", "user/organizations")

    assert response.body == [{"id": "org-1"}]
    assert client._session.request.call_count == 2
    sleep_mock.assert_called_once_with(2)


def test_request_retries_on_5xx_and_raises_after_max_retries():
    """Verify retryable server errors raise ApiError once retries are exhausted."""
    client = _build_client()
    server_error = _response(503, text="service unavailable")
    client._session.request = Mock(side_effect=[server_error] * client._MAX_RETRIES)

    with patch("bugsnag_tools.api_client.time.sleep") as sleep_mock:
        with pytest.raises(ApiError) as exc_info:
            client.request("GET", "user/organizations")

    assert exc_info.value.status_code == 503
    assert client._session.request.call_count == client._MAX_RETRIES
    assert sleep_mock.call_count == client._MAX_RETRIES - 1


def test_request_wraps_transport_errors_after_retries():
    """Verify connection failures surface as ApiError after the final attempt."""
    client = _build_client()
    client._session.request = Mock(side_effect=requests.ConnectionError("boom"))

    with patch("bugsnag_tools.api_client.time.sleep"):
        with pytest.raises(ApiError):
            client.request("GET", "user/organizations")

    assert client._session.request.call_count == client._MAX_RETRIES


def test_request_raises_api_error_for_client_errors():
    """Verify HTTP 4xx responses raise ApiError with the status code."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(401, text="unauthorized"))

    with pytest.raises(ApiError) as exc_info:
        client.request("GET", "user/organizations")

    assert exc_info.value.status_code == 401


def test_view_error_returns_none_for_404():
    """Verify single-record lookups map HTTP 404 to None instead of raising."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(404, text="not found"))

    assert client.view_error("p1", "missing") is None


def test_update_error_returns_status_without_raising():
    """Verify update calls report failure statuses instead of raising."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(404, text="not found"))

    response = client.update_error("p1", "e1", {"operation": "fix"})

    assert response.status == 404
    call = client._session.request.call_args
    assert call.args[0] == "PATCH"
    assert call.kwargs["json"] == {"operation": "fix"}


def test_update_error_accepts_204_without_body():
    """Verify empty 204 responses decode to a None body."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(204))

    response = client.update_error("p1", "e1", {"operation": "fix"})

    assert response.status == 204
    assert response.body is None


def test_list_organization_projects_follows_link_header_until_exhausted():
    """Verify project listing drains every page using the Link header."""
    client = _build_client()
    first = _response(
        200,
        payload=[{"id": "p1"}, {"id": "p2"}],
        headers={"Link": '<https://api.bugsnag.com/organizations/o1/projects?offset=2>; rel="next"'},
    )
    second = _response(200, payload=[{"id": "p3"}])
    client._session.request = Mock(side_effect=[first, second])

    projects = client.list_organization_projects("o1")

    assert [project["id"] for project in projects] == ["p1", "p2", "p3"]
    second_url = client._session.request.call_args_list[1].args[1]
    assert second_url == "https://api.bugsnag.com/organizations/o1/projects?offset=2"


def test_list_project_errors_with_next_url_overrides_only_page_size():
    """Verify continuation URLs are reused with just the per_page value replaced."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(200, payload=[]))

    client.list_project_errors(
        "p1",
        next_url="https://api.bugsnag.com/projects/p1/errors?offset=30&per_page=30&sort=users",
        per_page=50,
    )

    call = client._session.request.call_args
    assert call.args[1] == "https://api.bugsnag.com/projects/p1/errors?offset=30&sort=users&per_page=50"
    assert call.kwargs["params"] is None


def test_unexpected_payload_shape_raises_api_error():
    """Verify list endpoints reject non-list payloads."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(200, payload={"unexpected": True}))

    with pytest.raises(ApiError):
        client.list_user_organizations()


def test_parse_next_link_extracts_bracketed_url():
    """Verify the rel=next target is extracted from a Link header."""
    header = '<https://api.example.com/errors?offset=30>; rel="next"'

    assert parse_next_link(header) == "https://api.example.com/errors?offset=30"
    assert parse_next_link('<https://api.example.com/errors?offset=0>; rel="prev"') is None
    assert parse_next_link(None) is None


def test_pagination_headers_are_read_case_insensitively():
    """Verify total count and next link are read from lower-cased headers."""
    response = ApiResponse(
        status=200,
        headers={"x-total-count": "42", "link": '<https://api.example.com/errors?offset=30>; rel="next"'},
        body=[],
    )

    assert response.total_count == 42
    assert response.next_url == "https://api.example.com/errors?offset=30"


def test_parse_total_count_ignores_missing_and_malformed_values():
    """Verify absent or non-numeric X-Total-Count headers produce None."""
    assert parse_total_count({}) is None
    assert parse_total_count({"X-Total-Count": "lots"}) is None


def test_override_query_param_replaces_existing_value():
    """Verify query overrides drop the previous value of the parameter."""
    url = override_query_param("https://api.bugsnag.com/x?per_page=10&offset=5", "per_page", 25)

    assert url == "https://api.bugsnag.com/x?offset=5&per_page=25"


def test_parse_next_link_accepts_unquoted_rel():
    """Verify rel=next is recognized with or without quotes."""
    header = '<https://api.example.com/errors?offset=0>; rel=prev, <https://api.example.com/errors?offset=60>; rel=next'

    assert parse_next_link(header) == "https://api.example.com/errors?offset=60"
    assert parse_next_link("<https://api.example.com/errors?offset=0>; rel=nextish") is None


def test_update_error_is_not_retried_on_server_error():
    """Verify a PATCH answered with 5xx is sent once and its status reported."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(502, text="bad gateway"))

    with patch("bugsnag_tools.api_client.time.sleep") as sleep_mock:
        response = client.update_error("p1", "e1", {"operation": "fix"})

    assert response.status == 502
    assert client._session.request.call_count == 1
    sleep_mock.assert_not_called()


def test_update_error_is_not_retried_on_transport_error():
    """Verify a PATCH that fails in transport raises without being resent."""
    client = _build_client()
    client._session.request = Mock(side_effect=requests.ConnectionError("reset"))

    with patch("bugsnag_tools.api_client.time.sleep"):
        with pytest.raises(ApiError):
            client.update_error("p1", "e1", {"operation": "fix"})

    assert client._session.request.call_count == 1


def test_update_error_is_retried_on_429():
    """Verify rate-limited PATCH requests are still retried."""
    client = _build_client()
    client._session.request = Mock(
        side_effect=[_response(429, headers={"Retry-After": "1"}), _response(204)]
    )

    with patch("bugsnag_tools.api_client.time.sleep"):
        response = client.update_error("p1", "e1", {"operation": "fix"})

    assert response.status == 204
    assert client._session.request.call_count == 2
