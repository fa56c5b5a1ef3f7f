"""Unit tests for the GitHub and Coder REST clients.

Requests are served by httpx.MockTransport handlers, so the tests check
the exact paths, query strings and bodies the clients send.
"""

import asyncio
import json

import httpx
import pytest

from src.start_workspace.coder.client import GITHUB_ID_QUERY_UNSUPPORTED, CoderClient
from src.start_workspace.errors import (
    CoderAPIError,
    GitHubAPIError,
    InternalError,
    TemplateNotFound,
)
from src.start_workspace.github.client import GitHubClient


def run_async(coro):
    return asyncio.run(coro)


def _recording_transport(handler):
    requests = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(record), requests


async def _with_github(transport, call):
    async with GitHubClient(token="ghp_test", transport=transport) as client:
        return await call(client)


async def _with_coder(transport, call):
    async with CoderClient("https://coder.example.com", "coder-token", transport=transport) as client:
        return await call(client)


class TestGitHubClient:

    def test_get_user_id(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(200, json={"id": 583231, "login": "octocat"})
        )

        user_id = run_async(_with_github(transport, lambda c: c.get_user_id("octocat")))

        assert user_id == 583231
        assert requests[0].method == "GET"
        assert requests[0].url.path == "/users/octocat"
        assert requests[0].headers["Authorization"] == "Bearer ghp_test"

    def test_get_comment_body(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(200, json={"id": 7, "body": "hello"})
        )

        body = run_async(
            _with_github(transport, lambda c: c.get_comment_body("acme", "widgets", 7))
        )

        assert body == "hello"
        assert requests[0].url.path == "/repos/acme/widgets/issues/comments/7"

    def test_update_comment_patches_body(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(200, json={"id": 7, "body": "new"})
        )

        run_async(
            _with_github(
                transport, lambda c: c.update_comment("acme", "widgets", 7, "new")
            )
        )

        assert requests[0].method == "PATCH"
        assert requests[0].url.path == "/repos/acme/widgets/issues/comments/7"
        assert json.loads(requests[0].content) == {"body": "new"}

    def test_create_comment(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(201, json={"id": 99})
        )

        result = run_async(
            _with_github(
                transport, lambda c: c.create_comment("acme", "widgets", 42, "hi")
            )
        )

        assert result["id"] == 99
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/repos/acme/widgets/issues/42/comments"

    def test_error_status_raises_without_retry(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(503, text="unavailable")
        )

        with pytest.raises(GitHubAPIError) as exc_info:
            run_async(_with_github(transport, lambda c: c.get_user_id("octocat")))

        assert exc_info.value.status_code == 503
        assert exc_info.value.response_body == "unavailable"
        assert len(requests) == 1

    def test_transport_error_is_wrapped(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GitHubAPIError, match="connection refused"):
            run_async(
                _with_github(httpx.MockTransport(fail), lambda c: c.get_user_id("octocat"))
            )

    @pytest.mark.parametrize("content", [b"<html>oops</html>", b"[1, 2]"])
    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.get_user_id("octocat"),
            lambda c: c.get_comment_body("acme", "widgets", 7),
            lambda c: c.update_comment("acme", "widgets", 7, "new"),
            lambda c: c.create_comment("acme", "widgets", 42, "hi"),
        ],
        ids=["get_user_id", "get_comment_body", "update_comment", "create_comment"],
    )
    def test_malformed_body_is_internal_error(self, content, call):
        transport, _ = _recording_transport(
            lambda request: httpx.Response(200, content=content)
        )

        with pytest.raises(GitHubAPIError, match="Unexpected response from GitHub") as exc_info:
            run_async(_with_github(transport, call))

        assert isinstance(exc_info.value, InternalError)
        assert exc_info.value.status_code == 200
        assert exc_info.value.response_body == content.decode()


class TestCoderClient:

    def test_get_users_by_github_id(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(
                200,
                json={
                    "users": [
                        {"id": "u1", "username": "hugo"},
                        {"id": "u2", "username": "alice"},
                    ],
                    "count": 2,
                },
            )
        )

        usernames = run_async(
            _with_coder(transport, lambda c: c.get_users_by_github_id(123))
        )

        assert usernames == ["hugo", "alice"]
        assert requests[0].url.path == "/api/v2/users"
        assert requests[0].url.params["q"] == "github_com_user_id:123"
        assert requests[0].headers["Coder-Session-Token"] == "coder-token"

    def test_unsupported_github_id_query_is_explained(self):
        transport, _ = _recording_transport(
            lambda request: httpx.Response(
                400,
                text='{"message":"\\"github_com_user_id\\" is not a valid query param"}',
            )
        )

        with pytest.raises(CoderAPIError) as exc_info:
            run_async(_with_coder(transport, lambda c: c.get_users_by_github_id(123)))

        message = str(exc_info.value)
        assert message.startswith(GITHUB_ID_QUERY_UNSUPPORTED)
        assert "status code: 400" in message

    def test_get_user_id(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(200, json={"id": "user-uuid", "username": "hugo"})
        )

        assert run_async(_with_coder(transport, lambda c: c.get_user_id("hugo"))) == "user-uuid"
        assert requests[0].url.path == "/api/v2/users/hugo"

    def test_get_template_info_matches_exact_name(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(
                200,
                json=[
                    {"id": "t1", "name": "ubuntu-gpu", "active_version_id": "v1"},
                    {"id": "t2", "name": "ubuntu", "active_version_id": "v2"},
                ],
            )
        )

        info = run_async(_with_coder(transport, lambda c: c.get_template_info("ubuntu")))

        assert info.template_id == "t2"
        assert info.template_version_id == "v2"
        assert requests[0].url.params["q"] == "exact_name:ubuntu"

    def test_get_template_info_not_found(self):
        transport, _ = _recording_transport(
            lambda request: httpx.Response(
                200, json=[{"id": "t1", "name": "ubuntu-gpu", "active_version_id": "v1"}]
            )
        )

        with pytest.raises(TemplateNotFound) as exc_info:
            run_async(_with_coder(transport, lambda c: c.get_template_info("ubuntu")))
        assert isinstance(exc_info.value, InternalError)

    def test_create_workspace_sends_rich_parameters(self):
        transport, requests = _recording_transport(
            lambda request: httpx.Response(201, json={"id": "workspace-uuid"})
        )

        workspace_id = run_async(
            _with_coder(
                transport,
                lambda c: c.create_workspace(
                    owner_id="user-uuid",
                    template_id="t2",
                    workspace_name="issue-42",
                    parameters={"region": "eu", "cpu": "4"},
                ),
            )
        )

        assert workspace_id == "workspace-uuid"
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/api/v2/users/user-uuid/workspaces"
        body = json.loads(requests[0].content)
        assert body["template_id"] == "t2"
        assert body["name"] == "issue-42"
        assert body["autostart"] is True
        assert sorted(body["rich_parameter_values"], key=lambda p: p["name"]) == [
            {"name": "cpu", "value": "4"},
            {"name": "region", "value": "eu"},
        ]

    def test_create_workspace_failure_includes_status_and_body(self):
        transport, _ = _recording_transport(
            lambda request: httpx.Response(409, text="workspace already exists")
        )

        with pytest.raises(CoderAPIError) as exc_info:
            run_async(
                _with_coder(
                    transport,
                    lambda c: c.create_workspace("user-uuid", "t2", "issue-42", {}),
                )
            )

        assert str(exc_info.value) == (
            "Failed to create Coder workspace, status code: 409, "
            "body: workspace already exists"
        )
        assert exc_info.value.status_code == 409

    def test_malformed_response_is_internal_error(self):
        transport, _ = _recording_transport(
            lambda request: httpx.Response(200, json={"unexpected": True})
        )

        with pytest.raises(CoderAPIError, match="Unexpected response"):
            run_async(_with_coder(transport, lambda c: c.get_users_by_github_id(123)))
