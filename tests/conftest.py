"""Pytest configuration and shared fakes for all tests."""

from typing import Any, Dict, List, Optional

import pytest

from src.start_workspace.config import ActionInput, identity_from_inputs


CODER_URL = "https://example.com"
RUN_URL = "https://github.com/workflow-run"
DEFAULT_PARAMETERS = "key: value\nkey2: value2\nkey3: value3"


def make_action_input(
    github_username: Optional[str] = "github-user",
    coder_username: Optional[str] = None,
    **overrides: Any,
) -> ActionInput:
    values: Dict[str, Any] = {
        "identity": identity_from_inputs(github_username, coder_username),
        "coder_url": CODER_URL,
        "coder_token": "coder-token",
        "workspace_name": "workspace-name",
        "github_status_comment_id": 123,
        "github_repo_owner": "github-repo-owner",
        "github_repo_name": "github-repo-name",
        "github_token": "github-token",
        "github_workflow_run_url": RUN_URL,
        "template_name": "ubuntu",
        "workspace_parameters": DEFAULT_PARAMETERS,
    }
    values.update(overrides)
    return ActionInput(**values)


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient recording every comment write."""

    def __init__(self, initial_comment: str = "", github_user_id: int = 123):
        self.comments: List[str] = [initial_comment]
        self.github_user_id = github_user_id
        self.user_lookups: List[str] = []

    async def get_user_id(self, username: str) -> int:
        self.user_lookups.append(username)
        return self.github_user_id

    async def get_comment_body(self, owner: str, repo: str, comment_id: int) -> str:
        return self.comments[-1]

    async def update_comment(
        self, owner: str, repo: str, comment_id: int, body: str
    ) -> Dict[str, Any]:
        self.comments.append(body)
        return {"id": comment_id, "body": body}

    async def create_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> Dict[str, Any]:
        self.comments = [body]
        return {"id": 999, "body": body}


@pytest.fixture
def fake_github():
    return FakeGitHubClient(initial_comment="Initial comment")
