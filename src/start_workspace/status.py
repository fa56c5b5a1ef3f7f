"""Status comment reporting.

The action tracks progress in a single issue comment:

1. bootstrap: "Starting a Coder workspace..." with a link to the run
2. progress:  the workspace URL is appended to the current body
3. terminal:  replaced with a success line, or with a failure line by the
              failure step of the composite action
"""

import logging

from src.start_workspace.errors import MissingCommentBody
from src.start_workspace.github.client import GitHubClient

logger = logging.getLogger(__name__)


def initial_message(run_url: str) -> str:
    """Bootstrap comment posted before the run starts."""
    return f"🔄 Starting a Coder workspace. You can track the progress [here]({run_url})."


def progress_line(workspace_url: str) -> str:
    """Line appended once the workspace URL is known."""
    return f"Workspace will be available at: {workspace_url}"


def success_message(workspace_url: str, run_url: str) -> str:
    """Comment body for a started workspace."""
    return (
        f"✅ Coder workspace started! You can view the action logs [here]({run_url})."
        f"\n\nWorkspace is available at: {workspace_url}"
    )


def failure_message(run_url: str, error_message: str = "") -> str:
    """Comment body for a failed run, pointing at the logs when no message is given."""
    if not error_message:
        error_message = (
            "Failed to start the workspace. Please check the "
            f"[action logs]({run_url}) for details."
        )
    return f"❌ {error_message}"


class StatusReporter:
    """Reads and rewrites the action's status comment.

    Attributes:
        github: GitHub API client.
        owner: Repository owner.
        repo: Repository name.
        comment_id: ID of the status comment.
        run_url: Link to the workflow run's logs.
    """

    def __init__(
        self,
        github: GitHubClient,
        owner: str,
        repo: str,
        comment_id: int,
        run_url: str,
    ):
        self.github = github
        self.owner = owner
        self.repo = repo
        self.comment_id = comment_id
        self.run_url = run_url

    @classmethod
    async def post_initial(
        cls,
        github: GitHubClient,
        owner: str,
        repo: str,
        issue_number: int,
        run_url: str,
    ) -> "StatusReporter":
        """Create the status comment on an issue and return its reporter."""
        comment = await github.create_comment(
            owner, repo, issue_number, initial_message(run_url)
        )
        return cls(github, owner, repo, int(comment["id"]), run_url)

    async def read(self) -> str:
        """Return the current comment body.

        Raises:
            MissingCommentBody: If the comment has no body.
        """
        body = await self.github.get_comment_body(
            self.owner, self.repo, self.comment_id
        )
        if not body:
            raise MissingCommentBody("Issue comment body is required")
        return body

    async def write(self, body: str) -> None:
        await self.github.update_comment(
            self.owner, self.repo, self.comment_id, body
        )

    async def announce_workspace_url(self, workspace_url: str) -> None:
        """Append the future workspace URL to the current comment body."""
        body = await self.read()
        await self.write(f"{body}\n\n{progress_line(workspace_url)}")

    async def report_success(self, workspace_url: str) -> None:
        """Replace the comment with the success message."""
        await self.write(success_message(workspace_url, self.run_url))
        logger.info(
            "Reported workspace start",
            extra={"comment_id": self.comment_id, "workspace_url": workspace_url},
        )

    async def report_failure(self, error_message: str = "") -> None:
        """Replace the comment with a failure message.

        Without an error message the comment points at the run logs.
        """
        await self.write(failure_message(self.run_url, error_message))
        logger.info(
            "Reported workspace failure",
            extra={"comment_id": self.comment_id},
        )
