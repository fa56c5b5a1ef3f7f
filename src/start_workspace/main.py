"""Command-line entry point for the start-workspace action.

The composite action runs three commands in order:

- ``comment-initial``: post the status comment and export its id
- ``start``: resolve the user, create the workspace, update the comment
- ``comment-failure``: on failure, replace the comment with an error

``start`` exits non-zero on any error. When the error is user-facing its
message is exported as ERROR_MSG through $GITHUB_ENV so that
``comment-failure`` can show it; otherwise the failure comment falls back
to a generic pointer at the run logs.
"""

import asyncio
import logging
import os
import uuid
from typing import Optional

import typer
from pydantic import ValidationError

from src.start_workspace.coder.cli import CoderCLI
from src.start_workspace.coder.client import CoderClient
from src.start_workspace.config import (
    ActionInput,
    ActionSettings,
    get_github_settings,
    get_settings,
)
from src.start_workspace.errors import ConfigurationError, UserFacingError
from src.start_workspace.github.client import GitHubClient
from src.start_workspace.identity import ApiIdentityResolver, CliIdentityResolver
from src.start_workspace.orchestrator import StartWorkspaceAction
from src.start_workspace.provisioner import (
    ApiWorkspaceProvisioner,
    CliWorkspaceProvisioner,
)
from src.start_workspace.status import StatusReporter

logger = logging.getLogger(__name__)

ERROR_MESSAGE_VARIABLE = "ERROR_MSG"

app = typer.Typer(
    no_args_is_help=True,
    help="Start a Coder workspace and report progress on a GitHub issue.",
)


@app.callback()
def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: ActionSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Action configuration:")
    logger.info(f"  GitHub API URL: {settings.github_api_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(f"  GitHub Username: {settings.github_username or '-'}")
    logger.info(f"  Coder Username: {settings.coder_username or '-'}")
    logger.info(f"  Coder URL: {settings.coder_url}")
    logger.info(f"  Coder Token: {_redact_secret(settings.coder_token)}")
    logger.info(f"  Coder Transport: {settings.coder_transport}")
    logger.info(f"  Template: {settings.template_name}")
    logger.info(f"  Workspace Name: {settings.workspace_name}")
    logger.info(
        f"  Status Comment: {settings.github_repo_owner}/"
        f"{settings.github_repo_name}#{settings.github_status_comment_id}"
    )


def _append_to_github_file(variable: str, name: str, value: str) -> bool:
    """Append ``name=value`` to the file named by a GitHub runner variable.

    Multiline-safe: values are written with a random heredoc delimiter.

    Returns:
        False if the runner variable is not set.
    """
    path = os.environ.get(variable)
    if not path:
        return False
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    return True


def export_error_message(message: str) -> None:
    """Expose a user-facing error message to later steps of the job."""
    if not _append_to_github_file("GITHUB_ENV", ERROR_MESSAGE_VARIABLE, message):
        logger.warning("GITHUB_ENV is not set; error message not exported")


def build_action(
    action_input: ActionInput,
    github: GitHubClient,
    coder: CoderClient,
    coder_cli: CoderCLI,
) -> StartWorkspaceAction:
    """Wire the orchestrator for the configured transport."""
    if action_input.transport == "cli":
        resolver = CliIdentityResolver(coder_cli)
        provisioner = CliWorkspaceProvisioner(coder_cli)
    else:
        resolver = ApiIdentityResolver(coder, action_input.coder_url)
        provisioner = ApiWorkspaceProvisioner(coder)

    reporter = StatusReporter(
        github,
        owner=action_input.github_repo_owner,
        repo=action_input.github_repo_name,
        comment_id=action_input.github_status_comment_id,
        run_url=action_input.github_workflow_run_url,
    )
    return StartWorkspaceAction(
        input=action_input,
        github=github,
        resolver=resolver,
        provisioner=provisioner,
        reporter=reporter,
    )


async def run_action(settings: ActionSettings, action_input: ActionInput) -> str:
    """Run the action with clients scoped to this invocation."""
    coder_cli = CoderCLI(
        coder_url=action_input.coder_url,
        coder_token=action_input.coder_token,
        coder_path=settings.coder_cli_path,
    )
    async with GitHubClient(
        token=action_input.github_token, base_url=settings.github_api_url
    ) as github:
        async with CoderClient(action_input.coder_url, action_input.coder_token) as coder:
            action = build_action(action_input, github, coder, coder_cli)
            return await action.execute()


@app.command()
def start() -> None:
    """Start the workspace and update the status comment."""
    try:
        settings = get_settings()
        action_input = settings.to_action_input()
    except (ValidationError, ConfigurationError) as exc:
        logger.error("Invalid action configuration: %s", exc)
        raise typer.Exit(code=1)

    _log_configuration(settings)

    try:
        workspace_url = asyncio.run(run_action(settings, action_input))
    except UserFacingError as exc:
        logger.error("%s", exc)
        export_error_message(str(exc))
        raise typer.Exit(code=1)
    except Exception:
        logger.exception("Failed to start the workspace")
        raise typer.Exit(code=1)

    logger.info("Workspace started: %s", workspace_url)


@app.command("comment-initial")
def comment_initial(
    issue_number: int = typer.Option(
        ..., envvar="GITHUB_ISSUE_NUMBER", help="Issue to post the status comment on."
    ),
) -> None:
    """Post the status comment and export its id as a step output."""
    try:
        settings = get_github_settings()
    except ValidationError as exc:
        logger.error("Invalid action configuration: %s", exc)
        raise typer.Exit(code=1)

    async def post() -> StatusReporter:
        async with GitHubClient(
            token=settings.github_token, base_url=settings.github_api_url
        ) as github:
            return await StatusReporter.post_initial(
                github,
                settings.github_repo_owner,
                settings.github_repo_name,
                issue_number,
                settings.github_workflow_run_url,
            )

    try:
        reporter = asyncio.run(post())
    except Exception:
        logger.exception("Failed to post the status comment")
        raise typer.Exit(code=1)

    outputs = {
        "comment_id": str(reporter.comment_id),
        "run_url": settings.github_workflow_run_url,
        "repo_owner": settings.github_repo_owner,
        "repo_name": settings.github_repo_name,
        "issue_number": str(issue_number),
    }
    for name, value in outputs.items():
        _append_to_github_file("GITHUB_OUTPUT", name, value)
    typer.echo(reporter.comment_id)


@app.command("comment-failure")
def comment_failure(
    comment_id: Optional[int] = typer.Option(
        None, envvar="GITHUB_STATUS_COMMENT_ID", help="Status comment to update."
    ),
    error_message: str = typer.Option(
        "", envvar=ERROR_MESSAGE_VARIABLE, help="User-facing error to display."
    ),
) -> None:
    """Replace the status comment with a failure message."""
    if not comment_id:
        logger.warning("No comment ID found, skipping status update")
        return

    try:
        settings = get_github_settings()
    except ValidationError as exc:
        logger.error("Invalid action configuration: %s", exc)
        raise typer.Exit(code=1)

    async def report() -> None:
        async with GitHubClient(
            token=settings.github_token, base_url=settings.github_api_url
        ) as github:
            reporter = StatusReporter(
                github,
                settings.github_repo_owner,
                settings.github_repo_name,
                comment_id,
                settings.github_workflow_run_url,
            )
            await reporter.report_failure(error_message)

    try:
        asyncio.run(report())
    except Exception:
        logger.exception("Failed to update the status comment")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
