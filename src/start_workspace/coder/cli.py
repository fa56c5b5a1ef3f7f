"""Coder CLI subprocess management.

Runs the ``coder`` binary as an async subprocess for the CLI transport.
The deployment URL and session token are passed through the CODER_URL and
CODER_TOKEN environment variables, never on the command line.

Failures raise CoderCommandError naming only the subcommand, so argument
values (usernames, file paths) do not end up in error messages.
"""

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Sequence

from src.start_workspace.errors import CoderCommandError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured output of a finished coder command.

    Attributes:
        exit_code: Process exit code.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """

    exit_code: int
    stdout: str
    stderr: str


class CoderCLI:
    """Runs ``coder`` subcommands against one deployment.

    Attributes:
        coder_path: Path or name of the coder executable.
        coder_url: Deployment URL exported as CODER_URL.
    """

    def __init__(self, coder_url: str, coder_token: str, coder_path: str = "coder"):
        self.coder_path = coder_path
        self.coder_url = coder_url
        self._coder_token = coder_token

    def _environment(self) -> Dict[str, str]:
        return {
            **os.environ,
            "CODER_URL": self.coder_url,
            "CODER_TOKEN": self._coder_token,
        }

    async def users_list(self, github_user_id: int) -> str:
        """List usernames of Coder users linked to a GitHub user id.

        Returns:
            Raw table output with a USERNAME header line.
        """
        result = await self._exec(
            "users list",
            [
                "users",
                "list",
                "--github-user-id",
                str(github_user_id),
                "--column",
                "username",
            ],
        )
        return result.stdout

    async def create_workspace(
        self,
        coder_username: str,
        template_name: str,
        workspace_name: str,
        parameters_file: Path,
    ) -> str:
        """Create ``<user>/<workspace>`` from a template.

        Any interactive prompt left unanswered by the parameter file is
        accepted with its default, by piping empty lines into the command.
        """
        full_workspace_name = f"{coder_username}/{workspace_name}"
        create_command = shlex.join(
            [
                self.coder_path,
                "create",
                "--yes",
                "--template",
                template_name,
                full_workspace_name,
                "--rich-parameter-file",
                str(parameters_file),
            ]
        )
        result = await self._shell(
            "create", f"bash -c \"yes '' || true\" | {create_command}"
        )
        return result.stdout

    async def _exec(self, command: str, args: Sequence[str]) -> CommandResult:
        """Run ``coder <args>`` without a shell."""
        logger.info("Running coder command", extra={"command": command})
        try:
            process = await asyncio.create_subprocess_exec(
                self.coder_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(),
            )
        except OSError as exc:
            raise CoderCommandError(command, -1, str(exc)) from exc
        return await self._collect(command, process)

    async def _shell(self, command: str, script: str) -> CommandResult:
        """Run a pre-quoted shell pipeline ending in a coder command."""
        logger.info("Running coder command", extra={"command": command})
        try:
            process = await asyncio.create_subprocess_shell(
                script,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(),
            )
        except OSError as exc:
            raise CoderCommandError(command, -1, str(exc)) from exc
        return await self._collect(command, process)

    async def _collect(
        self,
        command: str,
        process: asyncio.subprocess.Process,
    ) -> CommandResult:
        stdout, stderr = await process.communicate()
        result = CommandResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

        if result.exit_code != 0:
            logger.error(
                "coder %s failed with exit code %d",
                command,
                result.exit_code,
            )
            raise CoderCommandError(command, result.exit_code, result.stderr.strip())

        logger.debug("coder %s completed", command)
        return result

