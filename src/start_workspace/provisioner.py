"""Coder workspace provisioning.

Creates exactly one workspace for a resolved Coder user. Provisioning is
complete once Coder has accepted the creation request; the action does
not wait for the workspace to finish building.

Two transports implement the WorkspaceProvisioner interface:
- ApiWorkspaceProvisioner: REST calls (user id, template id, create).
- CliWorkspaceProvisioner: ``coder create`` with a temporary rich
  parameter file, which is always removed afterwards.
"""

import contextlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Protocol, runtime_checkable

from src.start_workspace.coder.cli import CoderCLI
from src.start_workspace.coder.client import CoderClient
from src.start_workspace.parameters import dump_parameters

logger = logging.getLogger(__name__)

PARAMETERS_FILE_PREFIX = "coder-parameters-"
PARAMETERS_FILE_SUFFIX = ".yml"


@dataclass(frozen=True)
class WorkspaceRequest:
    """Everything needed to create one workspace.

    Attributes:
        coder_username: Owner of the new workspace.
        template_name: Exact name of the Coder template.
        workspace_name: Name of the new workspace.
        parameters: Rich parameter values keyed by parameter name.
    """

    coder_username: str
    template_name: str
    workspace_name: str
    parameters: Dict[str, str] = field(default_factory=dict)


@runtime_checkable
class WorkspaceProvisioner(Protocol):
    """Creates a workspace and returns once creation is accepted."""

    async def provision(self, request: WorkspaceRequest) -> None:
        ...


class ApiWorkspaceProvisioner:
    """Creates workspaces through the Coder REST API."""

    def __init__(self, coder: CoderClient):
        self.coder = coder

    async def provision(self, request: WorkspaceRequest) -> None:
        """Create the workspace described by the request.

        Raises:
            CoderAPIError: If any Coder call fails.
            TemplateNotFound: If the template name has no exact match.
        """
        logger.info("Getting user ID", extra={"coder_username": request.coder_username})
        owner_id = await self.coder.get_user_id(request.coder_username)

        logger.info("Getting template info", extra={"template": request.template_name})
        template = await self.coder.get_template_info(request.template_name)

        logger.info("Creating workspace", extra={"workspace": request.workspace_name})
        await self.coder.create_workspace(
            owner_id=owner_id,
            template_id=template.template_id,
            workspace_name=request.workspace_name,
            parameters=request.parameters,
        )
        logger.info("Workspace created", extra={"workspace": request.workspace_name})


@contextlib.contextmanager
def parameters_file(parameters: Dict[str, str]) -> Iterator[Path]:
    """Write parameters to a temporary YAML file, removed on exit.

    Yields:
        Path of the temporary file.
    """
    fd, name = tempfile.mkstemp(
        prefix=PARAMETERS_FILE_PREFIX, suffix=PARAMETERS_FILE_SUFFIX
    )
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(dump_parameters(parameters))
        yield path
    finally:
        path.unlink(missing_ok=True)


class CliWorkspaceProvisioner:
    """Creates workspaces by running ``coder create``."""

    def __init__(self, cli: CoderCLI):
        self.cli = cli

    async def provision(self, request: WorkspaceRequest) -> None:
        """Create the workspace described by the request.

        Raises:
            CoderCommandError: If ``coder create`` fails.
        """
        with parameters_file(request.parameters) as path:
            logger.info(
                "Creating workspace",
                extra={
                    "workspace": f"{request.coder_username}/{request.workspace_name}",
                },
            )
            await self.cli.create_workspace(
                coder_username=request.coder_username,
                template_name=request.template_name,
                workspace_name=request.workspace_name,
                parameters_file=path,
            )
        logger.info("Workspace created", extra={"workspace": request.workspace_name})
