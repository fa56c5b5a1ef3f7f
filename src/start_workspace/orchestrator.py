"""Start-workspace orchestrator.

Drives one run of the action through its stages:

    INIT -> PARAMETERS_PARSED -> IDENTITY_RESOLVED -> PRE_UPDATE_POSTED
         -> WORKSPACE_CREATED -> POST_UPDATE_POSTED

Every external call is awaited before the next one starts. Any error
aborts the remaining stages and propagates to the caller unchanged.
Nothing already written to the status comment is rolled back; the
composite action's failure step overwrites it with a failure marker.

The orchestrator does not choose between the API and CLI transports; it
receives an IdentityResolver and a WorkspaceProvisioner already wired for
one of them.
"""

import logging
from enum import Enum
from typing import Optional

from src.start_workspace.config import ActionInput, CoderIdentity, GitHubIdentity
from src.start_workspace.github.client import GitHubClient
from src.start_workspace.identity import IdentityResolver
from src.start_workspace.parameters import WorkspaceParameters, parse_parameters
from src.start_workspace.provisioner import WorkspaceProvisioner, WorkspaceRequest
from src.start_workspace.status import StatusReporter

logger = logging.getLogger(__name__)


class ActionStage(str, Enum):
    """Stages of a start-workspace run."""

    INIT = "init"
    PARAMETERS_PARSED = "parameters_parsed"
    IDENTITY_RESOLVED = "identity_resolved"
    PRE_UPDATE_POSTED = "pre_update_posted"
    WORKSPACE_CREATED = "workspace_created"
    POST_UPDATE_POSTED = "post_update_posted"


def build_workspace_url(coder_url: str, coder_username: str, workspace_name: str) -> str:
    return f"{coder_url.rstrip('/')}/{coder_username}/{workspace_name}"


class StartWorkspaceAction:
    """Starts a Coder workspace and reports progress on a GitHub comment.

    Attributes:
        input: Validated action inputs.
        github: GitHub API client, used for user id lookups.
        resolver: GitHub to Coder identity resolver.
        provisioner: Workspace provisioner.
        reporter: Status comment reporter.
        stage: Last stage reached by this run.
    """

    def __init__(
        self,
        input: ActionInput,
        github: GitHubClient,
        resolver: IdentityResolver,
        provisioner: WorkspaceProvisioner,
        reporter: StatusReporter,
    ):
        self.input = input
        self.github = github
        self.resolver = resolver
        self.provisioner = provisioner
        self.reporter = reporter
        self.stage = ActionStage.INIT
        self.workspace_url: Optional[str] = None

    async def execute(self) -> str:
        """Run every stage of the action.

        Returns:
            URL of the started workspace.

        Raises:
            UserFacingError: For missing/ambiguous identity mappings and
                malformed parameters.
            InternalError: For any GitHub or Coder failure.
        """
        parameters = self._parse_parameters()

        coder_username = await self._resolve_coder_username()

        workspace_url = build_workspace_url(
            self.input.coder_url, coder_username, self.input.workspace_name
        )
        self.workspace_url = workspace_url
        logger.info("Workspace URL: %s", workspace_url)

        await self.reporter.announce_workspace_url(workspace_url)
        self._advance(ActionStage.PRE_UPDATE_POSTED)

        await self.provisioner.provision(
            WorkspaceRequest(
                coder_username=coder_username,
                template_name=self.input.template_name,
                workspace_name=self.input.workspace_name,
                parameters=parameters,
            )
        )
        self._advance(ActionStage.WORKSPACE_CREATED)

        await self.reporter.report_success(workspace_url)
        self._advance(ActionStage.POST_UPDATE_POSTED)

        return workspace_url

    def _parse_parameters(self) -> WorkspaceParameters:
        parameters = parse_parameters(self.input.workspace_parameters)
        self._advance(ActionStage.PARAMETERS_PARSED)
        return parameters

    async def _resolve_coder_username(self) -> str:
        """Return the Coder username the workspace is created for.

        A Coder username given directly is used as is; a GitHub username
        is looked up on GitHub and resolved through the resolver.
        """
        identity = self.input.identity
        if isinstance(identity, CoderIdentity):
            logger.info("Using Coder username %s", identity.coder_username)
            coder_username = identity.coder_username
        else:
            coder_username = await self._coder_username_for_github(identity)

        self._advance(ActionStage.IDENTITY_RESOLVED)
        return coder_username

    async def _coder_username_for_github(self, identity: GitHubIdentity) -> str:
        github_username = identity.github_username
        logger.info("Getting Coder username for GitHub user %s", github_username)

        github_user_id = await self.github.get_user_id(github_username)
        coder_username = await self.resolver.resolve(github_user_id, github_username)

        logger.info(
            "Coder username for GitHub user %s is %s",
            github_username,
            coder_username,
        )
        return coder_username

    def _advance(self, to_stage: ActionStage) -> None:
        logger.debug(
            "Stage transition",
            extra={"from_stage": self.stage.value, "to_stage": to_stage.value},
        )
        self.stage = to_stage
