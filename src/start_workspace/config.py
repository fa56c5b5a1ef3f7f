"""Action configuration using pydantic-settings.

This module defines the ActionSettings class that reads the action's
inputs from environment variables set by the composite action step, and
the immutable ActionInput handed to the orchestrator.

The two identity inputs (GITHUB_USERNAME and CODER_USERNAME) are mutually
exclusive. They are folded into a tagged union, IdentitySource, so that an
ActionInput can never carry both or neither.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.start_workspace.errors import ConfigurationError


Transport = Literal["api", "cli"]


class GitHubIdentity(BaseModel):
    """Workspace owner given as a GitHub username, resolved at runtime."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["github"] = "github"
    github_username: str = Field(..., min_length=1)


class CoderIdentity(BaseModel):
    """Workspace owner given directly as a Coder username."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["coder"] = "coder"
    coder_username: str = Field(..., min_length=1)


IdentitySource = Annotated[
    Union[GitHubIdentity, CoderIdentity],
    Field(discriminator="kind"),
]


def identity_from_inputs(
    github_username: Optional[str],
    coder_username: Optional[str],
) -> Union[GitHubIdentity, CoderIdentity]:
    """Build the identity union from the two optional inputs.

    Raises:
        ConfigurationError: If both or neither of the inputs are set.
    """
    if not github_username and not coder_username:
        raise ConfigurationError("GitHub username or Coder username is required")
    if github_username and coder_username:
        raise ConfigurationError(
            "Only one of GitHub username or Coder username may be set"
        )
    if github_username:
        return GitHubIdentity(github_username=github_username)
    return CoderIdentity(coder_username=coder_username)


class ActionInput(BaseModel):
    """Validated, immutable inputs for one run of the action.

    Attributes:
        identity: Who the workspace is for (GitHub or Coder username).
        coder_url: Base URL of the Coder deployment.
        coder_token: Coder session token.
        workspace_name: Name of the workspace to create.
        github_status_comment_id: ID of the status comment to update.
        github_repo_owner: Owner of the repository holding the comment.
        github_repo_name: Name of the repository holding the comment.
        github_token: GitHub token used to update the comment.
        github_workflow_run_url: Link to the run's logs.
        template_name: Coder template to create the workspace from.
        workspace_parameters: Raw YAML blob of rich parameters.
        transport: Whether Coder is reached over its REST API or its CLI.
    """

    model_config = ConfigDict(frozen=True)

    identity: IdentitySource
    coder_url: str = Field(..., min_length=1)
    coder_token: str = Field(..., min_length=1)
    workspace_name: str = Field(..., min_length=1)
    github_status_comment_id: int = Field(..., gt=0)
    github_repo_owner: str = Field(..., min_length=1)
    github_repo_name: str = Field(..., min_length=1)
    github_token: str = Field(..., min_length=1)
    github_workflow_run_url: str = Field(..., min_length=1)
    template_name: str = Field(..., min_length=1)
    workspace_parameters: str = Field(..., min_length=1)
    transport: Transport = "api"


class GitHubSettings(BaseSettings):
    """GitHub connection settings shared by every CLI command."""

    model_config = SettingsConfigDict(case_sensitive=False)

    github_token: str
    github_api_url: str = "https://api.github.com"
    github_repo_owner: str
    github_repo_name: str
    github_workflow_run_url: str

    @field_validator("github_token", "github_repo_owner", "github_repo_name")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate that required values are not blank."""
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v

    @field_validator("github_api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate that the GitHub API URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_api_url must start with http:// or https://")
        return v.rstrip("/")


class ActionSettings(GitHubSettings):
    """Start-workspace configuration from environment variables.

    Variables are read without a prefix, matching the names the composite
    action exports (e.g. CODER_URL, GITHUB_STATUS_COMMENT_ID).

    Optional fields:
    - github_username / coder_username: exactly one must be non-empty
    - coder_transport: "api" (default) or "cli"
    - coder_cli_path: coder executable used by the CLI transport
    """

    github_username: Optional[str] = None
    coder_username: Optional[str] = None

    coder_url: str
    coder_token: str
    coder_transport: Transport = "api"
    coder_cli_path: str = "coder"

    workspace_name: str
    template_name: str
    workspace_parameters: str

    github_status_comment_id: int

    @field_validator("github_username", "coder_username", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat unset action inputs (exported as empty strings) as missing."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator(
        "coder_token", "workspace_name", "template_name", "workspace_parameters"
    )
    @classmethod
    def validate_required(cls, v: str) -> str:
        """Validate that required values are not blank."""
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v

    @field_validator("coder_url")
    @classmethod
    def validate_coder_url(cls, v: str) -> str:
        """Validate that the Coder URL is an http(s) URL."""
        if not v or not v.strip():
            raise ValueError("coder_url cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("coder_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("github_status_comment_id")
    @classmethod
    def validate_comment_id(cls, v: int) -> int:
        """Validate that the comment id is positive."""
        if v < 1:
            raise ValueError("github_status_comment_id must be positive")
        return v

    def to_action_input(self) -> ActionInput:
        """Build the immutable ActionInput for the orchestrator.

        Raises:
            ConfigurationError: If the identity inputs are contradictory.
        """
        return ActionInput(
            identity=identity_from_inputs(
                self.github_username, self.coder_username
            ),
            coder_url=self.coder_url,
            coder_token=self.coder_token,
            workspace_name=self.workspace_name,
            github_status_comment_id=self.github_status_comment_id,
            github_repo_owner=self.github_repo_owner,
            github_repo_name=self.github_repo_name,
            github_token=self.github_token,
            github_workflow_run_url=self.github_workflow_run_url,
            template_name=self.template_name,
            workspace_parameters=self.workspace_parameters,
            transport=self.coder_transport,
        )


def get_settings() -> ActionSettings:
    """Create and return an ActionSettings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return ActionSettings()


def get_github_settings() -> GitHubSettings:
    """Create and return the GitHub-only settings used by comment commands."""
    return GitHubSettings()
