"""Error taxonomy for the start-workspace action.

Errors fall into three families:

- ConfigurationError: the action was wired with a contradictory or
  incomplete set of inputs. Reported generically.
- UserFacingError: something the person who triggered the run can fix
  (link their GitHub account, fix their parameters). The message is
  shown verbatim in the status comment.
- InternalError: every other remote-call failure. Logged in full; the
  status comment only points at the run logs.
"""

from typing import Optional


class ActionError(Exception):
    """Base class for all errors raised by the action."""

    pass


class ConfigurationError(ActionError):
    """Raised when the action inputs are invalid or contradictory."""

    pass


class UserFacingError(ActionError):
    """Raised for conditions the end user can act on.

    The message of a UserFacingError is safe to post in a GitHub comment.
    """

    pass


class NoMappingFound(UserFacingError):
    """Raised when no Coder user is linked to the GitHub user."""

    pass


class AmbiguousMapping(UserFacingError):
    """Raised when more than one Coder user is linked to the GitHub user."""

    pass


class ParameterFormatError(UserFacingError):
    """Raised when the workspace parameters are not a flat string mapping."""

    pass


class InternalError(ActionError):
    """Raised for operational failures that are not shown to end users."""

    pass


class GitHubAPIError(InternalError):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class CoderAPIError(InternalError):
    """Raised when a Coder API request fails or returns a malformed body.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response, if any.
        response_body: Raw response body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class TemplateNotFound(InternalError):
    """Raised when no Coder template matches the requested name exactly."""

    def __init__(self, template_name: str):
        self.template_name = template_name
        super().__init__(f"Template with name {template_name} not found")


class CoderCommandError(InternalError):
    """Raised when a `coder` CLI invocation exits non-zero.

    The message names the subcommand only; argument values are never
    included since they may carry user data.

    Attributes:
        command: The coder subcommand that failed (e.g. "users list").
        exit_code: Process exit code (-1 when the process could not start).
        stderr: Captured standard error.
    """

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"Failed to execute command: coder {command}, "
            f"exit code: {exit_code}, stderr: {stderr}"
        )


class UsersTableError(InternalError):
    """Raised when `coder users list` output contains a blank row."""

    pass


class MissingCommentBody(InternalError):
    """Raised when the status comment has no body to append to."""

    pass
