"""GitHub to Coder identity resolution.

Maps a GitHub user id to the username of the Coder user who linked that
GitHub account. Two strategies are available, one per transport, and they
deliberately differ on ambiguous matches:

- ApiIdentityResolver (REST API): more than one match is an error
  (AmbiguousMapping) asking the user to unlink the extra accounts.
- CliIdentityResolver (``coder users list``): more than one match logs a
  warning and the first listed user is used.

Both raise NoMappingFound when no user matches. Only the API strategy
points the user at the external-auth settings page.
"""

import logging
from typing import List, Protocol, runtime_checkable

from src.start_workspace.coder.cli import CoderCLI
from src.start_workspace.coder.client import CoderClient
from src.start_workspace.errors import (
    AmbiguousMapping,
    NoMappingFound,
    UsersTableError,
)

logger = logging.getLogger(__name__)

MAX_LISTED_USERNAMES = 3


@runtime_checkable
class IdentityResolver(Protocol):
    """Resolves a GitHub user id to exactly one Coder username."""

    async def resolve(self, github_user_id: int, github_username: str) -> str:
        ...


def external_auth_url(coder_url: str) -> str:
    """URL of the Coder page where users link their GitHub account."""
    return f"{coder_url.rstrip('/')}/settings/external-auth"


def format_ambiguous_usernames(usernames: List[str]) -> str:
    """List at most three usernames, then ", and others" if there are more."""
    listed = ", ".join(usernames[:MAX_LISTED_USERNAMES])
    if len(usernames) > MAX_LISTED_USERNAMES:
        listed += ", and others"
    return listed


class ApiIdentityResolver:
    """Resolves identities with the Coder users search API.

    Attributes:
        coder: Coder REST client.
        coder_url: Deployment URL, used to build the external-auth link.
    """

    def __init__(self, coder: CoderClient, coder_url: str):
        self.coder = coder
        self.coder_url = coder_url

    async def resolve(self, github_user_id: int, github_username: str) -> str:
        """Return the single Coder user linked to the GitHub id.

        Raises:
            NoMappingFound: If no Coder user is linked.
            AmbiguousMapping: If more than one Coder user is linked.
        """
        usernames = await self.coder.get_users_by_github_id(github_user_id)

        if not usernames:
            raise NoMappingFound(
                f"No matching Coder user found for GitHub user @{github_username}. "
                "Please connect your GitHub account with Coder: "
                f"{external_auth_url(self.coder_url)}"
            )
        if len(usernames) > 1:
            raise AmbiguousMapping(
                f"Multiple Coder users found for GitHub user {github_username}: "
                f"{format_ambiguous_usernames(usernames)}. "
                "Please connect other users to other GitHub accounts and try again."
            )
        return usernames[0]


def parse_users_table(output: str, github_username: str) -> str:
    """Parse the output of ``coder users list --column username``.

    The first line is the column header; every following line is a user.
    All fields are trimmed. When several users are listed, a warning is
    logged and the first one is returned.

    Args:
        output: Raw command output.
        github_username: GitHub login, used in messages.

    Returns:
        The first listed Coder username.

    Raises:
        NoMappingFound: If the table has no user rows.
        UsersTableError: If a user row is blank.
    """
    lines = output.strip().split("\n")
    rows = lines[1:]
    if not rows:
        raise NoMappingFound(
            f"No Coder username mapping found for GitHub user @{github_username}"
        )

    usernames: List[str] = []
    for row in rows:
        fields = row.split()
        if not fields:
            raise UsersTableError("Coder username not found in output")
        usernames.append(fields[0])

    if len(usernames) > 1:
        logger.warning(
            f"Multiple Coder usernames found for GitHub user {github_username}: "
            f"{', '.join(usernames)}. Using the first one."
        )
    return usernames[0]


class CliIdentityResolver:
    """Resolves identities by running ``coder users list``.

    Attributes:
        cli: Coder CLI runner.
    """

    def __init__(self, cli: CoderCLI):
        self.cli = cli

    async def resolve(self, github_user_id: int, github_username: str) -> str:
        """Return the first Coder user linked to the GitHub id.

        Raises:
            NoMappingFound: If no Coder user is linked.
            UsersTableError: If the command output is malformed.
        """
        output = await self.cli.users_list(github_user_id)
        return parse_users_table(output, github_username)
