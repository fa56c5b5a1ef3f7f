"""Property-based tests for identity resolution.

*For any* set of matched Coder usernames, the API resolver returns the
single match or raises with a message in a fixed shape; the users table
parser always returns the first listed user.
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st

from src.start_workspace.errors import AmbiguousMapping, NoMappingFound
from src.start_workspace.identity import ApiIdentityResolver, parse_users_table


def run_async(coro):
    return asyncio.run(coro)


usernames = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-_"),
    min_size=1,
    max_size=20,
)

github_usernames = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-"),
    min_size=1,
    max_size=39,
)


def _resolver(matches):
    coder = AsyncMock()
    coder.get_users_by_github_id.return_value = matches
    return ApiIdentityResolver(coder, "https://coder.example.com")


class TestApiResolverMessages:

    @given(github_username=github_usernames, username=usernames)
    @settings(max_examples=50)
    def test_single_match_is_returned(self, github_username, username):
        assert run_async(_resolver([username]).resolve(1, github_username)) == username

    @given(github_username=github_usernames)
    @settings(max_examples=50)
    def test_no_match_names_user_and_link(self, github_username):
        with pytest.raises(NoMappingFound) as exc_info:
            run_async(_resolver([]).resolve(1, github_username))
        message = str(exc_info.value)
        assert f"@{github_username}" in message
        assert "https://coder.example.com/settings/external-auth" in message

    @given(
        github_username=github_usernames,
        matches=st.lists(usernames, min_size=4, max_size=15),
    )
    @settings(max_examples=50)
    def test_many_matches_list_first_three_and_others(self, github_username, matches):
        with pytest.raises(AmbiguousMapping) as exc_info:
            run_async(_resolver(matches).resolve(1, github_username))
        expected = ", ".join(matches[:3]) + ", and others"
        assert f"{github_username}: {expected}. Please" in str(exc_info.value)


class TestUsersTableProperties:

    @given(
        github_username=github_usernames,
        rows=st.lists(usernames, min_size=1, max_size=10),
        padding=st.sampled_from(["", " ", "   ", "\t"]),
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_first_row_wins_with_one_warning_when_ambiguous(
        self, caplog, github_username, rows, padding
    ):
        caplog.clear()
        output = "USERNAME\n" + "\n".join(f"{padding}{row}{padding}" for row in rows)

        with caplog.at_level(logging.WARNING, logger="src.start_workspace.identity"):
            assert parse_users_table(output, github_username) == rows[0]

        warnings = [r.getMessage() for r in caplog.records]
        if len(rows) == 1:
            assert warnings == []
        else:
            assert warnings == [
                f"Multiple Coder usernames found for GitHub user {github_username}: "
                f"{', '.join(rows)}. Using the first one."
            ]
