"""GitHub API client for the status comment and user lookups.

This module provides an async wrapper around the GitHub REST API for:
- Looking up a user's numeric id by username
- Creating an issue comment
- Reading and updating an issue comment body

Every request is attempted exactly once. Failures are raised as
GitHubAPIError so the orchestrator can abort the run.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from src.start_workspace.errors import GitHubAPIError


logger = logging.getLogger(__name__)


class GitHubClient:
    """Async GitHub API client.

    Attributes:
        token: GitHub API token (GITHUB_TOKEN or a PAT).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        timeout: Request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     body = await client.get_comment_body("owner", "repo", 123)
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "start-coder-workspace/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, PATCH).
            path: API path (e.g., /repos/owner/repo/issues/comments/1).
            json_data: Optional JSON body for the request.

        Returns:
            The HTTP response from GitHub.

        Raises:
            GitHubAPIError: On transport errors or any 4xx/5xx response.
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                json=json_data,
            )
        except httpx.RequestError as e:
            logger.error(
                "GitHub API request failed",
                extra={"path": path, "method": method, "error": str(e)},
            )
            raise GitHubAPIError(
                message=f"GitHub API request failed: {e}",
                request_url=f"{self.base_url}{path}",
            ) from e

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            raise GitHubAPIError(
                message=(
                    f"GitHub API error: {response.status_code}, "
                    f"body: {error_body}"
                ),
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    def _json_object(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a response body that must be a JSON object.

        Raises:
            GitHubAPIError: If the body is not JSON or not an object.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise GitHubAPIError(
                message=f"Unexpected response from GitHub: {e}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            ) from e
        if not isinstance(data, dict):
            raise GitHubAPIError(
                message=(
                    "Unexpected response from GitHub: expected an object, "
                    f"got {type(data).__name__}"
                ),
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            )
        return data

    async def get_user_id(self, username: str) -> int:
        """Get the numeric id of a GitHub user.

        Args:
            username: GitHub login.

        Returns:
            The user's numeric id.

        Raises:
            GitHubAPIError: If the request fails or the body has no id.
        """
        path = f"/users/{username}"

        logger.debug("Getting GitHub user", extra={"username": username})

        response = await self._request(method="GET", path=path)
        user_id = self._json_object(response).get("id")
        if not isinstance(user_id, int):
            raise GitHubAPIError(
                message=f"GitHub user response for {username} has no id",
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            )
        return user_id

    async def create_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        """Create a comment on an issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number to comment on.
            body: Comment body in markdown format.

        Returns:
            The created comment data from GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "body_length": len(body),
            },
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={"body": body},
        )

        result = self._json_object(response)
        logger.info(
            "Comment created successfully",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "comment_id": result.get("id"),
            },
        )

        return result

    async def get_comment_body(
        self,
        owner: str,
        repo: str,
        comment_id: int,
    ) -> Optional[str]:
        """Get the body of an issue comment.

        Returns:
            The comment body, or None if GitHub returned no body.

        Raises:
            GitHubAPIError: If the request fails or the body is malformed.
        """
        path = f"/repos/{owner}/{repo}/issues/comments/{comment_id}"

        logger.debug(
            "Getting issue comment",
            extra={"owner": owner, "repo": repo, "comment_id": comment_id},
        )

        response = await self._request(method="GET", path=path)
        return self._json_object(response).get("body")

    async def update_comment(
        self,
        owner: str,
        repo: str,
        comment_id: int,
        body: str,
    ) -> Dict[str, Any]:
        """Replace the body of an issue comment.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/issues/comments/{comment_id}"

        logger.info(
            "Updating issue comment",
            extra={
                "owner": owner,
                "repo": repo,
                "comment_id": comment_id,
                "body_length": len(body),
            },
        )

        response = await self._request(
            method="PATCH",
            path=path,
            json_data={"body": body},
        )
        return self._json_object(response)
