"""Coder REST API client.

Wraps the handful of ``/api/v2`` endpoints the action needs:
- users search by linked GitHub id
- user lookup by username
- template lookup by exact name
- workspace creation with rich parameters

Responses are validated with pydantic models; a non-2xx status or a body
that does not match the expected shape raises CoderAPIError.
"""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from src.start_workspace.coder.models import (
    CoderTemplate,
    CoderUser,
    CoderUserList,
    CoderWorkspace,
    TemplateInfo,
)
from src.start_workspace.errors import CoderAPIError, TemplateNotFound


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

GITHUB_ID_QUERY_UNSUPPORTED = (
    "Only Coder 2.21 and above supports querying users by their GitHub ID"
)


class CoderClient:
    """Async client for the Coder REST API.

    Attributes:
        server_url: Base URL of the Coder deployment.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        server_url: str,
        api_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._api_token = api_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.server_url,
                headers={
                    "Coder-Session-Token": self._api_token,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CoderClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        failure: str,
        params: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a single request and raise on a non-success status.

        Args:
            method: HTTP method.
            path: API path under the server URL.
            failure: Message prefix used when the request fails.
            params: Optional query parameters.
            json_data: Optional JSON body.

        Raises:
            CoderAPIError: On transport errors or any 4xx/5xx response.
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                params=params,
                json=json_data,
            )
        except httpx.RequestError as exc:
            raise CoderAPIError(f"{failure}: {exc}") from exc

        if not response.is_success:
            error_text = response.text
            logger.error(
                "Coder API error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "method": method,
                    "response_body": error_text[:500],
                },
            )
            raise CoderAPIError(
                f"{failure}, status code: {response.status_code}, "
                f"body: {error_text}",
                status_code=response.status_code,
                response_body=error_text,
            )
        return response

    @staticmethod
    def _parse(response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise CoderAPIError(
                f"Unexpected response from Coder for {response.url.path}: {exc}",
                status_code=response.status_code,
                response_body=response.text,
            ) from exc

    async def get_users_by_github_id(self, github_id: int) -> List[str]:
        """List usernames of Coder users linked to a GitHub user id.

        Raises:
            CoderAPIError: If the request fails. When the deployment is too
                old to support the query, the message says so.
        """
        try:
            response = await self._request(
                "GET",
                "/api/v2/users",
                "Failed to list Coder users by GitHub ID",
                params={"q": f"github_com_user_id:{github_id}"},
            )
        except CoderAPIError as exc:
            body = exc.response_body or ""
            if (
                "github_com_user_id" in body
                and "not a valid query param" in body
            ):
                raise CoderAPIError(
                    f"{GITHUB_ID_QUERY_UNSUPPORTED}\n{exc.message}",
                    status_code=exc.status_code,
                    response_body=exc.response_body,
                ) from exc
            raise

        user_list = self._parse(response, CoderUserList)
        return [user.username for user in user_list.users]

    async def get_user_id(self, username: str) -> str:
        """Get the Coder user id for a username."""
        response = await self._request(
            "GET",
            f"/api/v2/users/{username}",
            "Failed to get Coder user",
        )
        return self._parse(response, CoderUser).id

    async def get_template_info(self, template_name: str) -> TemplateInfo:
        """Look up a template by exact name.

        Raises:
            TemplateNotFound: If no template has exactly this name.
            CoderAPIError: If the request fails.
        """
        response = await self._request(
            "GET",
            "/api/v2/templates",
            "Failed to get Coder templates",
            params={"q": f"exact_name:{template_name}"},
        )
        try:
            templates = [
                CoderTemplate.model_validate(item) for item in response.json()
            ]
        except (TypeError, ValueError, ValidationError) as exc:
            raise CoderAPIError(
                f"Unexpected response from Coder for /api/v2/templates: {exc}",
                status_code=response.status_code,
                response_body=response.text,
            ) from exc

        for template in templates:
            if template.name == template_name:
                return TemplateInfo(
                    template_id=template.id,
                    template_version_id=template.active_version_id,
                )
        raise TemplateNotFound(template_name)

    async def create_workspace(
        self,
        owner_id: str,
        template_id: str,
        workspace_name: str,
        parameters: Dict[str, str],
    ) -> str:
        """Create a workspace and return its id.

        The call returns as soon as Coder accepts the creation request;
        the workspace build continues in the background.
        """
        rich_parameter_values = [
            {"name": name, "value": value} for name, value in parameters.items()
        ]
        response = await self._request(
            "POST",
            f"/api/v2/users/{owner_id}/workspaces",
            "Failed to create Coder workspace",
            json_data={
                "template_id": template_id,
                "name": workspace_name,
                "autostart": True,
                "rich_parameter_values": rich_parameter_values,
            },
        )
        workspace = self._parse(response, CoderWorkspace)
        logger.info(
            "Coder workspace created",
            extra={"workspace_id": workspace.id, "workspace_name": workspace_name},
        )
        return workspace.id
