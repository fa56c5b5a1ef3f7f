"""Response models for the Coder REST API.

Only the fields the action reads are declared; anything else Coder sends
is ignored.
"""

from pydantic import BaseModel, Field


class CoderTemplate(BaseModel):
    """A template entry from ``GET /api/v2/templates``."""

    id: str
    name: str
    active_version_id: str


class CoderUser(BaseModel):
    """A user entry, as returned by the users endpoints."""

    id: str
    username: str = ""


class CoderUserList(BaseModel):
    """Body of ``GET /api/v2/users``."""

    users: list[CoderUser] = Field(default_factory=list)
    count: int


class CoderWorkspace(BaseModel):
    """Body of ``POST /api/v2/users/{user}/workspaces``."""

    id: str


class TemplateInfo(BaseModel):
    """Identifiers of the template a workspace is created from."""

    template_id: str
    template_version_id: str
