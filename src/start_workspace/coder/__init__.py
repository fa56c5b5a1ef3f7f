"""Clients for the Coder deployment: REST API and ``coder`` CLI.

The REST client backs the default "api" transport; the CLI runner backs
the legacy "cli" transport.
"""

from src.start_workspace.coder.cli import CoderCLI, CommandResult
from src.start_workspace.coder.client import CoderClient
from src.start_workspace.coder.models import TemplateInfo

__all__ = [
    "CoderCLI",
    "CoderClient",
    "CommandResult",
    "TemplateInfo",
]
