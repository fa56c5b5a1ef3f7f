"""GitHub API client for the status comment and user lookups."""

from src.start_workspace.github.client import GitHubClient

__all__ = ["GitHubClient"]
