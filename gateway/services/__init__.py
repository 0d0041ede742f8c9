"""
Services Package

This package contains the gateway's collaborators outside the request
pipeline:
- capabilities: narrow protocols for the GitLab operations handlers need
- gitlab_client: GitLab API client implementing those protocols
- git: local branch and project metadata
"""

from gateway.services.git import GitError, GitInfo, extract_git_info, parse_remote_url
from gateway.services.gitlab_client import (
    GitLabClient,
    GitLabError,
    GitLabStatusError,
    GitLabTransportError,
    resolve_project_id,
)

__all__ = [
    "GitError",
    "GitInfo",
    "extract_git_info",
    "parse_remote_url",
    "GitLabClient",
    "GitLabError",
    "GitLabStatusError",
    "GitLabTransportError",
    "resolve_project_id",
]
