"""
Local Git Metadata

Reads the current branch and the remote URL of the working copy the
editor was opened in, and derives the GitLab project path from the URL.
"""

import re
import subprocess
from typing import List, Optional, Tuple

from pydantic import BaseModel

from gateway.logging_config import get_logger

logger = get_logger(__name__)

# ssh:// and http(s):// remotes; the host may carry credentials and a port
URL_REMOTE_PATTERN = re.compile(
    r"^(?:ssh|https?)://"
    r"(?:[^@/]+@)?"
    r"(?P<host>[^/:]+)"
    r"(?::(?P<port>\d+))?/"
    r"(?P<namespace>[^/].*)/"
    r"(?P<project>[^/]+?)"
    r"(?:\.git)?/?$"
)

# scp-like remotes (git@host:group/proj.git) have no scheme
SCP_REMOTE_PATTERN = re.compile(
    r"^(?:[^@/]+@)?"
    r"(?P<host>[^/:]+):"
    r"(?P<namespace>[^/].*)/"
    r"(?P<project>[^/]+?)"
    r"(?:\.git)?/?$"
)


class GitError(Exception):
    """Raised when git metadata cannot be read or parsed."""
    pass


class GitInfo(BaseModel):
    """Branch and project metadata of the local working copy."""
    branch_name: str
    remote_url: str = ""
    namespace: str = ""
    project_name: str = ""

    @property
    def project_path(self) -> str:
        """Full project path, e.g. group/subgroup/project."""
        return f"{self.namespace}/{self.project_name}"


def parse_remote_url(url: str) -> Tuple[str, str]:
    """
    Split a remote URL into namespace and project name.

    Args:
        url: Remote URL as printed by `git remote get-url`

    Returns:
        (namespace, project_name)

    Raises:
        GitError: If the URL is not in a recognised form
    """
    url = url.strip()
    pattern = URL_REMOTE_PATTERN if "://" in url else SCP_REMOTE_PATTERN
    match = pattern.match(url)
    if match is None:
        raise GitError(f"Invalid Git URL format: {url}")
    return match.group("namespace"), match.group("project")


def _run_git(args: List[str], cwd: Optional[str]) -> str:
    cmd = ["git"] + args
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    except OSError as e:
        raise GitError(f"Could not run git: {e}") from e
    if result.returncode != 0:
        logger.error(
            "git command failed",
            command=" ".join(cmd),
            stderr=result.stderr.strip()
        )
        raise GitError(f"git command failed: {' '.join(cmd)}")
    return result.stdout.strip()


def extract_git_info(remote: str = "origin", cwd: Optional[str] = None) -> GitInfo:
    """
    Read branch and project metadata from the working copy.

    Args:
        remote: Name of the remote pointing at GitLab
        cwd: Working directory (defaults to the process directory)

    Returns:
        GitInfo for the current checkout

    Raises:
        GitError: If git fails or the remote URL cannot be parsed
    """
    remote_url = _run_git(["remote", "get-url", remote], cwd)
    namespace, project_name = parse_remote_url(remote_url)
    branch_name = _run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)

    return GitInfo(
        branch_name=branch_name,
        remote_url=remote_url,
        namespace=namespace,
        project_name=project_name
    )
