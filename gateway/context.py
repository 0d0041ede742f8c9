"""
Request Context

The RequestContext holds what every handler needs to address GitLab: the
project id, the merge request IID and the local git metadata. It is built
once at startup, before the router exists, and shared by all requests.

The merge request IID is the one field that may change after startup:
the resolution stage fills it in the first time a request needs it.
Two requests resolving concurrently write the same value, and the write
itself is guarded by a lock.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from gateway.config import ConfigurationError
from gateway.logging_config import get_logger
from gateway.services.git import GitInfo

logger = get_logger(__name__)

EmojiMap = Dict[str, Any]


class RequestContext:
    """
    Resolved GitLab identifiers shared by every request.

    Usage:
        context = RequestContext.build(project_id="42", git_info=git_info)
    """

    def __init__(
        self,
        project_id: str,
        git_info: GitInfo,
        emoji_map: Optional[EmojiMap] = None,
        merge_id: Optional[int] = None,
        target_branch: Optional[str] = None
    ):
        self.project_id = project_id
        self.git_info = git_info
        self.emoji_map: EmojiMap = emoji_map or {}
        self.target_branch = target_branch
        self._merge_id = merge_id
        self._lock = threading.Lock()

    @classmethod
    def build(
        cls,
        *,
        project_id: str,
        git_info: GitInfo,
        emoji_map: Optional[EmojiMap] = None,
        merge_id: Optional[int] = None,
        target_branch: Optional[str] = None
    ) -> "RequestContext":
        """
        Validate the startup options and create the context.

        Args:
            project_id: GitLab project id (required, non-empty)
            git_info: Branch metadata of the working copy
            emoji_map: Optional emoji catalog, name -> emoji data
            merge_id: Pin the merge request IID instead of resolving it
            target_branch: Only resolve merge requests targeting this branch

        Returns:
            RequestContext ready to be handed to the router

        Raises:
            ConfigurationError: If a required option is missing or invalid
        """
        if not project_id or not str(project_id).strip():
            raise ConfigurationError("project_id must not be empty")
        if not git_info.branch_name:
            raise ConfigurationError("git_info must name the current branch")
        if merge_id is not None and merge_id < 1:
            raise ConfigurationError(f"merge_id must be positive, got {merge_id}")

        return cls(
            project_id=str(project_id),
            git_info=git_info,
            emoji_map=emoji_map,
            merge_id=merge_id,
            target_branch=target_branch
        )

    @property
    def merge_id(self) -> Optional[int]:
        """IID of the active merge request, None until resolved."""
        return self._merge_id

    def set_merge_id(self, merge_id: int) -> None:
        """Record the resolved merge request IID."""
        with self._lock:
            previous = self._merge_id
            self._merge_id = merge_id
        if previous != merge_id:
            logger.info(
                "Merge request resolved",
                project_id=self.project_id,
                branch=self.git_info.branch_name,
                merge_id=merge_id
            )


def load_emoji_map(path: Optional[str]) -> EmojiMap:
    """
    Load the emoji catalog used to validate emoji reactions.

    Args:
        path: JSON file mapping emoji names to their data; None disables
            the catalog

    Returns:
        The catalog (empty when no path is given)

    Raises:
        ConfigurationError: If the file cannot be read or is not a JSON object
    """
    if not path:
        return {}

    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not load emoji catalog {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Emoji catalog {path} must be a JSON object")
    return data
