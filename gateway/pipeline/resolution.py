"""
Merge Request Resolution Stage

Makes sure the handler behind it knows which merge request to act on.
Unless the IID was pinned at startup or resolved by an earlier request,
the stage lists the project's open merge requests and picks the one whose
source branch is the local branch. The result is written to the shared
RequestContext, so the handler reads it without another GitLab call.

Declare this stage before the validation stages so cheap rejects run
first.
"""

from typing import Any, Dict, List

from starlette.requests import Request
from starlette.responses import Response

from gateway.context import RequestContext
from gateway.errors import (
    AmbiguousResolution,
    ResolutionFailure,
    UpstreamStatusError,
    UpstreamTransportError,
)
from gateway.logging_config import get_logger
from gateway.pipeline.chain import Handler, Stage
from gateway.services.capabilities import MergeRequestLister
from gateway.services.gitlab_client import GitLabStatusError, GitLabTransportError

logger = get_logger(__name__)


async def resolve_merge_request(
    context: RequestContext,
    gitlab: MergeRequestLister,
    endpoint: str
) -> int:
    """
    Find the open merge request for the local branch and record it.

    Args:
        context: Shared request context
        gitlab: Capability to list the project's merge requests
        endpoint: Path of the request being served, for error tagging

    Returns:
        The merge request IID

    Raises:
        UpstreamTransportError: If GitLab could not be reached
        UpstreamStatusError: If GitLab answered with a non-success status
        ResolutionFailure: If no merge request exists for the branch
        AmbiguousResolution: If several merge requests match
    """
    branch = context.git_info.branch_name

    try:
        merge_requests: List[Dict[str, Any]] = await gitlab.list_project_merge_requests(
            context.project_id,
            state="opened",
            scope="all",
            source_branch=branch,
            target_branch=context.target_branch
        )
    except GitLabTransportError as e:
        raise UpstreamTransportError("Failed to list merge requests", details=str(e)) from e
    except GitLabStatusError as e:
        raise UpstreamStatusError(
            "Failed to list merge requests",
            endpoint=endpoint,
            status_code=e.status_code
        ) from e

    matches = [mr for mr in merge_requests if mr.get("source_branch") == branch]

    if not matches:
        raise ResolutionFailure(details=f"Branch '{branch}' does not have any merge requests")

    if len(matches) > 1:
        raise AmbiguousResolution(
            details=f"Branch '{branch}' has {len(matches)} open merge requests, choose one explicitly"
        )

    merge_id = int(matches[0]["iid"])
    context.set_merge_id(merge_id)
    return merge_id


def with_merge_request(context: RequestContext, gitlab: MergeRequestLister) -> Stage:
    """Resolve the active merge request before the next stage runs."""
    def stage(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            if not context.merge_id:
                await resolve_merge_request(context, gitlab, request.url.path)
            return await next_handler(request)
        return handler

    return stage
