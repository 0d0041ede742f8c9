"""
Merge Request Handlers

Thin adapters around single merge request operations: listing, info,
approval, merging, revisions and reviewers.
"""

from starlette.requests import Request
from starlette.responses import Response

from gateway.context import RequestContext
from gateway.errors import GatewayError
from gateway.handlers.responses import call_gitlab, respond
from gateway.models import (
    AcceptMergeRequestRequest,
    InfoResponse,
    ListMergeRequestResponse,
    ListMergeRequestsRequest,
    ReviewerUpdateRequest,
    ReviewerUpdateResponse,
    RevisionsResponse,
    SuccessResponse,
)
from gateway.services.capabilities import (
    MergeRequestAccepter,
    MergeRequestApprover,
    MergeRequestGetter,
    MergeRequestLister,
    MergeRequestRevoker,
    MergeRequestUpdater,
    RevisionGetter,
)


class MergeRequestListerService:
    """Terminal handler for /merge_requests."""

    def __init__(self, context: RequestContext, gitlab: MergeRequestLister):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: ListMergeRequestsRequest = request.state.payload

        merge_requests = await call_gitlab(
            self.gitlab.list_project_merge_requests(self.context.project_id, **payload.to_params()),
            "Failed to list merge requests",
            request
        )

        if not merge_requests:
            raise GatewayError(
                "No merge requests found",
                details="No merge requests found",
                status_code=404
            )

        return respond(ListMergeRequestResponse(
            message="Merge requests fetched successfully",
            merge_requests=merge_requests
        ))


class InfoService:
    """Terminal handler for /mr/info."""

    def __init__(self, context: RequestContext, gitlab: MergeRequestGetter):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        info = await call_gitlab(
            self.gitlab.get_merge_request(self.context.project_id, self.context.merge_id),
            "Could not get project info",
            request
        )
        return respond(InfoResponse(message="Merge requests retrieved", info=info))


class MergeRequestApproverService:
    """Terminal handler for /mr/approve."""

    def __init__(self, context: RequestContext, gitlab: MergeRequestApprover):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        await call_gitlab(
            self.gitlab.approve_merge_request(self.context.project_id, self.context.merge_id),
            "Could not approve merge request",
            request
        )
        return respond(SuccessResponse(message="Approved MR"))


class MergeRequestRevokerService:
    """Terminal handler for /mr/revoke."""

    def __init__(self, context: RequestContext, gitlab: MergeRequestRevoker):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        await call_gitlab(
            self.gitlab.unapprove_merge_request(self.context.project_id, self.context.merge_id),
            "Could not revoke approval",
            request
        )
        return respond(SuccessResponse(message="Success! Revoked MR approval"))


class MergeRequestAccepterService:
    """Terminal handler for /mr/merge."""

    def __init__(self, context: RequestContext, gitlab: MergeRequestAccepter):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: AcceptMergeRequestRequest = request.state.payload
        options = {
            "squash": payload.squash,
            "should_remove_source_branch": payload.delete_branch,
        }
        if payload.squash_message:
            options["squash_commit_message"] = payload.squash_message

        await call_gitlab(
            self.gitlab.accept_merge_request(self.context.project_id, self.context.merge_id, options),
            "Could not merge MR",
            request
        )
        return respond(SuccessResponse(message="MR merged successfully"))


class RevisionsService:
    """
    Terminal handler for /mr/revisions.

    The revisions are not shown directly; the editor uses the diff SHAs
    they carry to build comment positions.
    """

    def __init__(self, context: RequestContext, gitlab: RevisionGetter):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        revisions = await call_gitlab(
            self.gitlab.get_merge_request_diff_versions(self.context.project_id, self.context.merge_id),
            "Could not get diff version info",
            request
        )
        return respond(RevisionsResponse(
            message="Revisions fetched successfully",
            revisions=revisions
        ))


class ReviewerService:
    """Terminal handler for /mr/reviewer."""

    def __init__(self, context: RequestContext, gitlab: MergeRequestUpdater):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: ReviewerUpdateRequest = request.state.payload

        merge_request = await call_gitlab(
            self.gitlab.update_merge_request(
                self.context.project_id,
                self.context.merge_id,
                {"reviewer_ids": payload.ids}
            ),
            "Could not modify merge request reviewers",
            request
        )
        return respond(ReviewerUpdateResponse(
            message="Reviewers updated",
            reviewers=merge_request.get("reviewers") or []
        ))
