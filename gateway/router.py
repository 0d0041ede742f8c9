"""
Dispatch Table

Binds every endpoint path to its fully composed chain. Routes are
registered once, when the app is created; nothing is added after the
server starts.

Each chain is declared innermost first (see gateway.pipeline.chain):
resolution sits next to the handler, validation outside it, and logging
wraps everything. Routes accept every method so that the method check
stage, not the framework, produces the 405.
"""

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from gateway.context import RequestContext
from gateway.handlers import (
    CommentService,
    DiscussionResolutionService,
    DraftNotePublisherService,
    DraftNoteService,
    EmojiService,
    InfoService,
    JobTraceService,
    MergeRequestAccepterService,
    MergeRequestApproverService,
    MergeRequestListerService,
    MergeRequestRevokerService,
    ReviewerService,
    RevisionsService,
    ShutdownService,
)
from gateway.models import (
    AcceptMergeRequestRequest,
    DeleteCommentRequest,
    DiscussionResolveRequest,
    DraftNotePublishRequest,
    EditCommentRequest,
    EmojiPostRequest,
    JobTraceRequest,
    ListMergeRequestsRequest,
    PostCommentRequest,
    PostDraftNoteRequest,
    ReviewerUpdateRequest,
    ShutdownRequest,
    UpdateDraftNoteRequest,
)
from gateway.pipeline import (
    chain,
    with_logging,
    with_merge_request,
    with_method_check,
    with_payload_validation,
)
from gateway.services.capabilities import GitLabCapabilities
from gateway.shutdown import ShutdownCoordinator

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

PING_PATH = "/ping"


async def ping(request: Request) -> Response:
    """Liveness check used to detect that the listener is up."""
    return PlainTextResponse("pong\n")


def build_router(
    context: RequestContext,
    gitlab: GitLabCapabilities,
    coordinator: ShutdownCoordinator
) -> APIRouter:
    """
    Create the router with every endpoint chain registered.

    Args:
        context: Shared request context
        gitlab: GitLab client (each handler only uses its own capability)
        coordinator: Shutdown coordinator for /shutdown

    Returns:
        APIRouter ready to be included in the app
    """
    router = APIRouter()
    with_mr = with_merge_request(context, gitlab)

    def route(path: str, handler) -> None:
        router.add_route(path, handler, methods=ALL_METHODS, include_in_schema=False)

    route("/mr/comment", chain(
        CommentService(context, gitlab),
        with_mr,
        with_payload_validation({
            "POST": PostCommentRequest,
            "DELETE": DeleteCommentRequest,
            "PATCH": EditCommentRequest,
        }),
        with_method_check("POST", "DELETE", "PATCH"),
        with_logging,
    ))
    route("/mr/draft_notes/publish", chain(
        DraftNotePublisherService(context, gitlab),
        with_mr,
        with_payload_validation({"POST": DraftNotePublishRequest}),
        with_method_check("POST"),
        with_logging,
    ))
    route("/mr/draft_notes/", chain(
        DraftNoteService(context, gitlab),
        with_mr,
        with_payload_validation({"POST": PostDraftNoteRequest}),
        with_method_check("GET", "POST"),
        with_logging,
    ))
    route("/mr/draft_notes/{note_id:int}", chain(
        DraftNoteService(context, gitlab),
        with_mr,
        with_payload_validation({"PATCH": UpdateDraftNoteRequest}),
        with_method_check("PATCH", "DELETE"),
        with_logging,
    ))
    route("/mr/info", chain(
        InfoService(context, gitlab),
        with_mr,
        with_method_check("GET"),
        with_logging,
    ))
    route("/mr/approve", chain(
        MergeRequestApproverService(context, gitlab),
        with_mr,
        with_method_check("POST"),
        with_logging,
    ))
    route("/mr/revoke", chain(
        MergeRequestRevokerService(context, gitlab),
        with_mr,
        with_method_check("POST"),
        with_logging,
    ))
    route("/mr/merge", chain(
        MergeRequestAccepterService(context, gitlab),
        with_mr,
        with_payload_validation({"POST": AcceptMergeRequestRequest}),
        with_method_check("POST"),
        with_logging,
    ))
    route("/mr/discussions/resolve", chain(
        DiscussionResolutionService(context, gitlab),
        with_mr,
        with_payload_validation({"PUT": DiscussionResolveRequest}),
        with_method_check("PUT"),
        with_logging,
    ))
    route("/mr/revisions", chain(
        RevisionsService(context, gitlab),
        with_mr,
        with_method_check("GET"),
        with_logging,
    ))
    route("/mr/reviewer", chain(
        ReviewerService(context, gitlab),
        with_mr,
        with_payload_validation({"PUT": ReviewerUpdateRequest}),
        with_method_check("PUT"),
        with_logging,
    ))
    route("/mr/awardable/note/{note_id:int}", chain(
        EmojiService(context, gitlab),
        with_mr,
        with_payload_validation({"POST": EmojiPostRequest}),
        with_method_check("POST"),
        with_logging,
    ))
    route("/merge_requests", chain(
        MergeRequestListerService(context, gitlab),
        with_payload_validation({"POST": ListMergeRequestsRequest}),
        with_method_check("POST"),
        with_logging,
    ))
    route("/job", chain(
        JobTraceService(context, gitlab),
        with_payload_validation({"GET": JobTraceRequest}),
        with_method_check("GET"),
        with_logging,
    ))
    route("/shutdown", chain(
        ShutdownService(coordinator),
        with_payload_validation({"POST": ShutdownRequest}),
        with_method_check("POST"),
        with_logging,
    ))

    # Outside the chain framework: answers as soon as the listener is up
    route(PING_PATH, ping)

    return router
