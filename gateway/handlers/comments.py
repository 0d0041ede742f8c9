"""
Comment Handler

Creates, edits and deletes merge request comments. A comment without a
file name becomes an unlinked note; with a file name it is anchored to a
diff line, and with a line range it spans several lines.
"""

from starlette.requests import Request
from starlette.responses import Response

from gateway.context import RequestContext
from gateway.handlers.responses import call_gitlab, respond
from gateway.models import (
    CommentResponse,
    DeleteCommentRequest,
    EditCommentRequest,
    PostCommentRequest,
    SuccessResponse,
)
from gateway.position import build_position
from gateway.services.capabilities import DiscussionManager


class CommentService:
    """Terminal handler for /mr/comment (POST, PATCH, DELETE)."""

    def __init__(self, context: RequestContext, gitlab: DiscussionManager):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        if request.method == "DELETE":
            return await self.delete_comment(request)
        if request.method == "PATCH":
            return await self.edit_comment(request)
        return await self.post_comment(request)

    async def post_comment(self, request: Request) -> Response:
        payload: PostCommentRequest = request.state.payload
        position = build_position(payload)

        discussion = await call_gitlab(
            self.gitlab.create_merge_request_discussion(
                self.context.project_id,
                self.context.merge_id,
                payload.comment,
                position=position
            ),
            "Could not create discussion",
            request
        )

        if position is None:
            message = "Note created successfully"
        elif "line_range" in position:
            message = "Multiline Comment created successfully"
        else:
            message = "Comment created successfully"

        notes = discussion.get("notes") or []
        return respond(CommentResponse(
            message=message,
            note=notes[0] if notes else None,
            discussion=discussion
        ))

    async def delete_comment(self, request: Request) -> Response:
        payload: DeleteCommentRequest = request.state.payload

        await call_gitlab(
            self.gitlab.delete_merge_request_discussion_note(
                self.context.project_id,
                self.context.merge_id,
                payload.discussion_id,
                payload.note_id
            ),
            "Could not delete comment",
            request
        )

        return respond(SuccessResponse(message="Comment deleted successfully"))

    async def edit_comment(self, request: Request) -> Response:
        payload: EditCommentRequest = request.state.payload

        note = await call_gitlab(
            self.gitlab.update_merge_request_discussion_note(
                self.context.project_id,
                self.context.merge_id,
                payload.discussion_id,
                payload.note_id,
                payload.comment
            ),
            "Could not update comment",
            request
        )

        return respond(CommentResponse(message="Comment updated successfully", note=note))
