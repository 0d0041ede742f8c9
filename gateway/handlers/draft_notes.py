"""
Draft Note Handlers

Draft notes are review comments only the author sees until they are
published. They take the same position data as normal comments.
"""

from typing import Any, Dict

from starlette.requests import Request
from starlette.responses import Response

from gateway.context import RequestContext
from gateway.handlers.responses import call_gitlab, respond
from gateway.models import (
    DraftNotePublishRequest,
    DraftNoteResponse,
    ListDraftNotesResponse,
    PostDraftNoteRequest,
    SuccessResponse,
    UpdateDraftNoteRequest,
)
from gateway.position import build_position
from gateway.services.capabilities import DraftNoteManager, DraftNotePublisher


class DraftNoteService:
    """
    Terminal handler for /mr/draft_notes/ and /mr/draft_notes/{note_id}.

    GET lists and POST creates on the collection path; PATCH and DELETE
    act on the note named in the path.
    """

    def __init__(self, context: RequestContext, gitlab: DraftNoteManager):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        if request.method == "GET":
            return await self.list_draft_notes(request)
        if request.method == "POST":
            return await self.post_draft_note(request)
        if request.method == "PATCH":
            return await self.update_draft_note(request)
        return await self.delete_draft_note(request)

    async def list_draft_notes(self, request: Request) -> Response:
        draft_notes = await call_gitlab(
            self.gitlab.list_draft_notes(self.context.project_id, self.context.merge_id),
            "Could not get draft notes",
            request
        )
        return respond(ListDraftNotesResponse(
            message="Draft notes fetched successfully",
            draft_notes=draft_notes
        ))

    async def post_draft_note(self, request: Request) -> Response:
        payload: PostDraftNoteRequest = request.state.payload
        options: Dict[str, Any] = {"note": payload.comment}

        # Draft notes can be posted in reply to existing discussions
        if payload.discussion_id:
            options["in_reply_to_discussion_id"] = payload.discussion_id

        position = build_position(payload)
        if position is not None:
            options["position"] = position

        draft_note = await call_gitlab(
            self.gitlab.create_draft_note(self.context.project_id, self.context.merge_id, options),
            "Could not create draft note",
            request
        )
        return respond(DraftNoteResponse(
            message="Draft note created successfully",
            draft_note=draft_note
        ))

    async def update_draft_note(self, request: Request) -> Response:
        payload: UpdateDraftNoteRequest = request.state.payload
        note_id = request.path_params["note_id"]
        options: Dict[str, Any] = {"note": payload.note}

        if payload.position is not None:
            position = build_position(payload.position)
            if position is not None:
                options["position"] = position

        draft_note = await call_gitlab(
            self.gitlab.update_draft_note(
                self.context.project_id, self.context.merge_id, note_id, options
            ),
            "Could not update draft note",
            request
        )
        return respond(DraftNoteResponse(message="Draft note updated", draft_note=draft_note))

    async def delete_draft_note(self, request: Request) -> Response:
        note_id = request.path_params["note_id"]
        await call_gitlab(
            self.gitlab.delete_draft_note(self.context.project_id, self.context.merge_id, note_id),
            "Could not delete draft note",
            request
        )
        return respond(SuccessResponse(message="Draft note deleted"))


class DraftNotePublisherService:
    """Terminal handler for /mr/draft_notes/publish."""

    def __init__(self, context: RequestContext, gitlab: DraftNotePublisher):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: DraftNotePublishRequest = request.state.payload

        if payload.publish_all:
            operation = self.gitlab.publish_all_draft_notes(
                self.context.project_id, self.context.merge_id
            )
        else:
            operation = self.gitlab.publish_draft_note(
                self.context.project_id, self.context.merge_id, payload.note
            )

        await call_gitlab(operation, "Could not publish draft note(s)", request)
        return respond(SuccessResponse(message="Draft note(s) published"))
