"""
Discussion Handlers

Resolving discussions and reacting to notes with emoji.
"""

from starlette.requests import Request
from starlette.responses import Response

from gateway.context import RequestContext
from gateway.errors import InvalidPayload
from gateway.handlers.responses import call_gitlab, respond
from gateway.models import (
    DiscussionResolveRequest,
    DiscussionResponse,
    EmojiPostRequest,
    EmojiResponse,
)
from gateway.services.capabilities import DiscussionResolver, NoteEmojiAwarder


class DiscussionResolutionService:
    """Terminal handler for /mr/discussions/resolve."""

    def __init__(self, context: RequestContext, gitlab: DiscussionResolver):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: DiscussionResolveRequest = request.state.payload
        action = "resolve" if payload.resolved else "unresolve"

        discussion = await call_gitlab(
            self.gitlab.resolve_merge_request_discussion(
                self.context.project_id,
                self.context.merge_id,
                payload.discussion_id,
                payload.resolved
            ),
            f"Could not {action} discussion",
            request
        )
        return respond(DiscussionResponse(message=f"Discussion {action}d", discussion=discussion))


class EmojiService:
    """
    Terminal handler for /mr/awardable/note/{note_id}.

    When an emoji catalog was loaded at startup, unknown emoji names are
    rejected locally instead of round-tripping to GitLab.
    """

    def __init__(self, context: RequestContext, gitlab: NoteEmojiAwarder):
        self.context = context
        self.gitlab = gitlab

    async def __call__(self, request: Request) -> Response:
        payload: EmojiPostRequest = request.state.payload
        note_id = request.path_params["note_id"]

        if self.context.emoji_map and payload.emoji not in self.context.emoji_map:
            raise InvalidPayload(details=f"Unknown emoji: {payload.emoji}")

        emoji = await call_gitlab(
            self.gitlab.create_note_award_emoji(
                self.context.project_id, self.context.merge_id, note_id, payload.emoji
            ),
            "Could not post emoji",
            request
        )
        return respond(EmojiResponse(message="Emoji added", emoji=emoji))
