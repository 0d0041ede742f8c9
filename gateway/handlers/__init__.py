"""
Handlers Package

Terminal handlers: each reads the payload decoded by the validation stage,
performs one GitLab operation and writes the response envelope.
"""

from gateway.handlers.comments import CommentService
from gateway.handlers.discussions import DiscussionResolutionService, EmojiService
from gateway.handlers.draft_notes import DraftNotePublisherService, DraftNoteService
from gateway.handlers.jobs import JobTraceService
from gateway.handlers.merge_requests import (
    InfoService,
    MergeRequestAccepterService,
    MergeRequestApproverService,
    MergeRequestListerService,
    MergeRequestRevokerService,
    ReviewerService,
    RevisionsService,
)
from gateway.handlers.shutdown import ShutdownService

__all__ = [
    "CommentService",
    "DiscussionResolutionService",
    "EmojiService",
    "DraftNotePublisherService",
    "DraftNoteService",
    "JobTraceService",
    "InfoService",
    "MergeRequestAccepterService",
    "MergeRequestApproverService",
    "MergeRequestListerService",
    "MergeRequestRevokerService",
    "ReviewerService",
    "RevisionsService",
    "ShutdownService",
]
