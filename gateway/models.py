"""
Data Models Module

This module defines the Pydantic models exchanged with the editor client:
request payloads (validated by the payload stage) and response envelopes.

Design Decisions:
- Use Pydantic models for all data transfer objects
- Required text fields use min_length=1 so an empty string is reported
  the same way as a missing field
- GitLab resources are relayed as plain dicts; the editor consumes
  GitLab's own field names
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# Diff Position Models
# =============================================================================

class LinePosition(BaseModel):
    """
    One boundary of a multi-line comment.

    Attributes:
        type: "new" or "old", the side of the diff the boundary sits on
        old_line: Line number in the old file (0 when absent)
        new_line: Line number in the new file (0 when absent)
    """
    type: str = ""
    old_line: int = 0
    new_line: int = 0


class LineRange(BaseModel):
    """Start and end boundaries of a multi-line comment."""
    start: LinePosition
    end: LinePosition


class PositionData(BaseModel):
    """
    Where a comment attaches in the diff.

    When file_name is empty the comment is an unlinked note and no
    position is sent to GitLab.
    """
    file_name: str = ""
    old_file_name: str = ""
    new_line: Optional[int] = None
    old_line: Optional[int] = None
    head_commit_sha: str = ""
    base_commit_sha: str = ""
    start_commit_sha: str = ""
    type: str = "text"
    line_range: Optional[LineRange] = None


# =============================================================================
# Comment Payloads
# =============================================================================

class PostCommentRequest(PositionData):
    """Create a discussion, optionally anchored to a diff position."""
    comment: str = Field(min_length=1)


class DeleteCommentRequest(BaseModel):
    """Delete one note of a discussion."""
    note_id: int
    discussion_id: str = Field(min_length=1)


class EditCommentRequest(BaseModel):
    """Change the text of one note of a discussion."""
    comment: str = Field(min_length=1)
    note_id: int
    discussion_id: str = Field(min_length=1)
    resolved: bool = False


# =============================================================================
# Draft Note Payloads
# =============================================================================

class PostDraftNoteRequest(PositionData):
    """
    Create a draft note.

    The body is the same as for a normal comment; discussion_id makes the
    draft a reply to an existing discussion.
    """
    comment: str = Field(min_length=1)
    discussion_id: str = ""


class UpdateDraftNoteRequest(BaseModel):
    """Edit the text (and optionally the position) of a draft note."""
    note: str = Field(min_length=1)
    position: Optional[PositionData] = None


class DraftNotePublishRequest(BaseModel):
    """Publish one draft note, or all of them."""
    note: Optional[int] = None
    publish_all: bool = False

    @model_validator(mode="after")
    def require_target(self) -> "DraftNotePublishRequest":
        """Either a note id or publish_all must be given."""
        if not self.publish_all and self.note is None:
            raise ValueError("note is required unless publish_all is set")
        return self


# =============================================================================
# Merge Request Payloads
# =============================================================================

class ListMergeRequestsRequest(BaseModel):
    """Filters for listing merge requests of the project."""
    state: str = "opened"
    scope: str = "all"
    labels: Optional[List[str]] = None
    not_labels: Optional[List[str]] = None
    author_username: Optional[str] = None
    reviewer_username: Optional[str] = None

    def to_params(self) -> Dict[str, Any]:
        """Query parameters in the form the GitLab API expects."""
        params = self.model_dump(exclude_none=True)
        for key in ("labels", "not_labels"):
            if key in params:
                params[key] = ",".join(params[key])
        return params


class AcceptMergeRequestRequest(BaseModel):
    """Options for merging the current merge request."""
    squash: bool = False
    squash_message: str = ""
    delete_branch: bool = False


class DiscussionResolveRequest(BaseModel):
    """Resolve or unresolve a discussion."""
    discussion_id: str = Field(min_length=1)
    resolved: bool


class ReviewerUpdateRequest(BaseModel):
    """Replace the reviewers of the current merge request."""
    ids: List[int]


class JobTraceRequest(BaseModel):
    """Fetch the log of one pipeline job."""
    job_id: int


class EmojiPostRequest(BaseModel):
    """Award an emoji to a note."""
    emoji: str = Field(min_length=1)


class ShutdownRequest(BaseModel):
    """Stop the gateway; restart tells the editor to start a new one."""
    restart: bool = False


# =============================================================================
# Response Envelopes
# =============================================================================

class SuccessResponse(BaseModel):
    """Envelope shared by every successful response."""
    message: str
    status: int = 200


class ErrorResponse(BaseModel):
    """Envelope shared by every failure response."""
    message: str
    details: str
    status: int


class CommentResponse(SuccessResponse):
    note: Optional[Dict[str, Any]] = None
    discussion: Optional[Dict[str, Any]] = None


class DraftNoteResponse(SuccessResponse):
    draft_note: Optional[Dict[str, Any]] = None


class ListDraftNotesResponse(SuccessResponse):
    draft_notes: List[Dict[str, Any]] = []


class ListMergeRequestResponse(SuccessResponse):
    merge_requests: List[Dict[str, Any]] = []


class InfoResponse(SuccessResponse):
    info: Dict[str, Any]


class DiscussionResponse(SuccessResponse):
    discussion: Optional[Dict[str, Any]] = None


class RevisionsResponse(SuccessResponse):
    revisions: List[Dict[str, Any]] = []


class ReviewerUpdateResponse(SuccessResponse):
    reviewers: List[Dict[str, Any]] = []


class JobTraceResponse(SuccessResponse):
    file: str


class EmojiResponse(SuccessResponse):
    emoji: Dict[str, Any]
