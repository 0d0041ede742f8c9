"""
Upstream Capabilities

Each protocol names the GitLab operations one part of the gateway needs.
Handlers and stages depend on these narrow interfaces; GitLabClient
implements all of them, and tests substitute in-memory fakes.

Every operation either returns its result or raises GitLabStatusError
(GitLab answered with a non-success status) or GitLabTransportError (the
call never got an answer).
"""

from typing import Any, Dict, List, Optional, Protocol


class ProjectGetter(Protocol):
    async def get_project(self, project_path: str) -> Dict[str, Any]: ...


class MergeRequestLister(Protocol):
    async def list_project_merge_requests(
        self, project_id: str, **params: Any
    ) -> List[Dict[str, Any]]: ...


class MergeRequestGetter(Protocol):
    async def get_merge_request(self, project_id: str, merge_id: int) -> Dict[str, Any]: ...


class MergeRequestApprover(Protocol):
    async def approve_merge_request(self, project_id: str, merge_id: int) -> Dict[str, Any]: ...


class MergeRequestRevoker(Protocol):
    async def unapprove_merge_request(self, project_id: str, merge_id: int) -> None: ...


class MergeRequestAccepter(Protocol):
    async def accept_merge_request(
        self, project_id: str, merge_id: int, options: Dict[str, Any]
    ) -> Dict[str, Any]: ...


class MergeRequestUpdater(Protocol):
    async def update_merge_request(
        self, project_id: str, merge_id: int, changes: Dict[str, Any]
    ) -> Dict[str, Any]: ...


class DiscussionManager(Protocol):
    async def create_merge_request_discussion(
        self,
        project_id: str,
        merge_id: int,
        body: str,
        position: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]: ...

    async def update_merge_request_discussion_note(
        self, project_id: str, merge_id: int, discussion_id: str, note_id: int, body: str
    ) -> Dict[str, Any]: ...

    async def delete_merge_request_discussion_note(
        self, project_id: str, merge_id: int, discussion_id: str, note_id: int
    ) -> None: ...


class DiscussionResolver(Protocol):
    async def resolve_merge_request_discussion(
        self, project_id: str, merge_id: int, discussion_id: str, resolved: bool
    ) -> Dict[str, Any]: ...


class DraftNoteManager(Protocol):
    async def list_draft_notes(self, project_id: str, merge_id: int) -> List[Dict[str, Any]]: ...

    async def create_draft_note(
        self, project_id: str, merge_id: int, options: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def update_draft_note(
        self, project_id: str, merge_id: int, note_id: int, options: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def delete_draft_note(self, project_id: str, merge_id: int, note_id: int) -> None: ...


class DraftNotePublisher(Protocol):
    async def publish_draft_note(self, project_id: str, merge_id: int, note_id: int) -> None: ...

    async def publish_all_draft_notes(self, project_id: str, merge_id: int) -> None: ...


class RevisionGetter(Protocol):
    async def get_merge_request_diff_versions(
        self, project_id: str, merge_id: int
    ) -> List[Dict[str, Any]]: ...


class JobTraceGetter(Protocol):
    async def get_job_trace(self, project_id: str, job_id: int) -> str: ...


class NoteEmojiAwarder(Protocol):
    async def create_note_award_emoji(
        self, project_id: str, merge_id: int, note_id: int, name: str
    ) -> Dict[str, Any]: ...


class GitLabCapabilities(
    MergeRequestLister,
    MergeRequestGetter,
    MergeRequestApprover,
    MergeRequestRevoker,
    MergeRequestAccepter,
    MergeRequestUpdater,
    DiscussionManager,
    DiscussionResolver,
    DraftNoteManager,
    DraftNotePublisher,
    RevisionGetter,
    JobTraceGetter,
    NoteEmojiAwarder,
    Protocol,
):
    """Everything the router hands out; each handler sees only its own slice."""
