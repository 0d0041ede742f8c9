"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import signal
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gateway.context import RequestContext
from gateway.main import create_app
from gateway.services.git import GitInfo
from gateway.shutdown import ShutdownCoordinator

BRANCH = "feature/review-gateway"


class FakeGitLab:
    """
    In-memory stand-in for GitLabClient.

    Every capability call is recorded in `calls` as (name, args, kwargs).
    Set `errors[name]` to make that call raise.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.errors: Dict[str, Exception] = {}
        self.merge_requests: List[Dict[str, Any]] = [
            {"iid": 7, "source_branch": BRANCH, "target_branch": "main"},
        ]
        self.discussion: Dict[str, Any] = {
            "id": "6a9c1750b37d513a43987b574953fceb50b03ce7",
            "notes": [{"id": 1501, "body": "Looks good"}],
        }

    def _record(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        if name in self.errors:
            raise self.errors[name]

    def called(self, name: str) -> List[tuple]:
        """Calls made to one capability."""
        return [call for call in self.calls if call[0] == name]

    async def get_project(self, project_path):
        self._record("get_project", project_path)
        return {"id": 42, "path_with_namespace": project_path}

    async def list_project_merge_requests(self, project_id, **params):
        self._record("list_project_merge_requests", project_id, **params)
        return list(self.merge_requests)

    async def get_merge_request(self, project_id, merge_id):
        self._record("get_merge_request", project_id, merge_id)
        return {"iid": merge_id, "title": "Add review gateway"}

    async def approve_merge_request(self, project_id, merge_id):
        self._record("approve_merge_request", project_id, merge_id)
        return {"approved": True}

    async def unapprove_merge_request(self, project_id, merge_id):
        self._record("unapprove_merge_request", project_id, merge_id)

    async def accept_merge_request(self, project_id, merge_id, options):
        self._record("accept_merge_request", project_id, merge_id, options)
        return {"iid": merge_id, "state": "merged"}

    async def update_merge_request(self, project_id, merge_id, changes):
        self._record("update_merge_request", project_id, merge_id, changes)
        return {"iid": merge_id, "reviewers": [{"id": i} for i in changes.get("reviewer_ids", [])]}

    async def create_merge_request_discussion(self, project_id, merge_id, body, position=None):
        self._record("create_merge_request_discussion", project_id, merge_id, body, position=position)
        return self.discussion

    async def update_merge_request_discussion_note(
        self, project_id, merge_id, discussion_id, note_id, body
    ):
        self._record(
            "update_merge_request_discussion_note",
            project_id, merge_id, discussion_id, note_id, body
        )
        return {"id": note_id, "body": body}

    async def delete_merge_request_discussion_note(self, project_id, merge_id, discussion_id, note_id):
        self._record(
            "delete_merge_request_discussion_note", project_id, merge_id, discussion_id, note_id
        )

    async def resolve_merge_request_discussion(self, project_id, merge_id, discussion_id, resolved):
        self._record(
            "resolve_merge_request_discussion", project_id, merge_id, discussion_id, resolved
        )
        return {"id": discussion_id, "resolved": resolved}

    async def list_draft_notes(self, project_id, merge_id):
        self._record("list_draft_notes", project_id, merge_id)
        return [{"id": 11, "note": "draft"}]

    async def create_draft_note(self, project_id, merge_id, options):
        self._record("create_draft_note", project_id, merge_id, options)
        return {"id": 12, **options}

    async def update_draft_note(self, project_id, merge_id, note_id, options):
        self._record("update_draft_note", project_id, merge_id, note_id, options)
        return {"id": note_id, **options}

    async def delete_draft_note(self, project_id, merge_id, note_id):
        self._record("delete_draft_note", project_id, merge_id, note_id)

    async def publish_draft_note(self, project_id, merge_id, note_id):
        self._record("publish_draft_note", project_id, merge_id, note_id)

    async def publish_all_draft_notes(self, project_id, merge_id):
        self._record("publish_all_draft_notes", project_id, merge_id)

    async def get_merge_request_diff_versions(self, project_id, merge_id):
        self._record("get_merge_request_diff_versions", project_id, merge_id)
        return [{"id": 1, "head_commit_sha": "abc", "base_commit_sha": "def"}]

    async def get_job_trace(self, project_id, job_id):
        self._record("get_job_trace", project_id, job_id)
        return "Running with gitlab-runner\nJob succeeded\n"

    async def create_note_award_emoji(self, project_id, merge_id, note_id, name):
        self._record("create_note_award_emoji", project_id, merge_id, note_id, name)
        return {"id": 99, "name": name}


class RecordingExit:
    """exit_func replacement that remembers the statuses it was given."""

    def __init__(self):
        self.statuses: List[int] = []

    def __call__(self, status: int) -> None:
        self.statuses.append(status)


@pytest.fixture
def git_info() -> GitInfo:
    """Metadata of a working copy on a feature branch."""
    return GitInfo(
        branch_name=BRANCH,
        remote_url="git@gitlab.example.com:tools/review-gateway.git",
        namespace="tools",
        project_name="review-gateway"
    )


@pytest.fixture
def fake_gitlab() -> FakeGitLab:
    return FakeGitLab()


@pytest.fixture
def context(git_info: GitInfo) -> RequestContext:
    """Context whose merge request is not resolved yet."""
    return RequestContext.build(project_id="42", git_info=git_info)


@pytest.fixture
def recording_exit() -> RecordingExit:
    return RecordingExit()


@pytest.fixture
def coordinator(recording_exit: RecordingExit) -> ShutdownCoordinator:
    return ShutdownCoordinator(exit_func=recording_exit)


@pytest.fixture
def app(
    context: RequestContext,
    fake_gitlab: FakeGitLab,
    coordinator: ShutdownCoordinator
) -> FastAPI:
    return create_app(context, fake_gitlab, coordinator)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a test client for synchronous tests."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def restore_signal_handlers() -> Generator[None, None, None]:
    """Put SIGINT/SIGTERM handlers back after a test installs its own."""
    previous = {
        signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)
    }
    yield
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def position_payload(
    comment: str = "Please rename this",
    line_range: Optional[Dict[str, Any]] = None,
    **overrides: Any
) -> Dict[str, Any]:
    """Body of a comment anchored to line 12 of gateway/router.py."""
    payload: Dict[str, Any] = {
        "comment": comment,
        "file_name": "gateway/router.py",
        "old_file_name": "",
        "new_line": 12,
        "head_commit_sha": "1a2b3c",
        "base_commit_sha": "4d5e6f",
        "start_commit_sha": "4d5e6f",
        "type": "text",
    }
    if line_range is not None:
        payload["line_range"] = line_range
    payload.update(overrides)
    return payload
