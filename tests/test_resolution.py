"""
Tests for Merge Request Resolution

Tests how the active merge request is found for the local branch.
"""

import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from conftest import BRANCH, FakeGitLab
from gateway.context import RequestContext
from gateway.errors import (
    AmbiguousResolution,
    ResolutionFailure,
    UpstreamStatusError,
    UpstreamTransportError,
)
from gateway.pipeline import chain, resolve_merge_request, with_merge_request
from gateway.services.gitlab_client import GitLabStatusError, GitLabTransportError


def make_request(path: str = "/mr/info") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "query_string": b"",
    })


class TestResolveMergeRequest:
    """Tests for resolve_merge_request."""

    async def test_single_match_sets_merge_id(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """Exactly one matching merge request is recorded on the context."""
        merge_id = await resolve_merge_request(context, fake_gitlab, "/mr/info")

        assert merge_id == 7
        assert context.merge_id == 7

    async def test_lists_open_merge_requests_for_branch(
        self, context: RequestContext, fake_gitlab: FakeGitLab
    ):
        """The listing asks GitLab for open merge requests from the branch."""
        await resolve_merge_request(context, fake_gitlab, "/mr/info")

        (_, args, kwargs), = fake_gitlab.called("list_project_merge_requests")
        assert args == ("42",)
        assert kwargs["state"] == "opened"
        assert kwargs["source_branch"] == BRANCH
        assert kwargs["target_branch"] is None

    async def test_target_branch_filter_is_forwarded(self, git_info, fake_gitlab: FakeGitLab):
        """A configured target branch narrows the listing."""
        context = RequestContext.build(project_id="42", git_info=git_info, target_branch="release")

        await resolve_merge_request(context, fake_gitlab, "/mr/info")

        (_, _, kwargs), = fake_gitlab.called("list_project_merge_requests")
        assert kwargs["target_branch"] == "release"

    async def test_other_branches_are_ignored(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """Only merge requests whose source branch equals the local branch count."""
        fake_gitlab.merge_requests = [
            {"iid": 3, "source_branch": "main"},
            {"iid": 9, "source_branch": BRANCH},
        ]

        assert await resolve_merge_request(context, fake_gitlab, "/mr/info") == 9

    async def test_no_match_fails(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """No merge request for the branch is a 404 and leaves the context alone."""
        fake_gitlab.merge_requests = [{"iid": 3, "source_branch": "main"}]

        with pytest.raises(ResolutionFailure) as exc_info:
            await resolve_merge_request(context, fake_gitlab, "/mr/info")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "No MRs Found"
        assert exc_info.value.details == f"Branch '{BRANCH}' does not have any merge requests"
        assert context.merge_id is None

    async def test_multiple_matches_fail(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """Several open merge requests for the branch are ambiguous."""
        fake_gitlab.merge_requests = [
            {"iid": 4, "source_branch": BRANCH},
            {"iid": 5, "source_branch": BRANCH},
        ]

        with pytest.raises(AmbiguousResolution) as exc_info:
            await resolve_merge_request(context, fake_gitlab, "/mr/info")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Multiple MRs found"
        assert context.merge_id is None

    async def test_upstream_status_error(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """A GitLab error status is reported with the request path."""
        fake_gitlab.errors["list_project_merge_requests"] = GitLabStatusError(
            "GitLab API error: 403", status_code=403
        )

        with pytest.raises(UpstreamStatusError) as exc_info:
            await resolve_merge_request(context, fake_gitlab, "/mr/approve")

        assert exc_info.value.status_code == 403
        assert exc_info.value.details == "An error occurred on the /mr/approve endpoint"

    async def test_upstream_transport_error(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """An unreachable GitLab is a 500."""
        fake_gitlab.errors["list_project_merge_requests"] = GitLabTransportError("connection refused")

        with pytest.raises(UpstreamTransportError) as exc_info:
            await resolve_merge_request(context, fake_gitlab, "/mr/info")

        assert exc_info.value.status_code == 500
        assert "connection refused" in exc_info.value.details


class TestWithMergeRequest:
    """Tests for the resolution stage."""

    async def test_resolves_once(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """The first request resolves; later ones reuse the recorded id."""
        seen = []

        async def terminal(request: Request) -> Response:
            seen.append(context.merge_id)
            return PlainTextResponse("ok")

        endpoint = chain(terminal, with_merge_request(context, fake_gitlab))
        await endpoint(make_request())
        await endpoint(make_request())

        assert seen == [7, 7]
        assert len(fake_gitlab.called("list_project_merge_requests")) == 1

    async def test_pinned_merge_id_skips_lookup(self, git_info, fake_gitlab: FakeGitLab):
        """A merge request pinned at startup is never looked up."""
        context = RequestContext.build(project_id="42", git_info=git_info, merge_id=31)

        async def terminal(request: Request) -> Response:
            return PlainTextResponse(str(context.merge_id))

        response = await chain(terminal, with_merge_request(context, fake_gitlab))(make_request())

        assert response.body == b"31"
        assert fake_gitlab.called("list_project_merge_requests") == []

    async def test_failure_stops_the_chain(self, context: RequestContext, fake_gitlab: FakeGitLab):
        """The terminal handler does not run when resolution fails."""
        fake_gitlab.merge_requests = []
        reached = []

        async def terminal(request: Request) -> Response:
            reached.append(True)
            return PlainTextResponse("ok")

        with pytest.raises(ResolutionFailure):
            await chain(terminal, with_merge_request(context, fake_gitlab))(make_request())

        assert reached == []
