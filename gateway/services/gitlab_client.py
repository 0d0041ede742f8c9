"""
GitLab API Client Module

This module provides the client the gateway uses to talk to the GitLab v4
REST API. It implements every capability protocol in
gateway.services.capabilities.

Design Decisions:
- Use httpx for async HTTP requests, one AsyncClient per call so the
  client can be used from the startup loop and the server loop alike
- Retry transport errors with exponential backoff (tenacity); never retry
  a request GitLab actually answered
- Rate-limit outgoing requests (aiolimiter)
- Keep "GitLab said no" (GitLabStatusError) and "GitLab never answered"
  (GitLabTransportError) as separate exceptions
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gateway.config import Settings
from gateway.logging_config import get_logger
from gateway.services.capabilities import ProjectGetter
from gateway.services.git import GitInfo

logger = get_logger(__name__)


class GitLabError(Exception):
    """Base exception for GitLab API failures."""
    pass


class GitLabStatusError(GitLabError):
    """GitLab answered with a status code of 300 or above."""
    def __init__(self, message: str, status_code: int, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GitLabTransportError(GitLabError):
    """The request failed before GitLab produced a response."""
    pass


async def _log_request(request: httpx.Request) -> None:
    logger.debug(
        "GitLab request",
        method=request.method,
        url=str(request.url),
        headers=dict(request.headers)
    )


async def _log_response(response: httpx.Response) -> None:
    logger.debug(
        "GitLab response",
        method=response.request.method,
        url=str(response.request.url),
        status_code=response.status_code
    )


class GitLabClient:
    """
    Async GitLab API client with retries and rate limiting.

    Usage:
        client = GitLabClient.from_settings(settings)
        merge_requests = await client.list_project_merge_requests("42", state="opened")
    """

    def __init__(
        self,
        api_base_url: str,
        token: str,
        *,
        rate_limit: int = 600,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        timeout: float = 30.0,
        log_requests: bool = False,
        log_responses: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the GitLab client.

        Args:
            api_base_url: API root, e.g. https://gitlab.com/api/v4
            token: Personal access token
            rate_limit: Requests allowed per minute
            max_retries: Retries after the first attempt on transport errors
            retry_base_delay: Multiplier for the exponential backoff
            timeout: Per-request timeout in seconds
            log_requests: Log every outgoing request at debug level
            log_responses: Log every response at debug level
            transport: Custom httpx transport (used by tests)
        """
        self.api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._timeout = timeout
        self._transport = transport
        self._rate_limiter = AsyncLimiter(max_rate=rate_limit, time_period=60)

        self._event_hooks: Dict[str, List[Any]] = {"request": [], "response": []}
        if log_requests:
            self._event_hooks["request"].append(_log_request)
        if log_responses:
            self._event_hooks["response"].append(_log_response)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitLabClient":
        """Create a client configured from gateway settings."""
        return cls(
            settings.api_base_url,
            settings.gitlab_token,
            rate_limit=settings.gitlab_rate_limit,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            timeout=settings.request_timeout,
            log_requests=settings.debug_gitlab_request,
            log_responses=settings.debug_gitlab_response,
        )

    def _headers(self) -> Dict[str, str]:
        return {"PRIVATE-TOKEN": self._token}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
            event_hooks=self._event_hooks,
        )

    async def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        async with self._rate_limiter:
            async with self._client() as client:
                return await client.request(method, endpoint, **kwargs)

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """
        Make an authenticated request to the GitLab API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint relative to the API root
            **kwargs: Additional arguments to pass to httpx

        Returns:
            httpx.Response with a status below 300

        Raises:
            GitLabTransportError: If no response was received after retries
            GitLabStatusError: If GitLab answered with a status of 300 or above
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries + 1),
                wait=wait_exponential(multiplier=self._retry_base_delay, max=10),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True
            ):
                with attempt:
                    response = await self._send(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "GitLab request failed",
                method=method,
                endpoint=endpoint,
                error=str(e)
            )
            raise GitLabTransportError(f"{method} {endpoint} failed: {e}") from e

        if response.status_code >= 300:
            error_body = response.text
            logger.error(
                "GitLab API error",
                status_code=response.status_code,
                endpoint=endpoint,
                error=error_body[:500]  # Limit error length
            )
            raise GitLabStatusError(
                f"GitLab API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body
            )

        return response

    @staticmethod
    def _project(project_id: str) -> str:
        # Project paths contain slashes and must be URL-encoded as one segment
        return quote(str(project_id), safe="")

    def _mr(self, project_id: str, merge_id: int) -> str:
        return f"/projects/{self._project(project_id)}/merge_requests/{merge_id}"

    # =========================================================================
    # Projects and Merge Requests
    # =========================================================================

    async def get_project(self, project_path: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/projects/{self._project(project_path)}")
        return response.json()

    async def list_project_merge_requests(
        self, project_id: str, **params: Any
    ) -> List[Dict[str, Any]]:
        params = {key: value for key, value in params.items() if value is not None}
        response = await self._request(
            "GET",
            f"/projects/{self._project(project_id)}/merge_requests",
            params=params
        )
        return response.json()

    async def get_merge_request(self, project_id: str, merge_id: int) -> Dict[str, Any]:
        response = await self._request("GET", self._mr(project_id, merge_id))
        return response.json()

    async def approve_merge_request(self, project_id: str, merge_id: int) -> Dict[str, Any]:
        response = await self._request("POST", f"{self._mr(project_id, merge_id)}/approve")
        return response.json()

    async def unapprove_merge_request(self, project_id: str, merge_id: int) -> None:
        await self._request("POST", f"{self._mr(project_id, merge_id)}/unapprove")

    async def accept_merge_request(
        self, project_id: str, merge_id: int, options: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await self._request(
            "PUT", f"{self._mr(project_id, merge_id)}/merge", json=options
        )
        return response.json()

    async def update_merge_request(
        self, project_id: str, merge_id: int, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await self._request("PUT", self._mr(project_id, merge_id), json=changes)
        return response.json()

    async def get_merge_request_diff_versions(
        self, project_id: str, merge_id: int
    ) -> List[Dict[str, Any]]:
        response = await self._request("GET", f"{self._mr(project_id, merge_id)}/versions")
        return response.json()

    # =========================================================================
    # Discussions
    # =========================================================================

    async def create_merge_request_discussion(
        self,
        project_id: str,
        merge_id: int,
        body: str,
        position: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"body": body}
        if position is not None:
            payload["position"] = position
        response = await self._request(
            "POST", f"{self._mr(project_id, merge_id)}/discussions", json=payload
        )
        return response.json()

    async def update_merge_request_discussion_note(
        self, project_id: str, merge_id: int, discussion_id: str, note_id: int, body: str
    ) -> Dict[str, Any]:
        response = await self._request(
            "PUT",
            f"{self._mr(project_id, merge_id)}/discussions/{discussion_id}/notes/{note_id}",
            json={"body": body}
        )
        return response.json()

    async def delete_merge_request_discussion_note(
        self, project_id: str, merge_id: int, discussion_id: str, note_id: int
    ) -> None:
        await self._request(
            "DELETE",
            f"{self._mr(project_id, merge_id)}/discussions/{discussion_id}/notes/{note_id}"
        )

    async def resolve_merge_request_discussion(
        self, project_id: str, merge_id: int, discussion_id: str, resolved: bool
    ) -> Dict[str, Any]:
        response = await self._request(
            "PUT",
            f"{self._mr(project_id, merge_id)}/discussions/{discussion_id}",
            params={"resolved": "true" if resolved else "false"}
        )
        return response.json()

    async def create_note_award_emoji(
        self, project_id: str, merge_id: int, note_id: int, name: str
    ) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"{self._mr(project_id, merge_id)}/notes/{note_id}/award_emoji",
            json={"name": name}
        )
        return response.json()

    # =========================================================================
    # Draft Notes
    # =========================================================================

    async def list_draft_notes(self, project_id: str, merge_id: int) -> List[Dict[str, Any]]:
        response = await self._request("GET", f"{self._mr(project_id, merge_id)}/draft_notes")
        return response.json()

    async def create_draft_note(
        self, project_id: str, merge_id: int, options: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await self._request(
            "POST", f"{self._mr(project_id, merge_id)}/draft_notes", json=options
        )
        return response.json()

    async def update_draft_note(
        self, project_id: str, merge_id: int, note_id: int, options: Dict[str, Any]
    ) -> Dict[str, Any]:
        response = await self._request(
            "PUT", f"{self._mr(project_id, merge_id)}/draft_notes/{note_id}", json=options
        )
        return response.json()

    async def delete_draft_note(self, project_id: str, merge_id: int, note_id: int) -> None:
        await self._request("DELETE", f"{self._mr(project_id, merge_id)}/draft_notes/{note_id}")

    async def publish_draft_note(self, project_id: str, merge_id: int, note_id: int) -> None:
        await self._request(
            "PUT", f"{self._mr(project_id, merge_id)}/draft_notes/{note_id}/publish"
        )

    async def publish_all_draft_notes(self, project_id: str, merge_id: int) -> None:
        await self._request("POST", f"{self._mr(project_id, merge_id)}/draft_notes/bulk_publish")

    # =========================================================================
    # Pipelines
    # =========================================================================

    async def get_job_trace(self, project_id: str, job_id: int) -> str:
        response = await self._request(
            "GET", f"/projects/{self._project(project_id)}/jobs/{job_id}/trace"
        )
        return response.text


async def resolve_project_id(client: ProjectGetter, git_info: GitInfo) -> str:
    """
    Look up the numeric project id for the local working copy.

    Args:
        client: GitLab client
        git_info: Metadata of the working copy

    Returns:
        The project id as a string

    Raises:
        GitLabError: If the project cannot be fetched
    """
    project = await client.get_project(git_info.project_path)
    if not project or "id" not in project:
        raise GitLabError(f"Could not find project at {git_info.remote_url}")

    logger.info(
        "Resolved GitLab project",
        project_path=git_info.project_path,
        project_id=project["id"]
    )
    return str(project["id"])
