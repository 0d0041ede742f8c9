"""
Response Helpers

Shared by every terminal handler:
- respond: serialize a success envelope, reporting failures as EncodingFailure
- call_gitlab: run one upstream operation and translate its failures
- error_response: render any GatewayError as the failure envelope
"""

from typing import Awaitable, TypeVar

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from gateway.errors import (
    EncodingFailure,
    GatewayError,
    UpstreamStatusError,
    UpstreamTransportError,
)
from gateway.models import ErrorResponse
from gateway.services.gitlab_client import GitLabStatusError, GitLabTransportError

T = TypeVar("T")


def respond(body: BaseModel, status_code: int = 200) -> JSONResponse:
    """
    Serialize a success envelope.

    Raises:
        EncodingFailure: If the body cannot be rendered as JSON
    """
    try:
        return JSONResponse(body.model_dump(mode="json"), status_code=status_code)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise EncodingFailure(details=str(e)) from e


async def call_gitlab(operation: Awaitable[T], message: str, request: Request) -> T:
    """
    Await one GitLab operation on behalf of a handler.

    Args:
        operation: The pending capability call
        message: Envelope message used if the call fails
        request: Request being served, used to tag status errors

    Returns:
        Whatever the operation returns

    Raises:
        UpstreamTransportError: If GitLab could not be reached
        UpstreamStatusError: If GitLab answered with a non-success status
    """
    try:
        return await operation
    except GitLabTransportError as e:
        raise UpstreamTransportError(message, details=str(e)) from e
    except GitLabStatusError as e:
        raise UpstreamStatusError(message, endpoint=request.url.path, status_code=e.status_code) from e


def error_response(error: GatewayError) -> JSONResponse:
    """Render a GatewayError as the failure envelope."""
    body = ErrorResponse(
        message=error.message,
        details=error.details,
        status=error.status_code
    )
    return JSONResponse(
        body.model_dump(),
        status_code=error.status_code,
        headers=error.headers or None
    )
