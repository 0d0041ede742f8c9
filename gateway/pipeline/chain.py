"""
Middleware Chain Builder

An endpoint is a terminal handler wrapped in an ordered list of stages.
A stage is a function that takes the next handler and returns a new
handler; it either answers the request itself (short-circuit) or awaits
the next handler and may post-process its response.

Stages are declared innermost first:

    chain(
        terminal,
        with_merge_request(context, gitlab),    # runs last, next to terminal
        with_payload_validation(payloads),
        with_method_check("POST"),
        with_logging,                           # runs first, wraps everything
    )

so execution order is the reverse of declaration order.
"""

from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import Response

Handler = Callable[[Request], Awaitable[Response]]
Stage = Callable[[Handler], Handler]


def chain(terminal: Handler, *stages: Stage) -> Handler:
    """
    Compose stages around a terminal handler.

    Args:
        terminal: Handler that performs the endpoint's operation
        *stages: Stages, innermost first

    Returns:
        A single handler running the last stage first
    """
    handler = terminal
    for stage in stages:
        handler = stage(handler)

    # Starlette only treats plain functions as request/response endpoints
    async def endpoint(request: Request) -> Response:
        return await handler(request)

    return endpoint
