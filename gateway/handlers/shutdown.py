"""
Shutdown Handler

Lets the editor stop (or restart) the gateway over HTTP. The response is
sent first; the shutdown is triggered once it has gone out.
"""

from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import Response

from gateway.handlers.responses import respond
from gateway.models import ShutdownRequest, SuccessResponse
from gateway.shutdown import ShutdownCoordinator


class ShutdownService:
    """Terminal handler for /shutdown."""

    def __init__(self, coordinator: ShutdownCoordinator):
        self.coordinator = coordinator

    async def __call__(self, request: Request) -> Response:
        payload: ShutdownRequest = request.state.payload
        text = "Restarting server..." if payload.restart else "Shutting down server..."

        response = respond(SuccessResponse(message=text))
        response.background = BackgroundTask(self.coordinator.trigger, "shutdown request")
        return response
