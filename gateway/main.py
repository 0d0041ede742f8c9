"""
FastAPI Application Factory

This module creates and configures the gateway's ASGI application.
It registers the dispatch table and the exception handlers that turn
every failure into the {message, details, status} envelope.

Design Decisions:
- The app is built from explicit collaborators (context, GitLab client,
  shutdown coordinator); nothing is read from global settings
- One handler renders all GatewayErrors; unknown paths get the same
  envelope with a 404
- No docs or OpenAPI routes; the only client is the editor plugin
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway import __version__
from gateway.context import RequestContext
from gateway.errors import GatewayError
from gateway.handlers.responses import error_response
from gateway.logging_config import get_logger
from gateway.models import ErrorResponse
from gateway.router import build_router
from gateway.services.capabilities import GitLabCapabilities
from gateway.shutdown import ShutdownCoordinator

logger = get_logger(__name__)


def create_app(
    context: RequestContext,
    gitlab: GitLabCapabilities,
    coordinator: ShutdownCoordinator
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Shared request context built at startup
        gitlab: GitLab client implementing the capability protocols
        coordinator: Shutdown coordinator used by /shutdown

    Returns:
        Configured FastAPI application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "Gateway accepting requests",
            project_id=context.project_id,
            branch=context.git_info.branch_name,
            merge_id=context.merge_id
        )
        yield
        logger.info("Gateway listener closed")

    app = FastAPI(
        title="GitLab Review Gateway",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )

    app.include_router(build_router(context, gitlab, coordinator))

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        """Unregistered paths and other framework-level rejections."""
        message = "Not found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
        body = ErrorResponse(
            message=message,
            details=f"No handler for {request.method} {request.url.path}",
            status=exc.status_code
        )
        return JSONResponse(body.model_dump(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )
        body = ErrorResponse(
            message="Internal server error",
            details=str(exc),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(body.model_dump(), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return app
