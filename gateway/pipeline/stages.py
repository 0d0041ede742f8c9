"""
Validation and Logging Stages

Cross-cutting stages shared by the gateway's endpoints:
- with_method_check: reject methods the endpoint does not serve
- with_payload_validation: decode and validate the JSON body per method
- with_logging: log method, path, status and timing around the chain

Each stage checks its own preconditions and never assumes another stage
ran before it.
"""

import time
from typing import Dict, Optional, Type

from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import Response

from gateway.errors import GatewayError, InvalidPayload, MethodNotAllowed
from gateway.logging_config import get_logger
from gateway.pipeline.chain import Handler, Stage

logger = get_logger(__name__)

MethodToPayload = Dict[str, Type[BaseModel]]

REQUIRED_ERROR_TYPES = {"missing", "string_too_short"}


def with_method_check(*methods: str) -> Stage:
    """
    Only let the given HTTP methods through.

    The check runs before the body is read. Rejected requests get a 405
    whose Allow header lists exactly the allowed methods.
    """
    allowed = [method.upper() for method in methods]

    def stage(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            if request.method not in allowed:
                raise MethodNotAllowed(allowed)
            return await next_handler(request)
        return handler

    return stage


def describe_validation_error(error: ValidationError) -> str:
    """
    Turn the first pydantic error into a short field-specific message.

    Missing or empty required fields read "<field> is required"; JSON
    decode errors and other failures keep pydantic's own message.
    """
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    if first["type"] in REQUIRED_ERROR_TYPES and field:
        return f"{field} is required"
    if field:
        return f"{field}: {first['msg']}"
    return first["msg"]


def with_payload_validation(payloads: MethodToPayload) -> Stage:
    """
    Decode the request body into the model registered for its method.

    Methods without a registered model pass through untouched. The
    decoded model is stored on request.state.payload for the handler.
    """
    def stage(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            model = payloads.get(request.method)
            if model is None:
                return await next_handler(request)

            body = await request.body()
            try:
                request.state.payload = model.model_validate_json(body or b"{}")
            except ValidationError as e:
                raise InvalidPayload(details=describe_validation_error(e)) from e

            return await next_handler(request)
        return handler

    return stage


def with_logging(next_handler: Handler) -> Handler:
    """Log each request and its outcome; errors are re-raised unchanged."""
    async def handler(request: Request) -> Response:
        started = time.perf_counter()
        log = logger.bind(method=request.method, path=request.url.path)
        log.debug("Request received")

        status_code: Optional[int] = None
        try:
            response = await next_handler(request)
            status_code = response.status_code
            return response
        except GatewayError as e:
            status_code = e.status_code
            log.warning(
                "Request failed",
                message=e.message,
                details=e.details,
                error_type=type(e).__name__
            )
            raise
        except Exception as e:
            status_code = 500
            log.error(
                "Unhandled error in request chain",
                error=str(e),
                error_type=type(e).__name__
            )
            raise
        finally:
            log.info(
                "Request handled",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2)
            )

    return handler
