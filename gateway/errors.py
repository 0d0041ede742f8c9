"""
Gateway Error Taxonomy

Every failure a request can hit is a GatewayError subclass carrying the
HTTP status, the envelope message and the details string. A single
exception handler turns them into the failure envelope
{message, details, status}.

Design Decisions:
- Errors are raised where they are detected and rendered in one place
- Upstream failures keep transport errors and status errors apart
- Startup failures are separate from request failures and end the process
"""

from typing import Dict, Iterable, Optional


class GatewayError(Exception):
    """Base class for errors rendered as the failure envelope."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: str = "",
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}
        super().__init__(self.message if not details else f"{self.message}: {details}")


# =============================================================================
# Local Request Errors
# =============================================================================

class InvalidRequest(GatewayError):
    """Wrong method, malformed body or missing field. Never retried."""
    status_code = 400
    default_message = "Invalid request"


class MethodNotAllowed(InvalidRequest):
    """The endpoint does not accept the request method."""
    status_code = 405
    default_message = "Invalid request type"

    def __init__(self, allowed: Iterable[str]):
        self.allowed = list(allowed)
        advertised = ", ".join(self.allowed)
        super().__init__(
            details=f"Expected: {'; '.join(self.allowed)}",
            headers={
                "Allow": advertised,
                "Access-Control-Allow-Methods": advertised,
            }
        )


class InvalidPayload(InvalidRequest):
    """The body could not be decoded or is missing a required field."""
    default_message = "Invalid payload"


# =============================================================================
# Context Resolution Errors
# =============================================================================

class ResolutionFailure(GatewayError):
    """No merge request matches the local branch."""
    status_code = 404
    default_message = "No MRs Found"


class AmbiguousResolution(ResolutionFailure):
    """More than one open merge request matches the local branch."""
    status_code = 400
    default_message = "Multiple MRs found"


# =============================================================================
# Upstream Errors
# =============================================================================

class UpstreamTransportError(GatewayError):
    """The GitLab call itself failed (network, DNS, timeout)."""
    status_code = 500
    default_message = "GitLab request failed"


class UpstreamStatusError(GatewayError):
    """GitLab answered with a non-success status."""
    default_message = "GitLab returned non-200 status"

    def __init__(self, message: str, endpoint: str, status_code: int):
        self.endpoint = endpoint
        super().__init__(
            message,
            details=f"An error occurred on the {endpoint} endpoint",
            status_code=status_code
        )


class EncodingFailure(GatewayError):
    """The response could not be serialized after a successful operation."""
    status_code = 500
    default_message = "Could not encode response"


# =============================================================================
# Startup Errors
# =============================================================================

class StartupError(Exception):
    """Fatal error before the gateway accepts connections."""
    pass
