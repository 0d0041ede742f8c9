"""
Structured Logging Configuration

This module sets up structured logging using structlog.
Logs are formatted as JSON by default so the editor plugin (or a human)
can grep the log file.

Design Decisions:
- Use structlog for structured, contextual logging
- JSON format by default, colored console when requested
- Optional file sink, since the gateway usually runs without a terminal
- Never log sensitive data (tokens, secrets)
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from gateway import __version__
from gateway.config import Settings

TOKEN_PREFIXES = ("glpat-", "gldt-", "glptt-", "glrt-")


def filter_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Processor to filter out sensitive data from logs.

    Debug logging of GitLab requests includes headers, so the
    PRIVATE-TOKEN must never reach the sink.
    """
    sensitive_keys = {
        "token", "private-token", "private_token", "secret",
        "password", "authorization", "auth", "credential", "bearer"
    }

    def redact_dict(d: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively redact sensitive values in a dict."""
        result = {}
        for key, value in d.items():
            key_lower = str(key).lower()
            if any(sensitive in key_lower for sensitive in sensitive_keys):
                result[key] = "[REDACTED]"
            elif isinstance(value, dict):
                result[key] = redact_dict(value)
            elif isinstance(value, str) and value.startswith(TOKEN_PREFIXES):
                result[key] = "[REDACTED]"
            else:
                result[key] = value
        return result

    return redact_dict(event_dict)


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application context to every log entry."""
    event_dict["app"] = "gitlab-review-gateway"
    event_dict["version"] = __version__
    return event_dict


def setup_logging(settings: Settings) -> None:
    """
    Configure structured logging for the gateway.

    This function should be called once at startup, before the server
    is created. It configures both structlog and the standard logging
    library so that uvicorn and httpx records share the same format.

    Args:
        settings: Gateway settings (log level, format and file sink)
    """
    shared_processors: List[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_app_context,
        filter_sensitive_data,
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if settings.log_json_format:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # stdout is reserved for the startup line the editor waits for
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    file_handler = _open_log_file(settings.log_path)
    if file_handler is not None:
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level))

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _open_log_file(log_path: Optional[str]) -> Optional[logging.Handler]:
    """Create the file handler, or None when no path is configured."""
    if not log_path:
        return None
    return logging.FileHandler(log_path, encoding="utf-8")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        logger = get_logger(__name__)
        logger.info("Resolved merge request", merge_id=12, branch="feature")

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
