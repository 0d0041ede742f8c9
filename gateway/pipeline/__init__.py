"""
Pipeline Package

Building blocks every endpoint is composed from:
- chain: composes stages around a terminal handler
- stages: method check, payload validation, logging
- resolution: merge request resolution
"""

from gateway.pipeline.chain import Handler, Stage, chain
from gateway.pipeline.resolution import resolve_merge_request, with_merge_request
from gateway.pipeline.stages import (
    with_logging,
    with_method_check,
    with_payload_validation,
)

__all__ = [
    "Handler",
    "Stage",
    "chain",
    "resolve_merge_request",
    "with_merge_request",
    "with_logging",
    "with_method_check",
    "with_payload_validation",
]
