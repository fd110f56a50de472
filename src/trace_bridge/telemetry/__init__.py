"""Telemetry for the trace bridge.

This module provides:
- The W3C trace-context codec
- The Span model
- Structured logging via structlog
- Semantic event constants

Span reporters and the CPU monitor live in their own submodules because they
pull in network and process-inspection libraries.
"""

from trace_bridge.telemetry.logger import configure_logging, get_logger
from trace_bridge.telemetry.span import Span
from trace_bridge.telemetry.trace import (
    SAMPLED,
    NOT_SAMPLED,
    TRACEPARENT_HEADER,
    TRACESTATE_HEADER,
    TraceContext,
    format_traceparent,
    is_valid_traceparent,
    mint_id,
    parse_traceparent,
)

__all__ = [
    "TraceContext",
    "Span",
    "mint_id",
    "format_traceparent",
    "parse_traceparent",
    "is_valid_traceparent",
    "SAMPLED",
    "NOT_SAMPLED",
    "TRACEPARENT_HEADER",
    "TRACESTATE_HEADER",
    "get_logger",
    "configure_logging",
]
