"""Tracing and structured logging for modelship.

- create_span / traced: OpenTelemetry spans around promotion operations
- configure_logging: structlog setup with trace context injection
- sanitize_error_message: credential redaction for logs and spans
"""

from __future__ import annotations

from modelship.telemetry.logging import add_trace_context, configure_logging
from modelship.telemetry.sanitization import sanitize_error_message
from modelship.telemetry.tracing import create_span, get_tracer, reset_tracer, set_tracer, traced

__all__ = [
    "add_trace_context",
    "configure_logging",
    "create_span",
    "get_tracer",
    "reset_tracer",
    "sanitize_error_message",
    "set_tracer",
    "traced",
]
