"""Observability helpers."""

from agent_insights.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_scan,
    record_cache_result,
    record_parser_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_scan",
    "record_cache_result",
    "record_parser_failure",
]
