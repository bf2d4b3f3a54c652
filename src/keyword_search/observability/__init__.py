"""Observability module for tracing, metrics, and logging."""

from keyword_search.observability.context import (
    collection_context,
    get_trace_context,
    set_trace_context,
    trace_context,
)
from keyword_search.observability.logging import JsonFormatter, configure_logging
from keyword_search.observability.metrics import (
    REINDEX_COUNT,
    SEARCH_COUNT,
    SEARCH_ERRORS,
    SEARCH_LATENCY,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from keyword_search.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "REINDEX_COUNT",
    "SEARCH_COUNT",
    "SEARCH_ERRORS",
    "SEARCH_LATENCY",
    "JsonFormatter",
    "collection_context",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
