"""Prometheus metrics for search and reindex operations."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


SEARCH_COUNT = Counter(
    "keyword_search_searches_total",
    "Searches executed, by collection and execution path",
    ["collection", "path"],
)

SEARCH_ERRORS = Counter(
    "keyword_search_search_errors_total",
    "Searches that failed in the document store",
    ["collection"],
)

SEARCH_LATENCY = Histogram(
    "keyword_search_search_latency_seconds",
    "Search latency in seconds",
    ["collection"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

REINDEX_COUNT = Counter(
    "keyword_search_reindexed_documents_total",
    "Documents reindexed, by collection and outcome",
    ["collection", "status"],
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Observe the wall-clock duration of the enclosed block."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Render all metrics in the Prometheus text format."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
