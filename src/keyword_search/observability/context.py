"""Per-context correlation fields shared by logs and spans.

The context holds the active trace/span ids plus the collection being searched
or reindexed, so ``JsonFormatter`` can stamp every line with them.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def get_trace_context() -> dict:
    """Return the current correlation fields, minting ids on first use."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {**(ctx or {}), "trace_id": uuid4().hex, "span_id": uuid4().hex[:16]}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def update_from_span_ids(trace_id: int, span_id: int) -> None:
    """Mirror OpenTelemetry span ids into the logging context."""
    ctx = trace_context.get() or {}
    trace_context.set({**ctx, "trace_id": format(trace_id, "032x"), "span_id": format(span_id, "016x")})


@contextmanager
def collection_context(collection: str) -> Iterator[None]:
    """Tag log lines emitted inside the block with ``collection``."""
    token = trace_context.set({**(trace_context.get() or {}), "collection": collection})
    try:
        yield
    finally:
        trace_context.reset(token)
