"""OpenTelemetry spans for searches and reindex runs.

No exporter is configured here: the host application owns the tracer
provider. ``init_tracing`` installs a bare SDK provider for scripts and tests.
"""

from __future__ import annotations

from contextlib import ExitStack, contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import Status, StatusCode

from keyword_search.observability.context import collection_context, update_from_span_ids


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer

logger = logging.getLogger(__name__)

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = "keyword-search",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    """Install an SDK tracer provider for ``service_name``."""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer("keyword_search")
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    if _tracer_holder["tracer"] is None:
        _tracer_holder["tracer"] = trace.get_tracer("keyword_search")
    return _tracer_holder["tracer"]  # type: ignore[return-value]


@contextmanager
def create_span(
    name: str,
    *,
    collection: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Open an internal span, optionally scoped to ``collection``.

    The collection becomes the ``search.collection`` span attribute and is
    stamped on log lines emitted inside the block. ``None`` attribute values
    are skipped. An escaping exception marks the span as errored.
    """
    with ExitStack() as stack:
        if collection is not None:
            stack.enter_context(collection_context(collection))
        span = stack.enter_context(
            get_tracer().start_as_current_span(name, record_exception=False, set_status_on_exception=False)
        )
        if collection is not None:
            span.set_attribute("search.collection", collection)
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)

        span_context = span.get_span_context()
        if span_context.is_valid:
            update_from_span_ids(span_context.trace_id, span_context.span_id)

        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
