"""Document store interface and the in-memory implementation.

The search layer only needs a handful of primitives from a document store:
indexing an attribute, writing and reading records, a filtered read, and the
overlap aggregation used for relevance. ``DocumentStore`` captures those
primitives; ``MemoryDocumentStore`` keeps everything in dictionaries which
makes it easy to exercise in unit tests and small embedded deployments.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import copy
import logging
import threading
from typing import Any, Protocol, runtime_checkable

from keyword_search.exceptions import StoreExecutionError
from keyword_search.search.query import MatchEverything, Predicate
from keyword_search.search.ranking import AggregationRow, OverlapCountAggregation, run_in_process


logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentStore(Protocol):
    """Primitives the search layer consumes from a document store."""

    def ensure_index(self, collection: str, attribute: str) -> None:
        """Create a secondary index over ``attribute`` if missing."""
        ...

    def save(self, collection: str, record: Mapping[str, Any]) -> None:
        """Insert or replace the record identified by ``record["id"]``."""
        ...

    def update_fields(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        """Overwrite only ``fields`` on an existing record."""
        ...

    def get(self, collection: str, document_id: str) -> dict[str, Any] | None: ...

    def delete(self, collection: str, document_id: str) -> bool: ...

    def find(self, collection: str, predicate: Predicate | None = None) -> list[dict[str, Any]]:
        """Return records matching ``predicate`` in store order."""
        ...

    def iter_documents(self, collection: str) -> Iterator[dict[str, Any]]: ...

    def aggregate(self, aggregation: OverlapCountAggregation) -> list[AggregationRow]: ...


class MemoryDocumentStore:
    """Dictionary-backed store that evaluates predicates in process.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store. Insertion order is the store order.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._indexes: dict[str, set[str]] = {}
        self._lock = threading.RLock()

    def ensure_index(self, collection: str, attribute: str) -> None:
        with self._lock:
            self._indexes.setdefault(collection, set()).add(attribute)

    def indexed_attributes(self, collection: str) -> set[str]:
        return set(self._indexes.get(collection, set()))

    def save(self, collection: str, record: Mapping[str, Any]) -> None:
        document_id = require_document_id(record)
        with self._lock:
            self._collections.setdefault(collection, {})[document_id] = copy.deepcopy(dict(record))

    def update_fields(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            stored = self._collections.get(collection, {}).get(document_id)
            if stored is None:
                raise StoreExecutionError(f"Document {document_id!r} not found in {collection!r}")
            stored.update(copy.deepcopy(dict(fields)))

    def get(self, collection: str, document_id: str) -> dict[str, Any] | None:
        with self._lock:
            stored = self._collections.get(collection, {}).get(document_id)
            return copy.deepcopy(stored) if stored is not None else None

    def delete(self, collection: str, document_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(document_id, None) is not None

    def find(self, collection: str, predicate: Predicate | None = None) -> list[dict[str, Any]]:
        predicate = predicate or MatchEverything()
        with self._lock:
            records = list(self._collections.get(collection, {}).values())
        return [copy.deepcopy(record) for record in records if predicate.matches(record)]

    def iter_documents(self, collection: str) -> Iterator[dict[str, Any]]:
        with self._lock:
            records = list(self._collections.get(collection, {}).values())
        for record in records:
            yield copy.deepcopy(record)

    def aggregate(self, aggregation: OverlapCountAggregation) -> list[AggregationRow]:
        candidates = self.find(aggregation.collection, aggregation.filter)
        return run_in_process(aggregation, candidates)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))


def require_document_id(record: Mapping[str, Any]) -> str:
    document_id = record.get("id")
    if document_id is None or document_id == "":
        raise StoreExecutionError("Records must carry a non-empty 'id'")
    return str(document_id)
