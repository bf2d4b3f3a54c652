"""Relevance ranking by keyword overlap.

The ranking is expressed as a two-phase aggregation the store executes:

* map - for each candidate record, count the (query token, stored token)
  pairs that are equal and emit ``(record, count)`` when the count is positive;
* reduce - identity, since every key is already a single document.

Stores are free to compile the aggregation natively as long as they honor
that contract. The final ordering happens here because stores do not
guarantee aggregation output order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any

from keyword_search.search.query import Predicate


if TYPE_CHECKING:
    from keyword_search.search.storage import DocumentStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AggregationRow:
    """One emitted (record, value) pair."""

    record: Mapping[str, Any]
    value: int

    @property
    def document_id(self) -> str:
        return str(self.record.get("id"))


@dataclass(frozen=True)
class OverlapCountAggregation:
    """Counts keyword overlaps between a query and each candidate's keyword attribute."""

    collection: str
    filter: Predicate
    attribute: str
    keywords: tuple[str, ...]

    def map(self, record: Mapping[str, Any]) -> AggregationRow | None:
        stored = record.get(self.attribute) or []
        if isinstance(stored, str):
            stored = [stored]
        entries = 0
        for keyword in self.keywords:
            for value in stored:
                if value == keyword:
                    entries += 1
        if entries > 0:
            return AggregationRow(record=record, value=entries)
        return None

    def reduce(self, key: str, values: Sequence[AggregationRow]) -> Sequence[AggregationRow]:
        return values


def run_in_process(aggregation: OverlapCountAggregation, records: Iterable[Mapping[str, Any]]) -> list[AggregationRow]:
    """Execute ``aggregation`` over already-filtered records with plain Python."""
    grouped: dict[str, list[AggregationRow]] = {}
    for record in records:
        row = aggregation.map(record)
        if row is not None:
            grouped.setdefault(row.document_id, []).append(row)
    results: list[AggregationRow] = []
    for key, rows in grouped.items():
        results.extend(aggregation.reduce(key, rows))
    return results


class RelevanceRanker:
    """Runs the overlap aggregation on a store and orders the output."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def rank(self, aggregation: OverlapCountAggregation) -> list[AggregationRow]:
        rows = self.store.aggregate(aggregation)
        logger.debug(
            "Overlap aggregation on %s.%s returned %d rows",
            aggregation.collection,
            aggregation.attribute,
            len(rows),
        )
        # sorted() is stable, so ties keep the store's order
        return sorted(rows, key=lambda row: row.value, reverse=True)
