"""Keyword indexer.

Derives the keyword attributes of a document from its declared source fields:
one ``<field>_keywords`` attribute per declared field plus the combined
``_keywords`` attribute used by unscoped searches.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from keyword_search.domain.model import COMBINED_KEYWORDS_ATTRIBUTE, Document, FieldDescriptor, SearchableType
from keyword_search.exceptions import ResolutionError
from keyword_search.search.analyzers import KeywordNormalizer


logger = logging.getLogger(__name__)


class KeywordIndexer:
    """Computes and writes keyword attributes for searchable documents."""

    def __init__(self, normalizer: KeywordNormalizer | None = None) -> None:
        self.normalizer = normalizer or KeywordNormalizer()

    def compute_keywords(self, document: Document, searchable: SearchableType) -> dict[str, list[str]]:
        """Return keyword lists keyed by keyword attribute name.

        A field whose association cannot be resolved yields an empty list;
        the remaining fields are still indexed.
        """
        keywords: dict[str, list[str]] = {}
        combined: set[str] = set()
        for descriptor in searchable.fields:
            try:
                values = self._source_values(document, descriptor, searchable)
            except ResolutionError as exc:
                logger.warning(
                    "Could not resolve %s.%s for document %s: %s",
                    searchable.collection,
                    descriptor.name,
                    document.id,
                    exc,
                )
                values = []
            field_keywords = self.normalizer.normalize(values)
            keywords[descriptor.keyword_attribute] = field_keywords
            combined.update(field_keywords)
        keywords[COMBINED_KEYWORDS_ATTRIBUTE] = sorted(combined)
        return keywords

    def reindex(self, document: Document, searchable: SearchableType) -> dict[str, list[str]]:
        """Write freshly computed keyword attributes onto ``document``.

        Only keyword attributes are written; source fields are untouched.
        """
        keywords = self.compute_keywords(document, searchable)
        for attribute, values in keywords.items():
            document.write_attribute(attribute, values)
        return keywords

    def _source_values(self, document: Document, descriptor: FieldDescriptor, searchable: SearchableType) -> Any:
        value = document.read_attribute(descriptor.name)
        if not descriptor.is_nested:
            return value

        resolver = searchable.resolvers.get(descriptor.name)
        if resolver is not None and value is not None:
            try:
                value = resolver(value)
            except Exception as exc:
                raise ResolutionError(f"resolver for {descriptor.name!r} failed: {exc}") from exc
        return [extract_subkeys(item, descriptor.subkeys) for item in _as_items(value, descriptor.name)]


def _as_items(value: Any, field_name: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        raise ResolutionError(f"{field_name!r} holds an unresolved reference {value!r}")
    if isinstance(value, (Mapping, Document)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def extract_subkeys(item: Any, subkeys: Iterable[str]) -> list[Any]:
    """Pull ``subkeys`` out of one associated record (mapping or object)."""
    values: list[Any] = []
    for subkey in subkeys:
        if isinstance(item, Mapping):
            values.append(item.get(subkey))
        elif isinstance(item, Document):
            values.append(item.read_attribute(subkey))
        elif item is None:
            continue
        elif hasattr(item, subkey):
            values.append(getattr(item, subkey))
        else:
            raise ResolutionError(f"{type(item).__name__} has no attribute {subkey!r}")
    return values
