"""Registry of searchable collections.

The registry is an explicit object created at startup and passed to whatever
needs to enumerate searchable collections (the search service, the bulk
reindex command). Declaring a collection records its static descriptor list
and creates the keyword attribute indexes on every attached store.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import logging
import threading
from typing import TYPE_CHECKING, Any

from keyword_search.domain.model import COMBINED_KEYWORDS_ATTRIBUTE, FieldDescriptor, Resolver, SearchableType
from keyword_search.exceptions import ConfigurationError


if TYPE_CHECKING:
    from keyword_search.search.storage import DocumentStore


logger = logging.getLogger(__name__)


class SearchableRegistry:
    """Maps collection names to their ``SearchableType`` declaration."""

    def __init__(self) -> None:
        self._types: dict[str, SearchableType] = {}
        self._stores: list[DocumentStore] = []
        self._lock = threading.Lock()

    def declare_searchable(
        self,
        collection: str,
        *fields: Any,
        resolvers: Mapping[str, Resolver] | None = None,
    ) -> SearchableType:
        """Register source fields for ``collection``.

        Each field is a name (``"title"``), a mapping of name to sub-key or
        sub-keys (``{"author": "name"}``, ``{"tags": ["name", "label"]}``), or a
        ``FieldDescriptor``. Calling again for the same collection extends its
        fields.

        Raises:
            ConfigurationError: unsupported field shape, duplicate field, a
                field named like a generated keyword attribute, or a resolver
                for an undeclared or plain field.
        """
        if not isinstance(collection, str) or not collection.strip():
            raise ConfigurationError(f"Collection names must be non-empty strings, got {collection!r}")
        if not fields:
            raise ConfigurationError(f"declare_searchable({collection!r}) needs at least one field")

        descriptors = [descriptor for raw in fields for descriptor in FieldDescriptor.parse(raw)]

        with self._lock:
            existing = self._types.get(collection)
            merged = list(existing.fields) if existing else []
            merged_resolvers = dict(existing.resolvers) if existing else {}
            seen = {descriptor.name for descriptor in merged}
            for descriptor in descriptors:
                if descriptor.name in seen:
                    raise ConfigurationError(f"Field {descriptor.name!r} is already searchable in {collection!r}")
                seen.add(descriptor.name)
                merged.append(descriptor)

            reserved = {descriptor.keyword_attribute for descriptor in merged} | {COMBINED_KEYWORDS_ATTRIBUTE}
            clashing = [descriptor.name for descriptor in merged if descriptor.name in reserved]
            if clashing:
                raise ConfigurationError(
                    f"Fields {clashing} in {collection!r} collide with generated keyword attributes"
                )

            for name, resolver in (resolvers or {}).items():
                target = next((descriptor for descriptor in merged if descriptor.name == name), None)
                if target is None or not target.is_nested:
                    raise ConfigurationError(
                        f"Resolver {name!r} must belong to a field declared with sub-keys in {collection!r}"
                    )
                if not callable(resolver):
                    raise ConfigurationError(f"Resolver for {name!r} is not callable")
                merged_resolvers[name] = resolver

            searchable = SearchableType(collection=collection, fields=tuple(merged), resolvers=merged_resolvers)
            self._types[collection] = searchable
            stores = list(self._stores)

        for store in stores:
            self._create_indexes(store, searchable)
        logger.info(
            "Declared searchable collection %s with fields %s",
            collection,
            searchable.field_names(),
        )
        return searchable

    def attach(self, store: DocumentStore) -> None:
        """Create keyword indexes on ``store`` for current and future declarations."""
        with self._lock:
            if any(existing is store for existing in self._stores):
                return
            self._stores.append(store)
            types = list(self._types.values())
        for searchable in types:
            self._create_indexes(store, searchable)

    def get(self, collection: str) -> SearchableType:
        try:
            return self._types[collection]
        except KeyError:
            raise ConfigurationError(
                f"Collection {collection!r} is not searchable. Declared: {sorted(self._types)}"
            ) from None

    def collections(self) -> list[str]:
        return list(self._types)

    def __contains__(self, collection: object) -> bool:
        return collection in self._types

    def __iter__(self) -> Iterator[SearchableType]:
        return iter(list(self._types.values()))

    def __len__(self) -> int:
        return len(self._types)

    @staticmethod
    def _create_indexes(store: DocumentStore, searchable: SearchableType) -> None:
        for attribute in searchable.keyword_attributes:
            store.ensure_index(searchable.collection, attribute)
