"""Search service - orchestrates searches, saves, and reindexing.

One ``search`` call walks through:

    RECEIVED -> OPTION-RESOLVED -> (EMPTY-SHORTCUT | FILTERED | RANKED) -> RETURNED

Options resolve per key (call value, else settings default). Blank queries
short-circuit; otherwise the query is normalized with the same normalizer the
indexer uses and either filtered directly or ranked by keyword overlap.
Store failures propagate as ``StoreExecutionError``; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from keyword_search.config import Settings
from keyword_search.domain.model import Document, SearchableType
from keyword_search.domain.search import (
    MatchMode,
    ReindexOutcome,
    ReindexReport,
    ResolvedSearchOptions,
    SearchOptions,
)
from keyword_search.exceptions import ConfigurationError, StoreExecutionError
from keyword_search.observability.metrics import (
    REINDEX_COUNT,
    SEARCH_COUNT,
    SEARCH_ERRORS,
    SEARCH_LATENCY,
    track_latency,
)
from keyword_search.observability.tracing import create_span
from keyword_search.registry import SearchableRegistry
from keyword_search.search.analyzers import KeywordNormalizer
from keyword_search.search.indexer import KeywordIndexer
from keyword_search.search.query import QueryBuilder
from keyword_search.search.ranking import OverlapCountAggregation, RelevanceRanker
from keyword_search.search.storage import DocumentStore


logger = logging.getLogger(__name__)


class SearchService:
    """Keyword search over the collections declared in a registry."""

    def __init__(
        self,
        store: DocumentStore,
        registry: SearchableRegistry,
        settings: Settings | None = None,
        *,
        normalizer: KeywordNormalizer | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.settings = settings or Settings()
        self.normalizer = normalizer or KeywordNormalizer.from_settings(self.settings)
        self.indexer = KeywordIndexer(self.normalizer)
        self.query_builder = QueryBuilder()
        self.ranker = RelevanceRanker(store)
        registry.attach(store)

    # Options

    def resolve_options(
        self,
        searchable: SearchableType,
        options: SearchOptions | None = None,
        **overrides: Any,
    ) -> ResolvedSearchOptions:
        """Merge call options with settings defaults, key by key."""
        if overrides:
            base = options.model_dump(exclude_unset=True) if options else {}
            try:
                options = SearchOptions(**{**base, **overrides})
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid search options {sorted(overrides)}: {exc}") from exc
        options = options or SearchOptions()

        resolved = ResolvedSearchOptions(
            match=options.match if options.match is not None else MatchMode(self.settings.match),
            allow_empty_search=(
                options.allow_empty_search
                if options.allow_empty_search is not None
                else self.settings.allow_empty_search
            ),
            relevant_search=(
                options.relevant_search if options.relevant_search is not None else self.settings.relevant_search
            ),
            field_scope=options.field_scope or None,
            regex_search=self.settings.regex_search,
            regex_template=self.settings.regex_template,
        )
        # Fails fast on an undeclared scope
        searchable.keyword_attribute_for(resolved.field_scope)
        return resolved

    # Search

    def search(
        self,
        collection: str,
        query: str | None,
        options: SearchOptions | None = None,
        **overrides: Any,
    ) -> list[Document]:
        """Search ``collection`` for ``query``.

        Keyword overrides (``match``, ``allow_empty_search``, ``relevant_search``,
        ``field_scope``) take precedence over ``options``.

        Returns:
            Matching documents. Ranked searches return them ordered by
            ``relevance`` descending.

        Raises:
            ConfigurationError: unknown collection, field scope, or search option.
            StoreExecutionError: the store failed to execute the read.
        """
        searchable = self.registry.get(collection)
        resolved = self.resolve_options(searchable, options, **overrides)
        keywords = self.normalizer.normalize(query.strip()) if isinstance(query, str) else []

        with (
            create_span(
                "keyword_search.search",
                collection=collection,
                attributes={
                    "search.match": resolved.match.value,
                    "search.relevant": resolved.relevant_search,
                    "search.keywords": len(keywords),
                },
            ),
            track_latency(SEARCH_LATENCY, collection=collection),
        ):
            try:
                if not keywords:
                    path = "empty"
                    results = self._search_empty(searchable, resolved)
                elif resolved.relevant_search:
                    path = "ranked"
                    results = self._search_relevant(searchable, keywords, resolved)
                else:
                    path = "filtered"
                    results = self._search_without_relevance(searchable, keywords, resolved)
            except StoreExecutionError:
                SEARCH_ERRORS.labels(collection=collection).inc()
                logger.exception("Search on %s failed", collection)
                raise

        SEARCH_COUNT.labels(collection=collection, path=path).inc()
        logger.debug(
            "Search on %s (%s, match=%s) returned %d documents",
            collection,
            path,
            resolved.match.value,
            len(results),
        )
        return results

    # Kept for callers using the historical names
    full_text_search = search
    csearch = search

    def _search_empty(self, searchable: SearchableType, options: ResolvedSearchOptions) -> list[Document]:
        if not options.allow_empty_search:
            return []
        return [Document.from_record(record) for record in self.store.find(searchable.collection)]

    def _search_without_relevance(
        self,
        searchable: SearchableType,
        keywords: list[str],
        options: ResolvedSearchOptions,
    ) -> list[Document]:
        attribute = searchable.keyword_attribute_for(options.field_scope)
        predicate = self.query_builder.build_filter(keywords, options, attribute=attribute)
        return [Document.from_record(record) for record in self.store.find(searchable.collection, predicate)]

    def _search_relevant(
        self,
        searchable: SearchableType,
        keywords: list[str],
        options: ResolvedSearchOptions,
    ) -> list[Document]:
        attribute = searchable.keyword_attribute_for(options.field_scope)
        prefilter = self.query_builder.build_filter(
            keywords,
            options.model_copy(update={"match": MatchMode.ANY}),
            attribute=attribute,
        )
        aggregation = OverlapCountAggregation(
            collection=searchable.collection,
            filter=prefilter,
            attribute=attribute,
            keywords=tuple(keywords),
        )
        rows = self.ranker.rank(aggregation)
        return [Document.from_record(row.record, relevance=row.value) for row in rows]

    # Persistence

    def save(self, collection: str, document: Document) -> Document:
        """Reindex ``document`` and persist it (the pre-persist hook).

        Resolution failures only empty the affected keyword attribute; the
        write still happens.
        """
        searchable = self.registry.get(collection)
        self.indexer.reindex(document, searchable)
        self.store.save(collection, document.to_record())
        document.mark_persisted()
        return document

    def delete(self, collection: str, document_id: str) -> bool:
        self.registry.get(collection)
        return self.store.delete(collection, document_id)

    def get(self, collection: str, document_id: str) -> Document | None:
        self.registry.get(collection)
        record = self.store.get(collection, document_id)
        return Document.from_record(record) if record is not None else None

    def reindex(self, collection: str, document: Document) -> dict[str, list[str]]:
        """Recompute ``document``'s keyword attributes and persist only those."""
        searchable = self.registry.get(collection)
        keywords = self.indexer.reindex(document, searchable)
        if document.new_record:
            self.store.save(collection, document.to_record())
            document.mark_persisted()
        else:
            self.store.update_fields(collection, document.id, keywords)
        return keywords

    def reindex_all(self, collection: str | None = None) -> list[ReindexReport]:
        """Reindex every document of ``collection``, or of every registered collection.

        Per-document failures, and a collection that cannot be scanned, are logged
        and reported; they never abort the batch.
        """
        targets = [self.registry.get(collection)] if collection is not None else list(self.registry)
        return [self._reindex_collection(searchable) for searchable in targets]

    def _reindex_collection(self, searchable: SearchableType) -> ReindexReport:
        report = ReindexReport(collection=searchable.collection)
        with create_span("keyword_search.reindex_all", collection=searchable.collection) as span:
            try:
                for record in self.store.iter_documents(searchable.collection):
                    report.record(self._reindex_record(searchable, record))
            except Exception as exc:
                logger.warning("Failed to scan %s for reindexing: %s", searchable.collection, exc)
                span.record_exception(exc)
                report.error = str(exc)
        logger.info(
            "Reindexed %s: %d succeeded, %d failed",
            searchable.collection,
            report.succeeded,
            report.failed,
        )
        return report

    def _reindex_record(self, searchable: SearchableType, record: dict[str, Any]) -> ReindexOutcome:
        document = Document.from_record(record)
        try:
            self.reindex(searchable.collection, document)
        except Exception as exc:
            logger.warning(
                "Failed to reindex %s document %s: %s",
                searchable.collection,
                document.id,
                exc,
            )
            REINDEX_COUNT.labels(collection=searchable.collection, status="failed").inc()
            return ReindexOutcome(
                collection=searchable.collection,
                document_id=document.id,
                succeeded=False,
                error=str(exc),
            )
        REINDEX_COUNT.labels(collection=searchable.collection, status="succeeded").inc()
        return ReindexOutcome(collection=searchable.collection, document_id=document.id, succeeded=True)
