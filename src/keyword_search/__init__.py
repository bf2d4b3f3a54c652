"""Keyword-based full-text search for documents kept in a document store.

Typical wiring::

    registry = SearchableRegistry()
    registry.declare_searchable("articles", "title", {"tags": ["name"]})
    service = SearchService(SqliteDocumentStore("articles.db"), registry)
    service.save("articles", Document(title="Red Fox"))
    service.search("articles", "fox", relevant_search=True)
"""

from keyword_search.config import Settings
from keyword_search.domain.model import COMBINED_KEYWORDS_ATTRIBUTE, Document, FieldDescriptor, SearchableType
from keyword_search.domain.search import MatchMode, ReindexOutcome, ReindexReport, SearchOptions
from keyword_search.exceptions import (
    ConfigurationError,
    KeywordSearchError,
    ResolutionError,
    StoreExecutionError,
)
from keyword_search.registry import SearchableRegistry
from keyword_search.search.analyzers import KeywordNormalizer, normalize
from keyword_search.search.sqlite_storage import SqliteDocumentStore
from keyword_search.search.storage import DocumentStore, MemoryDocumentStore
from keyword_search.service_layer.search_service import SearchService


__all__ = [
    "COMBINED_KEYWORDS_ATTRIBUTE",
    "ConfigurationError",
    "Document",
    "DocumentStore",
    "FieldDescriptor",
    "KeywordNormalizer",
    "KeywordSearchError",
    "MatchMode",
    "MemoryDocumentStore",
    "ReindexOutcome",
    "ReindexReport",
    "ResolutionError",
    "SearchOptions",
    "SearchService",
    "SearchableRegistry",
    "SearchableType",
    "Settings",
    "SqliteDocumentStore",
    "StoreExecutionError",
    "normalize",
]
