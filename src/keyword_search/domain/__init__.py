"""Domain layer - documents, declarations, and search value objects."""

from keyword_search.domain.model import (
    COMBINED_KEYWORDS_ATTRIBUTE,
    Document,
    FieldDescriptor,
    SearchableType,
    keyword_attribute_name,
)
from keyword_search.domain.search import (
    MatchMode,
    ReindexOutcome,
    ReindexReport,
    ResolvedSearchOptions,
    SearchOptions,
)


__all__ = [
    "COMBINED_KEYWORDS_ATTRIBUTE",
    "Document",
    "FieldDescriptor",
    "MatchMode",
    "ReindexOutcome",
    "ReindexReport",
    "ResolvedSearchOptions",
    "SearchOptions",
    "SearchableType",
    "keyword_attribute_name",
]
