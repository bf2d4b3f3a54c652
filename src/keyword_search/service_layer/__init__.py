"""Service layer - search orchestration on top of a document store."""

from keyword_search.service_layer.search_service import SearchService


__all__ = ["SearchService"]
