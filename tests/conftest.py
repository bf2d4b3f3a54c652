"""Shared test fixtures and configuration."""

import os

import pytest

from keyword_search.config import Settings
from keyword_search.domain.model import Document
from keyword_search.registry import SearchableRegistry
from keyword_search.search.sqlite_storage import SqliteDocumentStore
from keyword_search.search.storage import MemoryDocumentStore
from keyword_search.service_layer.search_service import SearchService


# Complete test environment that pins every search default
TEST_ENV = {
    "KEYWORD_SEARCH_MATCH": "all",
    "KEYWORD_SEARCH_ALLOW_EMPTY_SEARCH": "false",
    "KEYWORD_SEARCH_RELEVANT_SEARCH": "false",
    "KEYWORD_SEARCH_REGEX_SEARCH": "false",
    "KEYWORD_SEARCH_REGEX_TEMPLATE": "^{token}",
    "KEYWORD_SEARCH_MINIMUM_WORD_SIZE": "1",
    "KEYWORD_SEARCH_IGNORE_LIST": "",
    "KEYWORD_SEARCH_STRIP_ACCENTS": "false",
    "KEYWORD_SEARCH_DATABASE_PATH": "keyword_search_test.db",
    "KEYWORD_SEARCH_LOG_LEVEL": "info",
    "KEYWORD_SEARCH_LOG_JSON": "true",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset search environment variables before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def registry() -> SearchableRegistry:
    """Registry with an ``articles`` collection searchable by title, body, author name, and tags."""
    registry = SearchableRegistry()
    registry.declare_searchable("articles", "title", "body", {"author": "name"}, {"tags": ["name", "label"]})
    return registry


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteDocumentStore(tmp_path / "documents.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Every document store implementation."""
    if request.param == "memory":
        yield MemoryDocumentStore()
        return
    sqlite = SqliteDocumentStore(tmp_path / "documents.db")
    yield sqlite
    sqlite.close()


@pytest.fixture
def service(store, registry, settings) -> SearchService:
    return SearchService(store, registry, settings)


@pytest.fixture
def make_document():
    """Build documents with stable ids."""

    def _make(document_id: str, **attributes) -> Document:
        return Document(document_id, **attributes)

    return _make
