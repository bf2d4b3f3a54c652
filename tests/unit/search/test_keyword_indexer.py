"""Unit tests for KeywordIndexer."""

from types import SimpleNamespace

import pytest

from keyword_search.domain.model import COMBINED_KEYWORDS_ATTRIBUTE, Document
from keyword_search.exceptions import ResolutionError
from keyword_search.registry import SearchableRegistry
from keyword_search.search.analyzers import KeywordNormalizer
from keyword_search.search.indexer import KeywordIndexer, extract_subkeys


@pytest.fixture
def indexer() -> KeywordIndexer:
    return KeywordIndexer()


@pytest.mark.unit
class TestComputeKeywords:
    """Keyword derivation from declared fields."""

    def test_plain_field_round_trip(self, indexer: KeywordIndexer):
        registry = SearchableRegistry()
        searchable = registry.declare_searchable("articles", "title")
        document = Document("1", title="Red Fox")

        indexer.reindex(document, searchable)

        assert document.read_attribute("title_keywords") == ["fox", "red"]
        assert document.read_attribute(COMBINED_KEYWORDS_ATTRIBUTE) == ["fox", "red"]

    def test_every_declared_field_gets_one_attribute(self, indexer: KeywordIndexer, registry: SearchableRegistry):
        searchable = registry.get("articles")
        keywords = indexer.compute_keywords(Document("1"), searchable)
        assert sorted(keywords) == sorted(
            ["title_keywords", "body_keywords", "author_keywords", "tags_keywords", COMBINED_KEYWORDS_ATTRIBUTE]
        )
        assert all(value == [] for value in keywords.values())

    def test_nested_mapping_and_list_of_mappings(self, indexer: KeywordIndexer, registry: SearchableRegistry):
        document = Document(
            "1",
            title="Hello",
            author={"name": "Ada Lovelace", "email": "ada@example.com"},
            tags=[{"name": "Math", "label": "Science"}, {"name": "History"}],
        )

        keywords = indexer.compute_keywords(document, registry.get("articles"))

        assert keywords["author_keywords"] == ["ada", "lovelace"]
        assert keywords["tags_keywords"] == ["history", "math", "science"]
        assert keywords[COMBINED_KEYWORDS_ATTRIBUTE] == ["ada", "hello", "history", "lovelace", "math", "science"]

    def test_nested_objects_use_attribute_access(self, indexer: KeywordIndexer, registry: SearchableRegistry):
        document = Document("1", author=SimpleNamespace(name="Grace Hopper"))
        keywords = indexer.compute_keywords(document, registry.get("articles"))
        assert keywords["author_keywords"] == ["grace", "hopper"]

    def test_list_field_is_flattened(self, indexer: KeywordIndexer):
        searchable = SearchableRegistry().declare_searchable("posts", "labels")
        keywords = indexer.compute_keywords(Document("1", labels=["Beta", "alpha", "beta"]), searchable)
        assert keywords["labels_keywords"] == ["alpha", "beta"]

    def test_source_fields_are_not_modified(self, indexer: KeywordIndexer, registry: SearchableRegistry):
        document = Document("1", title="Red Fox", tags=[{"name": "Wild"}])
        indexer.reindex(document, registry.get("articles"))
        assert document.title == "Red Fox"
        assert document.tags == [{"name": "Wild"}]

    def test_reindex_is_idempotent(self, indexer: KeywordIndexer, registry: SearchableRegistry):
        document = Document("1", title="The Red Fox", body="jumps over the fox")
        first = indexer.reindex(document, registry.get("articles"))
        second = indexer.reindex(document, registry.get("articles"))
        assert first == second

    def test_keyword_lists_are_sorted_and_unique(self, indexer: KeywordIndexer, registry: SearchableRegistry):
        document = Document("1", title="b a b", body="c a", tags=[{"name": "c"}, {"name": "b"}])
        for values in indexer.compute_keywords(document, registry.get("articles")).values():
            assert values == sorted(set(values))

    def test_uses_supplied_normalizer(self, registry: SearchableRegistry):
        indexer = KeywordIndexer(KeywordNormalizer(minimum_word_size=3))
        keywords = indexer.compute_keywords(Document("1", title="an ox and a fox"), registry.get("articles"))
        assert keywords["title_keywords"] == ["and", "fox"]


@pytest.mark.unit
class TestResolution:
    """Associations and fail-soft behavior."""

    def test_resolver_loads_associated_record(self, indexer: KeywordIndexer):
        people = {"u1": {"name": "Alan Turing"}}
        searchable = SearchableRegistry().declare_searchable(
            "papers", "title", {"author": "name"}, resolvers={"author": people.__getitem__}
        )
        keywords = indexer.compute_keywords(Document("1", title="Computing", author="u1"), searchable)
        assert keywords["author_keywords"] == ["alan", "turing"]

    def test_failing_resolver_yields_empty_list(self, indexer: KeywordIndexer, caplog):
        searchable = SearchableRegistry().declare_searchable(
            "papers", "title", {"author": "name"}, resolvers={"author": {}.__getitem__}
        )
        document = Document("1", title="Computing Machinery", author="missing")

        keywords = indexer.compute_keywords(document, searchable)

        assert keywords["author_keywords"] == []
        assert keywords["title_keywords"] == ["computing", "machinery"]
        assert "Could not resolve papers.author" in caplog.text

    def test_unresolved_reference_without_resolver_is_empty(self, indexer: KeywordIndexer, registry):
        keywords = indexer.compute_keywords(Document("1", author="u1"), registry.get("articles"))
        assert keywords["author_keywords"] == []

    def test_missing_subkey_on_object_is_empty(self, indexer: KeywordIndexer, registry):
        keywords = indexer.compute_keywords(Document("1", author=object()), registry.get("articles"))
        assert keywords["author_keywords"] == []

    def test_missing_subkey_on_mapping_is_ignored(self, indexer: KeywordIndexer, registry):
        document = Document("1", tags=[{"label": "Kept"}, {"other": "Dropped"}])
        keywords = indexer.compute_keywords(document, registry.get("articles"))
        assert keywords["tags_keywords"] == ["kept"]

    def test_extract_subkeys_from_document(self):
        assert extract_subkeys(Document("p", name="Ada"), ["name", "email"]) == ["Ada", None]

    def test_extract_subkeys_raises_for_unknown_attribute(self):
        with pytest.raises(ResolutionError):
            extract_subkeys(object(), ["name"])
