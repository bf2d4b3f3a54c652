"""Behavior shared by every DocumentStore implementation."""

import pytest

from keyword_search.domain.model import Document
from keyword_search.exceptions import StoreExecutionError
from keyword_search.search.query import AllOf, AnyOf, KeywordClause, MatchEverything
from keyword_search.search.ranking import OverlapCountAggregation
from keyword_search.search.storage import DocumentStore, MemoryDocumentStore, require_document_id


COLLECTION = "articles"


@pytest.fixture
def seeded(store):
    """Store with three articles and ``_keywords`` indexed."""
    store.ensure_index(COLLECTION, "_keywords")
    store.save(COLLECTION, {"id": "1", "kind": "post", "_keywords": ["alpha", "beta"]})
    store.save(COLLECTION, {"id": "2", "kind": "page", "_keywords": ["beta", "gamma"]})
    store.save(COLLECTION, {"id": "3", "kind": "post", "_keywords": ["alpha", "beta", "gamma"]})
    return store


def _ids(records):
    return [record["id"] for record in records]


@pytest.mark.unit
class TestWrites:
    """save / update_fields / delete."""

    def test_implements_protocol(self, store):
        assert isinstance(store, DocumentStore)

    def test_save_and_get(self, store):
        store.save(COLLECTION, {"id": "a", "title": "Red Fox", "tags": [{"name": "x"}]})
        assert store.get(COLLECTION, "a") == {"id": "a", "title": "Red Fox", "tags": [{"name": "x"}]}

    def test_get_missing_returns_none(self, store):
        assert store.get(COLLECTION, "nope") is None

    def test_returned_records_are_copies(self, store):
        store.save(COLLECTION, {"id": "a", "tags": ["x"]})
        record = store.get(COLLECTION, "a")
        record["tags"].append("y")
        assert store.get(COLLECTION, "a")["tags"] == ["x"]

    def test_memory_store_copies_nested_documents(self):
        store = MemoryDocumentStore()
        author = Document("a1", name="Ada")
        store.save(COLLECTION, {"id": "1", "author": author})

        stored = store.get(COLLECTION, "1")["author"]
        assert stored == author
        assert stored is not author

    def test_save_replaces_without_moving_document(self, seeded):
        seeded.save(COLLECTION, {"id": "1", "kind": "draft", "_keywords": ["delta"]})
        assert _ids(seeded.find(COLLECTION)) == ["1", "2", "3"]
        assert seeded.get(COLLECTION, "1")["kind"] == "draft"

    def test_save_requires_id(self, store):
        with pytest.raises(StoreExecutionError):
            store.save(COLLECTION, {"title": "orphan"})

    def test_update_fields_only_touches_given_fields(self, seeded):
        seeded.update_fields(COLLECTION, "1", {"_keywords": ["delta"]})
        assert seeded.get(COLLECTION, "1") == {"id": "1", "kind": "post", "_keywords": ["delta"]}
        assert _ids(seeded.find(COLLECTION, AllOf((KeywordClause("_keywords", "delta"),)))) == ["1"]
        assert _ids(seeded.find(COLLECTION, AllOf((KeywordClause("_keywords", "alpha"),)))) == ["3"]

    def test_update_fields_on_missing_document_raises(self, store):
        with pytest.raises(StoreExecutionError):
            store.update_fields(COLLECTION, "missing", {"_keywords": []})

    def test_delete(self, seeded):
        assert seeded.delete(COLLECTION, "2") is True
        assert seeded.delete(COLLECTION, "2") is False
        assert _ids(seeded.find(COLLECTION, AnyOf((KeywordClause("_keywords", "gamma"),)))) == ["3"]

    def test_collections_are_isolated(self, seeded):
        assert seeded.find("other") == []
        assert seeded.get("other", "1") is None


@pytest.mark.unit
class TestReads:
    """find / iter_documents with predicates."""

    def test_find_everything_in_store_order(self, seeded):
        assert _ids(seeded.find(COLLECTION)) == ["1", "2", "3"]
        assert _ids(seeded.find(COLLECTION, MatchEverything())) == ["1", "2", "3"]

    def test_all_of_requires_every_clause(self, seeded):
        predicate = AllOf((KeywordClause("_keywords", "alpha"), KeywordClause("_keywords", "gamma")))
        assert _ids(seeded.find(COLLECTION, predicate)) == ["3"]

    def test_any_of_requires_one_clause(self, seeded):
        predicate = AnyOf((KeywordClause("_keywords", "alpha"), KeywordClause("_keywords", "gamma")))
        assert _ids(seeded.find(COLLECTION, predicate)) == ["1", "2", "3"]

    def test_empty_any_of_matches_nothing(self, seeded):
        assert seeded.find(COLLECTION, AnyOf(())) == []

    def test_unindexed_scalar_attribute(self, seeded):
        predicate = AllOf((KeywordClause("kind", "post"),))
        assert _ids(seeded.find(COLLECTION, predicate)) == ["1", "3"]

    def test_unindexed_list_attribute(self, seeded):
        seeded.save(COLLECTION, {"id": "4", "labels": ["hot", "new"]})
        predicate = AllOf((KeywordClause("labels", "new"),))
        assert _ids(seeded.find(COLLECTION, predicate)) == ["4"]

    def test_regex_clause(self, seeded):
        predicate = AllOf((KeywordClause("_keywords", "gam", pattern="^gam"),))
        assert _ids(seeded.find(COLLECTION, predicate)) == ["2", "3"]

    def test_regex_clause_on_unindexed_attribute(self, seeded):
        predicate = AllOf((KeywordClause("kind", "pa", pattern="^pa"),))
        assert _ids(seeded.find(COLLECTION, predicate)) == ["2"]

    def test_iter_documents(self, seeded):
        assert _ids(seeded.iter_documents(COLLECTION)) == ["1", "2", "3"]


@pytest.mark.unit
class TestAggregate:
    """Overlap-count aggregation."""

    def _aggregation(self, keywords, predicate=None):
        return OverlapCountAggregation(
            collection=COLLECTION,
            filter=predicate or MatchEverything(),
            attribute="_keywords",
            keywords=tuple(keywords),
        )

    def test_counts_overlap_per_document(self, seeded):
        rows = seeded.aggregate(self._aggregation(["alpha", "gamma"]))
        assert sorted((row.document_id, row.value) for row in rows) == [("1", 1), ("2", 1), ("3", 2)]

    def test_documents_without_overlap_are_skipped(self, seeded):
        rows = seeded.aggregate(self._aggregation(["delta"]))
        assert rows == []

    def test_no_keywords_yields_no_rows(self, seeded):
        assert seeded.aggregate(self._aggregation([])) == []

    def test_filter_restricts_candidates(self, seeded):
        predicate = AnyOf((KeywordClause("kind", "post"),))
        rows = seeded.aggregate(self._aggregation(["beta"], predicate))
        assert sorted(row.document_id for row in rows) == ["1", "3"]

    def test_repeated_stored_tokens_count_each_occurrence(self, store):
        store.ensure_index(COLLECTION, "_keywords")
        store.save(COLLECTION, {"id": "1", "_keywords": ["fox", "fox", "red"]})
        store.save(COLLECTION, {"id": "2", "_keywords": ["fox"]})

        rows = store.aggregate(self._aggregation(["fox", "red"]))

        assert sorted((row.document_id, row.value) for row in rows) == [("1", 3), ("2", 1)]

    def test_repeated_tokens_survive_keyword_updates(self, store):
        store.ensure_index(COLLECTION, "_keywords")
        store.save(COLLECTION, {"id": "1", "_keywords": ["fox"]})
        store.update_fields(COLLECTION, "1", {"_keywords": ["fox", "fox"]})

        (row,) = store.aggregate(self._aggregation(["fox"]))
        assert row.value == 2

    def test_scalar_string_value_counts_once(self, store):
        store.ensure_index(COLLECTION, "_keywords")
        store.save(COLLECTION, {"id": "1", "_keywords": "fox"})

        (row,) = store.aggregate(self._aggregation(["fox"]))
        assert row.value == 1

    def test_rows_carry_full_record(self, seeded):
        rows = seeded.aggregate(self._aggregation(["gamma"]))
        records = {row.document_id: row.record for row in rows}
        assert records["2"] == {"id": "2", "kind": "page", "_keywords": ["beta", "gamma"]}


@pytest.mark.unit
def test_require_document_id():
    assert require_document_id({"id": 5}) == "5"
    with pytest.raises(StoreExecutionError):
        require_document_id({"id": ""})
