"""Unit tests for Document, FieldDescriptor, and SearchableType."""

import copy
import pickle

import pytest

from keyword_search.domain.model import (
    COMBINED_KEYWORDS_ATTRIBUTE,
    Document,
    FieldDescriptor,
    SearchableType,
    keyword_attribute_name,
)
from keyword_search.exceptions import ConfigurationError


@pytest.mark.unit
class TestDocument:
    """Document entity."""

    def test_attribute_access(self):
        document = Document("1", title="Red Fox")
        assert document.id == "1"
        assert document.title == "Red Fox"
        assert document["title"] == "Red Fox"
        assert document.read_attribute("missing") is None

    def test_generates_id_when_missing(self):
        first, second = Document(), Document()
        assert first.id and second.id
        assert first.id != second.id

    def test_id_is_stringified(self):
        assert Document(42).id == "42"

    def test_setattr_writes_attributes(self):
        document = Document("1")
        document.title = "Hello"
        document.write_attribute("_keywords", ["hello"])
        assert document.attributes == {"title": "Hello", "_keywords": ["hello"]}
        assert document.read_attribute(COMBINED_KEYWORDS_ATTRIBUTE) == ["hello"]

    def test_missing_attribute_raises(self):
        with pytest.raises(AttributeError):
            _ = Document("1").title

    def test_underscore_attributes_are_not_proxied(self):
        document = Document("1", _keywords=["x"])
        with pytest.raises(AttributeError):
            _ = document._keywords
        assert document.read_attribute("_keywords") == ["x"]

    def test_new_record_lifecycle(self):
        document = Document("1")
        assert document.new_record is True
        document.mark_persisted()
        assert document.new_record is False

    def test_from_record(self):
        document = Document.from_record({"id": "7", "title": "x"}, relevance=3)
        assert document.id == "7"
        assert document.new_record is False
        assert document.relevance == 3
        assert document.to_record() == {"id": "7", "title": "x"}

    def test_relevance_is_not_persisted(self):
        document = Document("1", title="x")
        document.relevance = 5
        assert "relevance" not in document.to_record()

    def test_mapping_protocol(self):
        document = Document("1", title="x")
        assert list(document) == ["id", "title"]
        assert "title" in document
        assert "id" in document
        assert "body" not in document

    def test_equality_and_hash(self):
        assert Document("1", a=1) == Document("1", a=1)
        assert Document("1", a=1) != Document("1", a=2)
        assert len({Document("1"), Document("1")}) == 1

    def test_deepcopy_is_independent(self):
        document = Document.from_record({"id": "1", "tags": ["a"]}, relevance=2)
        clone = copy.deepcopy(document)

        clone.tags.append("b")
        assert clone == Document("1", tags=["a", "b"])
        assert document.tags == ["a"]
        assert clone.relevance == 2
        assert clone.new_record is False

    def test_shallow_copy_keeps_its_own_attributes(self):
        document = Document("1", title="x")
        clone = copy.copy(document)
        clone.title = "y"
        assert document.title == "x"

    def test_pickle_round_trip(self):
        document = Document("1", title="Red Fox", _keywords=["fox", "red"])
        restored = pickle.loads(pickle.dumps(document))

        assert restored == document
        assert restored.read_attribute("_keywords") == ["fox", "red"]
        assert restored.new_record is True
        assert restored.relevance is None


@pytest.mark.unit
class TestFieldDescriptor:
    """Declaration parsing."""

    def test_plain_name(self):
        assert FieldDescriptor.parse("title") == [FieldDescriptor(name="title")]

    def test_single_subkey(self):
        (descriptor,) = FieldDescriptor.parse({"author": "name"})
        assert descriptor.subkeys == ("name",)
        assert descriptor.is_nested
        assert descriptor.keyword_attribute == "author_keywords"

    def test_subkey_list_and_several_fields(self):
        descriptors = FieldDescriptor.parse({"tags": ["name", "label"], "author": "name"})
        assert [(d.name, d.subkeys) for d in descriptors] == [("tags", ("name", "label")), ("author", ("name",))]

    def test_descriptor_passthrough(self):
        descriptor = FieldDescriptor(name="title")
        assert FieldDescriptor.parse(descriptor) == [descriptor]

    @pytest.mark.parametrize("raw", [42, None, ["title"], {}, "", "   ", {"tags": []}, {"tags": 3}, {"": "name"}])
    def test_invalid_declarations(self, raw):
        with pytest.raises(ConfigurationError):
            FieldDescriptor.parse(raw)

    def test_keyword_attribute_name(self):
        assert keyword_attribute_name("title") == "title_keywords"


@pytest.mark.unit
class TestSearchableType:
    """Per-collection declaration."""

    @pytest.fixture
    def searchable(self) -> SearchableType:
        fields = (FieldDescriptor(name="title"), FieldDescriptor(name="author", subkeys=("name",)))
        return SearchableType(collection="articles", fields=fields)

    def test_keyword_attributes(self, searchable: SearchableType):
        assert searchable.keyword_attributes == ["title_keywords", "author_keywords", "_keywords"]

    def test_keyword_attribute_for_scope(self, searchable: SearchableType):
        assert searchable.keyword_attribute_for(None) == "_keywords"
        assert searchable.keyword_attribute_for("author") == "author_keywords"

    def test_unknown_scope_raises(self, searchable: SearchableType):
        with pytest.raises(ConfigurationError, match="no search field 'body'"):
            searchable.keyword_attribute_for("body")
