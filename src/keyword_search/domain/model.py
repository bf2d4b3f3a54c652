"""Domain model - searchable documents and their declarations.

Following Cosmic Python principles:
- Domain model has NO dependencies on infrastructure
- Entities have identity and can change over time
- Value Objects are immutable and defined by their attributes

``Document`` is the entity every store persists. ``FieldDescriptor`` and
``SearchableType`` are the static declaration of which fields feed the keyword
attributes of a collection.
"""

from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any
from uuid import uuid4

from pydantic import ConfigDict, Field
from pydantic.dataclasses import dataclass

from keyword_search.exceptions import ConfigurationError


KEYWORDS_SUFFIX = "_keywords"
COMBINED_KEYWORDS_ATTRIBUTE = "_keywords"


def keyword_attribute_name(field_name: str) -> str:
    """Return the keyword attribute derived from a source field name."""
    return f"{field_name}{KEYWORDS_SUFFIX}"


# Entities (have identity, mutable)
class Document:
    """A schemaless document with identity.

    Attributes are read and written by name, either through attribute access
    (``doc.title``) or through ``read_attribute``/``write_attribute``.
    ``relevance`` is only populated by ranked searches and is never persisted.
    """

    __slots__ = ("_attributes", "_new_record", "id", "relevance")

    def __init__(self, id: str | None = None, **attributes: Any) -> None:  # noqa: A002
        object.__setattr__(self, "id", str(id) if id is not None else uuid4().hex)
        object.__setattr__(self, "_attributes", dict(attributes))
        object.__setattr__(self, "relevance", None)
        object.__setattr__(self, "_new_record", True)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], *, relevance: int | None = None) -> "Document":
        """Rebuild a persisted document from a stored record."""
        data = dict(record)
        document = cls(data.pop("id", None), **data)
        object.__setattr__(document, "_new_record", False)
        object.__setattr__(document, "relevance", relevance)
        return document

    @property
    def new_record(self) -> bool:
        """True until the document has been saved to or loaded from a store."""
        return self._new_record

    def mark_persisted(self) -> None:
        object.__setattr__(self, "_new_record", False)

    @property
    def attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    def read_attribute(self, name: str) -> Any:
        if name == "id":
            return self.id
        return self._attributes.get(name)

    def write_attribute(self, name: str, value: Any) -> None:
        if name == "id":
            object.__setattr__(self, "id", str(value))
            return
        self._attributes[name] = value

    def to_record(self) -> dict[str, Any]:
        """Serialize to a plain mapping suitable for a document store."""
        return {"id": self.id, **self._attributes}

    def __getattr__(self, name: str) -> Any:
        # Underscore names are slots or dunders; keyword attributes such as
        # ``_keywords`` are reachable through read_attribute.
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._attributes[name]
        except KeyError:
            raise AttributeError(f"{type(self).__name__!s} has no attribute {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("id", "relevance"):
            object.__setattr__(self, name, str(value) if name == "id" else value)
            return
        if name in ("_attributes", "_new_record"):
            object.__setattr__(self, name, value)
            return
        self._attributes[name] = value

    def __getstate__(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "attributes": self._attributes,
            "relevance": self.relevance,
            "new_record": self._new_record,
        }

    def __setstate__(self, state: Mapping[str, Any]) -> None:
        object.__setattr__(self, "id", state["id"])
        object.__setattr__(self, "_attributes", dict(state["attributes"]))
        object.__setattr__(self, "relevance", state.get("relevance"))
        object.__setattr__(self, "_new_record", state.get("new_record", True))

    def __getitem__(self, name: str) -> Any:
        if name == "id":
            return self.id
        return self._attributes[name]

    def __contains__(self, name: object) -> bool:
        return name == "id" or name in self._attributes

    def __iter__(self) -> Iterator[str]:
        yield "id"
        yield from self._attributes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self.id == other.id and self._attributes == other._attributes

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        extra = f", relevance={self.relevance}" if self.relevance is not None else ""
        return f"Document(id={self.id!r}{extra}, attributes={self._attributes!r})"


# Value Objects (immutable)
@dataclass(frozen=True)
class FieldDescriptor:
    """A declared source field.

    ``subkeys`` is empty for a plain field (``"title"``). For a field with
    sub-keys (``{"author": "name"}``) it names the nested or associated values
    whose text feeds the keyword attribute.
    """

    name: str = Field(min_length=1)
    subkeys: tuple[str, ...] = ()

    @property
    def is_nested(self) -> bool:
        return bool(self.subkeys)

    @property
    def keyword_attribute(self) -> str:
        return keyword_attribute_name(self.name)

    @classmethod
    def parse(cls, raw: Any) -> list["FieldDescriptor"]:
        """Turn one declaration argument into descriptors.

        Accepts a field name, a mapping of field name to sub-key (or a list of
        sub-keys), or an existing descriptor. Anything else is a configuration
        error.
        """
        if isinstance(raw, FieldDescriptor):
            return [raw]
        if isinstance(raw, str):
            return [cls(name=_checked_name(raw))]
        if isinstance(raw, Mapping):
            if not raw:
                raise ConfigurationError("Field mapping must name at least one field")
            return [cls(name=_checked_name(name), subkeys=_checked_subkeys(name, sub)) for name, sub in raw.items()]
        raise ConfigurationError(f"Unsupported search field declaration: {raw!r}")


def _checked_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"Search field names must be non-empty strings, got {name!r}")
    return name.strip()


def _checked_subkeys(name: str, subkeys: Any) -> tuple[str, ...]:
    if isinstance(subkeys, str):
        subkeys = [subkeys]
    if not isinstance(subkeys, Sequence) or not subkeys:
        raise ConfigurationError(f"Field {name!r} must map to a sub-key or a list of sub-keys, got {subkeys!r}")
    return tuple(_checked_name(subkey) for subkey in subkeys)


Resolver = Callable[[Any], Any]


@dataclass(frozen=True, config=ConfigDict(arbitrary_types_allowed=True))
class SearchableType:
    """Static descriptor list for one searchable collection."""

    collection: str = Field(min_length=1)
    fields: tuple[FieldDescriptor, ...] = ()
    resolvers: dict[str, Resolver] = Field(default_factory=dict)

    @property
    def keyword_attributes(self) -> list[str]:
        """Keyword attributes in declaration order, followed by the combined attribute."""
        return [descriptor.keyword_attribute for descriptor in self.fields] + [COMBINED_KEYWORDS_ATTRIBUTE]

    def field_names(self) -> list[str]:
        return [descriptor.name for descriptor in self.fields]

    def get_field(self, name: str) -> FieldDescriptor | None:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        return None

    def keyword_attribute_for(self, field_scope: str | None) -> str:
        """Return the attribute a search scoped to ``field_scope`` reads."""
        if not field_scope:
            return COMBINED_KEYWORDS_ATTRIBUTE
        descriptor = self.get_field(field_scope)
        if descriptor is None:
            raise ConfigurationError(
                f"Collection {self.collection!r} has no search field {field_scope!r}. "
                f"Declared: {self.field_names()}"
            )
        return descriptor.keyword_attribute
