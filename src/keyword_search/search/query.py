"""Predicate tree and builder for keyword filters.

Predicates are immutable value objects. Stores either evaluate them in
process through ``matches`` or compile them into their own query language
(see ``SqliteDocumentStore``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import cached_property
import re
from typing import Any

from keyword_search.domain.search import MatchMode, ResolvedSearchOptions


class Predicate:
    """Base class for filter predicates."""

    def matches(self, record: Mapping[str, Any]) -> bool:  # pragma: no cover - interface definition
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class MatchEverything(Predicate):
    """Predicate used for unfiltered reads."""

    def matches(self, record: Mapping[str, Any]) -> bool:
        return True


@dataclass(frozen=True)
class KeywordClause(Predicate):
    """``attribute`` contains ``token`` (or a value matching ``pattern``)."""

    attribute: str
    token: str
    pattern: str | None = None

    @property
    def is_regex(self) -> bool:
        return self.pattern is not None

    @cached_property
    def compiled(self) -> re.Pattern[str] | None:
        return re.compile(self.pattern) if self.pattern is not None else None

    def matches(self, record: Mapping[str, Any]) -> bool:
        values = record.get(self.attribute)
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, Iterable):
            return False
        if self.compiled is None:
            return any(value == self.token for value in values)
        return any(isinstance(value, str) and self.compiled.search(value) for value in values)


@dataclass(frozen=True, slots=True)
class AllOf(Predicate):
    """Conjunction; an empty conjunction matches everything."""

    clauses: tuple[Predicate, ...] = ()

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(clause.matches(record) for clause in self.clauses)


@dataclass(frozen=True, slots=True)
class AnyOf(Predicate):
    """Disjunction; an empty disjunction matches nothing."""

    clauses: tuple[Predicate, ...] = ()

    def matches(self, record: Mapping[str, Any]) -> bool:
        return any(clause.matches(record) for clause in self.clauses)


def keyword_pattern(token: str, template: str) -> str:
    """Build the case-sensitive pattern used for ``token`` in regex mode."""
    return template.replace("{token}", re.escape(token))


class QueryBuilder:
    """Translates normalized keywords plus options into a predicate."""

    def clause(self, attribute: str, token: str, options: ResolvedSearchOptions) -> KeywordClause:
        if options.regex_search:
            return KeywordClause(attribute, token, keyword_pattern(token, options.regex_template))
        return KeywordClause(attribute, token)

    def build_filter(
        self,
        keywords: Sequence[str],
        options: ResolvedSearchOptions,
        *,
        attribute: str,
    ) -> AllOf | AnyOf:
        """Build one clause per keyword against ``attribute`` and combine them per ``options.match``."""
        clauses = tuple(self.clause(attribute, keyword, options) for keyword in keywords)
        if options.match is MatchMode.ANY:
            return AnyOf(clauses)
        return AllOf(clauses)
