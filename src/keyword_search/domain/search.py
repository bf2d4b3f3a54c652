"""Domain models for search and reindex operations.

Value objects are immutable (frozen=True) so resolved options and reports
cannot drift after they are handed back to callers.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MatchMode(str, Enum):
    """How per-token clauses are combined."""

    ALL = "all"
    ANY = "any"


class SearchOptions(BaseModel):
    """Per-call search options. Unset options fall back to process defaults."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    match: MatchMode | None = None
    allow_empty_search: bool | None = None
    relevant_search: bool | None = None
    field_scope: str | None = None

    @field_validator("match", mode="before")
    @classmethod
    def _lowercase_match(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ResolvedSearchOptions(BaseModel):
    """Options after merging call values with process defaults."""

    model_config = ConfigDict(frozen=True)

    match: MatchMode = MatchMode.ALL
    allow_empty_search: bool = False
    relevant_search: bool = False
    field_scope: str | None = None
    regex_search: bool = False
    regex_template: str = "^{token}"


class ReindexOutcome(BaseModel):
    """Result of reindexing one document."""

    model_config = ConfigDict(frozen=True)

    collection: str
    document_id: str
    succeeded: bool
    error: str | None = None


class ReindexReport(BaseModel):
    """Per-collection summary of a bulk reindex.

    ``error`` is set when the collection could not be scanned to the end; the
    outcomes recorded before the failure are kept.
    """

    collection: str
    outcomes: list[ReindexOutcome] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)

    @property
    def failures(self) -> list[ReindexOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def record(self, outcome: ReindexOutcome) -> None:
        self.outcomes.append(outcome)
