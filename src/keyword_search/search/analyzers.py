"""Analyzer utilities that turn free text into keyword lists.

The analyzers follow a composable tokenizer/filter design: a tokenizer splits
text into a stream of terms and each filter transforms that stream.
``KeywordNormalizer`` wires the chain used for both sides of a search, so
stored keyword attributes and query tokens are always comparable.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence, Set
import re
from typing import Any, Protocol
import unicodedata


class Tokenizer(Protocol):
    def __call__(self, text: str) -> Iterator[str]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    def __call__(self, terms: Iterable[str]) -> Iterator[str]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Yields the runs of ``pattern`` in the input.

    The default pattern treats every non-alphanumeric character, underscore
    included, as a boundary.
    """

    def __init__(self, pattern: str = r"[^\W_]+") -> None:
        self.pattern = re.compile(pattern, re.UNICODE)

    def __call__(self, text: str) -> Iterator[str]:
        return (match.group(0) for match in self.pattern.finditer(text))


class MinimumSizeFilter:
    """Drops terms shorter than ``minimum`` characters."""

    def __init__(self, minimum: int = 1) -> None:
        self.minimum = max(1, minimum)

    def __call__(self, terms: Iterable[str]) -> Iterator[str]:
        return (term for term in terms if len(term) >= self.minimum)


class StopFilter:
    """Removes ignored words (compared lowercased)."""

    def __init__(self, stopwords: Iterable[str] | None = None) -> None:
        self.stopwords = frozenset(word.lower() for word in stopwords or ())

    def __call__(self, terms: Iterable[str]) -> Iterator[str]:
        return (term for term in terms if term not in self.stopwords)


def fold_accents(text: str) -> str:
    """Decompose characters and drop combining marks ("café" -> "cafe")."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


class AnalyzerChain:
    """A tokenizer followed by filters, applied in order."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] = ()) -> None:
        self.tokenizer = tokenizer
        self.filters = tuple(filters)

    def __call__(self, text: str) -> list[str]:
        terms: Iterable[str] = self.tokenizer(text)
        for term_filter in self.filters:
            terms = term_filter(terms)
        return list(terms)


def flatten_text(value: Any) -> list[str]:
    """Collect the textual leaves of a possibly nested value.

    Strings are kept as-is, numbers are stringified, mappings contribute their
    values, and other iterables are walked. ``None`` and booleans contribute
    nothing.
    """
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, bytes):
        return [value.decode("utf-8", errors="replace")]
    if isinstance(value, (int, float)):
        return [str(value)]
    if isinstance(value, Mapping):
        return [text for item in value.values() for text in flatten_text(item)]
    if isinstance(value, (Sequence, Set, Iterator)):
        return [text for item in value for text in flatten_text(item)]
    return [str(value)]


class KeywordNormalizer:
    """Turns text or nested values into a sorted, deduplicated keyword list."""

    def __init__(
        self,
        *,
        minimum_word_size: int = 1,
        ignore_list: Iterable[str] | None = None,
        strip_accents: bool = False,
    ) -> None:
        self.strip_accents = strip_accents
        filters: list[TokenFilter] = [MinimumSizeFilter(minimum_word_size)]
        ignored = list(ignore_list or [])
        if ignored:
            filters.append(StopFilter(ignored))
        self.chain = AnalyzerChain(RegexTokenizer(), filters)

    @classmethod
    def from_settings(cls, settings: Any) -> KeywordNormalizer:
        return cls(
            minimum_word_size=settings.minimum_word_size,
            ignore_list=settings.get_ignore_list(),
            strip_accents=settings.strip_accents,
        )

    def terms(self, text: str) -> list[str]:
        """Split one string into normalized terms, keeping duplicates and order."""
        if not text:
            return []
        if self.strip_accents:
            text = fold_accents(text)
        # Lowercase before splitting: some lowercase forms expand into
        # combining marks, which must become boundaries on the first pass.
        return self.chain(text.lower())

    def normalize(self, value: Any) -> list[str]:
        keywords: set[str] = set()
        for text in flatten_text(value):
            keywords.update(self.terms(text))
        return sorted(keywords)

    __call__ = normalize


_DEFAULT_NORMALIZER = KeywordNormalizer()


def normalize(value: Any) -> list[str]:
    """Normalize with the default rule: alphanumeric split, lowercase, dedupe, sort."""
    return _DEFAULT_NORMALIZER.normalize(value)


def normalize_as_text(keywords: Iterable[str]) -> str:
    """Join keywords back into text that normalizes to the same list."""
    return " ".join(keywords)
