"""Exception hierarchy shared by the keyword search stack."""


class KeywordSearchError(Exception):
    """Base class for every error raised by keyword_search."""


class ConfigurationError(KeywordSearchError, ValueError):
    """Raised when a searchable declaration or search option is invalid."""


class ResolutionError(KeywordSearchError, LookupError):
    """Raised when an associated or nested value cannot be resolved during indexing."""


class StoreExecutionError(KeywordSearchError, RuntimeError):
    """Raised when the document store fails to execute a read, write, or aggregation."""
