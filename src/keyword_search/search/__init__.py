"""
Keyword extraction and query construction.

- analyzers: tokenizer/normalizer producing sorted, deduplicated keyword lists
- indexer: derives keyword attributes from declared source fields
- query: predicate tree and ALL/ANY filter builder
- ranking: overlap-count aggregation and relevance ordering
- storage: document store protocol and in-memory store
- sqlite_storage: SQLite document store
"""
