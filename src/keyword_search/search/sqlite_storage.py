"""SQLite-backed document store.

Documents are stored as JSON bodies. Every indexed attribute whose value is a
list of strings is mirrored into ``keyword_index`` (one row per distinct token
with its occurrence count), which is what keyword clauses and the overlap
aggregation query:

- WAL mode with NORMAL synchronous for performance
- WITHOUT ROWID tables for clustered indexes
- Thread-local connections
- ``REGEXP`` registered per connection for pattern clauses
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from functools import lru_cache
import logging
from pathlib import Path
import re
import sqlite3
import threading
from typing import Any

import orjson

from keyword_search.exceptions import StoreExecutionError
from keyword_search.search.query import AllOf, AnyOf, KeywordClause, MatchEverything, Predicate
from keyword_search.search.ranking import AggregationRow, OverlapCountAggregation, run_in_process
from keyword_search.search.storage import require_document_id


logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS documents (
        collection TEXT NOT NULL,
        doc_id TEXT NOT NULL,
        seq INTEGER NOT NULL,
        body TEXT NOT NULL,
        PRIMARY KEY (collection, doc_id)
    ) WITHOUT ROWID;

    CREATE TABLE IF NOT EXISTS indexed_attributes (
        collection TEXT NOT NULL,
        attribute TEXT NOT NULL,
        PRIMARY KEY (collection, attribute)
    ) WITHOUT ROWID;

    CREATE TABLE IF NOT EXISTS keyword_index (
        collection TEXT NOT NULL,
        attribute TEXT NOT NULL,
        token TEXT NOT NULL,
        doc_id TEXT NOT NULL,
        occurrences INTEGER NOT NULL DEFAULT 1,
        PRIMARY KEY (collection, attribute, token, doc_id)
    ) WITHOUT ROWID;

    CREATE INDEX IF NOT EXISTS idx_documents_seq ON documents(collection, seq);
    CREATE INDEX IF NOT EXISTS idx_keyword_index_doc ON keyword_index(collection, doc_id);
"""

_UPSERT_DOCUMENT = """
    INSERT INTO documents (collection, doc_id, seq, body)
    VALUES (?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM documents WHERE collection = ?), ?)
    ON CONFLICT (collection, doc_id) DO UPDATE SET body = excluded.body
"""


def apply_connection_pragmas(
    conn: sqlite3.Connection,
    *,
    cache_size_kb: int = -16384,
    temp_store: str = "MEMORY",
    busy_timeout_ms: int | None = 30000,
) -> None:
    """Apply the PRAGMAs every store connection runs with."""
    if busy_timeout_ms is not None:
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute(f"PRAGMA cache_size = {cache_size_kb}")
    conn.execute(f"PRAGMA temp_store = {temp_store}")


@lru_cache(maxsize=256)
def _compiled_pattern(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _regexp(pattern: str | None, value: Any) -> bool:
    if pattern is None or not isinstance(value, str):
        return False
    return _compiled_pattern(pattern).search(value) is not None


def _json_path(attribute: str) -> str:
    escaped = attribute.replace('"', '\\"')
    return f'$."{escaped}"'


def _keyword_tokens(value: Any) -> Counter[str]:
    """Count each string token of a stored keyword value."""
    if isinstance(value, str):
        return Counter([value])
    if isinstance(value, (list, tuple, set, frozenset)):
        return Counter(item for item in value if isinstance(item, str) and item)
    return Counter()


def _dump_body(record: Mapping[str, Any]) -> str:
    try:
        return orjson.dumps(dict(record)).decode("utf-8")
    except TypeError as exc:
        raise StoreExecutionError(f"Record {record.get('id')!r} is not JSON serializable: {exc}") from exc


def _load_body(body: str | bytes) -> dict[str, Any]:
    return orjson.loads(body)


class SQLiteConnectionPool:
    """Thread-safe connection pool with thread-local connections.

    An in-memory database cannot be shared between connections, so
    ``:memory:`` stores use a single connection guarded by a lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        self._local = threading.local()
        self._shared: sqlite3.Connection | None = None
        self._shared_lock = threading.RLock()
        self._connections: list[sqlite3.Connection] = []
        self._registry_lock = threading.Lock()

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_DATABASE

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get this thread's connection (or the shared in-memory one)."""
        if self.is_memory:
            with self._shared_lock:
                if self._shared is None:
                    self._shared = self._create_connection()
                yield self._shared
            return

        if getattr(self._local, "connection", None) is None:
            self._local.connection = self._create_connection()
        yield self._local.connection

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.create_function("REGEXP", 2, _regexp, deterministic=True)
        apply_connection_pragmas(conn)
        with self._registry_lock:
            self._connections.append(conn)
        return conn

    def close_all(self) -> None:
        """Close every connection opened by this pool."""
        with self._registry_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close SQLite connection for %s: %s", self.db_path, exc)
        self._shared = None
        self._local = threading.local()


class SqliteDocumentStore:
    """Document store persisted in a single SQLite database."""

    def __init__(self, db_path: Path | str = MEMORY_DATABASE) -> None:
        if str(db_path) != MEMORY_DATABASE:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._pool = SQLiteConnectionPool(db_path)
        with self._write("create schema") as conn:
            conn.executescript(_SCHEMA)

    @property
    def db_path(self) -> str:
        return self._pool.db_path

    def close(self) -> None:
        self._pool.close_all()

    def __enter__(self) -> SqliteDocumentStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _read(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._pool.get_connection() as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreExecutionError(f"SQLite {operation} failed: {exc}") from exc

    @contextmanager
    def _write(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._pool.get_connection() as conn, conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreExecutionError(f"SQLite {operation} failed: {exc}") from exc

    # Indexes

    def ensure_index(self, collection: str, attribute: str) -> None:
        with self._write("ensure index") as conn:
            inserted = conn.execute(
                "INSERT OR IGNORE INTO indexed_attributes (collection, attribute) VALUES (?, ?)",
                (collection, attribute),
            ).rowcount
            if not inserted:
                return
            rows = conn.execute(
                "SELECT doc_id, body FROM documents WHERE collection = ?",
                (collection,),
            ).fetchall()
            for doc_id, body in rows:
                self._write_keyword_rows(conn, collection, doc_id, {attribute: _load_body(body).get(attribute)})
        logger.debug("Indexed %s.%s (%d existing documents)", collection, attribute, len(rows))

    def indexed_attributes(self, collection: str) -> set[str]:
        with self._read("list indexes") as conn:
            return self._indexed(conn, collection)

    def _indexed(self, conn: sqlite3.Connection, collection: str) -> set[str]:
        cursor = conn.execute("SELECT attribute FROM indexed_attributes WHERE collection = ?", (collection,))
        return {row[0] for row in cursor}

    def _write_keyword_rows(
        self,
        conn: sqlite3.Connection,
        collection: str,
        doc_id: str,
        values: Mapping[str, Any],
    ) -> None:
        for attribute, value in values.items():
            conn.execute(
                "DELETE FROM keyword_index WHERE collection = ? AND attribute = ? AND doc_id = ?",
                (collection, attribute, doc_id),
            )
            conn.executemany(
                "INSERT INTO keyword_index (collection, attribute, token, doc_id, occurrences) VALUES (?, ?, ?, ?, ?)",
                [
                    (collection, attribute, token, doc_id, occurrences)
                    for token, occurrences in sorted(_keyword_tokens(value).items())
                ],
            )

    # Writes

    def save(self, collection: str, record: Mapping[str, Any]) -> None:
        doc_id = require_document_id(record)
        body = _dump_body({**record, "id": doc_id})
        with self._write("save") as conn:
            conn.execute(_UPSERT_DOCUMENT, (collection, doc_id, collection, body))
            indexed = self._indexed(conn, collection)
            self._write_keyword_rows(conn, collection, doc_id, {attr: record.get(attr) for attr in indexed})

    def update_fields(self, collection: str, document_id: str, fields: Mapping[str, Any]) -> None:
        with self._write("update") as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, document_id),
            ).fetchone()
            if row is None:
                raise StoreExecutionError(f"Document {document_id!r} not found in {collection!r}")
            record = _load_body(row[0])
            record.update(fields)
            conn.execute(
                "UPDATE documents SET body = ? WHERE collection = ? AND doc_id = ?",
                (_dump_body(record), collection, document_id),
            )
            indexed = self._indexed(conn, collection)
            self._write_keyword_rows(
                conn,
                collection,
                document_id,
                {attr: value for attr, value in fields.items() if attr in indexed},
            )

    def delete(self, collection: str, document_id: str) -> bool:
        with self._write("delete") as conn:
            deleted = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, document_id),
            ).rowcount
            conn.execute(
                "DELETE FROM keyword_index WHERE collection = ? AND doc_id = ?",
                (collection, document_id),
            )
        return bool(deleted)

    # Reads

    def get(self, collection: str, document_id: str) -> dict[str, Any] | None:
        with self._read("get") as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, document_id),
            ).fetchone()
        return _load_body(row[0]) if row else None

    def find(self, collection: str, predicate: Predicate | None = None) -> list[dict[str, Any]]:
        with self._read("find") as conn:
            where, params = self._compile(predicate or MatchEverything(), collection, self._indexed(conn, collection))
            cursor = conn.execute(
                f"SELECT d.body FROM documents AS d WHERE d.collection = ? AND {where} ORDER BY d.seq",
                (collection, *params),
            )
            return [_load_body(row[0]) for row in cursor]

    def iter_documents(self, collection: str) -> Iterator[dict[str, Any]]:
        with self._read("scan") as conn:
            rows = conn.execute(
                "SELECT body FROM documents WHERE collection = ? ORDER BY seq",
                (collection,),
            ).fetchall()
        for row in rows:
            yield _load_body(row[0])

    def count(self, collection: str) -> int:
        with self._read("count") as conn:
            return int(conn.execute("SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)).fetchone()[0])

    def aggregate(self, aggregation: OverlapCountAggregation) -> list[AggregationRow]:
        if not aggregation.keywords:
            return []
        with self._read("aggregate") as conn:
            indexed = self._indexed(conn, aggregation.collection)
            if aggregation.attribute not in indexed:
                logger.debug(
                    "Attribute %s.%s is not indexed; aggregating in process",
                    aggregation.collection,
                    aggregation.attribute,
                )
                return run_in_process(aggregation, self.find(aggregation.collection, aggregation.filter))

            where, filter_params = self._compile(aggregation.filter, aggregation.collection, indexed)
            values = ", ".join("(?)" for _ in aggregation.keywords)
            sql = f"""
                WITH query_tokens(token) AS (VALUES {values})
                SELECT d.body, SUM(k.occurrences) AS overlap
                FROM documents AS d
                JOIN keyword_index AS k
                    ON k.collection = d.collection AND k.doc_id = d.doc_id AND k.attribute = ?
                JOIN query_tokens AS q ON q.token = k.token
                WHERE d.collection = ? AND {where}
                GROUP BY d.doc_id
                HAVING overlap > 0
                ORDER BY MIN(d.seq)
            """
            params = (*aggregation.keywords, aggregation.attribute, aggregation.collection, *filter_params)
            cursor = conn.execute(sql, params)
            return [AggregationRow(record=_load_body(body), value=int(overlap)) for body, overlap in cursor]

    # Predicate compilation

    def _compile(self, predicate: Predicate, collection: str, indexed: set[str]) -> tuple[str, list[Any]]:
        if isinstance(predicate, MatchEverything):
            return "1", []
        if isinstance(predicate, (AllOf, AnyOf)):
            if not predicate.clauses:
                return ("1", []) if isinstance(predicate, AllOf) else ("0", [])
            joiner = " AND " if isinstance(predicate, AllOf) else " OR "
            parts: list[str] = []
            params: list[Any] = []
            for clause in predicate.clauses:
                sql, clause_params = self._compile(clause, collection, indexed)
                parts.append(sql)
                params.extend(clause_params)
            return f"({joiner.join(parts)})", params
        if isinstance(predicate, KeywordClause):
            return self._compile_clause(predicate, collection, indexed)
        raise StoreExecutionError(f"Unsupported predicate for SQLite: {type(predicate).__name__}")

    def _compile_clause(self, clause: KeywordClause, collection: str, indexed: set[str]) -> tuple[str, list[Any]]:
        operator = "REGEXP" if clause.is_regex else "="
        operand = clause.pattern if clause.is_regex else clause.token
        if clause.attribute in indexed:
            sql = (
                "d.doc_id IN (SELECT doc_id FROM keyword_index "
                f"WHERE collection = ? AND attribute = ? AND token {operator} ?)"
            )
            return sql, [collection, clause.attribute, operand]
        sql = f"EXISTS (SELECT 1 FROM json_each(d.body, ?) AS j WHERE j.value {operator} ?)"
        return sql, [_json_path(clause.attribute), operand]
