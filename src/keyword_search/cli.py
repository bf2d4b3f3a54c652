"""Command line entry point for reindexing and ad-hoc searches.

The application owns its declarations, so both commands load a
``SearchableRegistry`` from an importable ``module:attribute`` reference and
run against the SQLite store configured by ``--database`` (or
``KEYWORD_SEARCH_DATABASE_PATH``).
"""

# ruff: noqa: T201  # CLI intentionally prints operator feedback

from __future__ import annotations

import argparse
from collections.abc import Sequence
import importlib
import sys
import textwrap

from keyword_search.config import Settings
from keyword_search.exceptions import KeywordSearchError
from keyword_search.observability.logging import configure_logging
from keyword_search.registry import SearchableRegistry
from keyword_search.search.sqlite_storage import SqliteDocumentStore
from keyword_search.service_layer.search_service import SearchService


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keyword-search",
        description="Keyword index maintenance and search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            Examples:
              keyword-search --registry myapp.search:registry reindex
              keyword-search --registry myapp.search:registry reindex --collection articles
              keyword-search --registry myapp.search:registry search articles "red fox" --relevant
            """
        ).strip(),
    )
    parser.add_argument(
        "--registry",
        required=True,
        metavar="MODULE:ATTRIBUTE",
        help="Importable reference to the application's SearchableRegistry",
    )
    parser.add_argument("--database", help="SQLite database path (default: settings database_path)")
    parser.add_argument("--log-level", help="Override the configured log level")

    subcommands = parser.add_subparsers(dest="command", required=True)

    reindex = subcommands.add_parser("reindex", help="Recompute keyword attributes for stored documents")
    reindex.add_argument("--collection", help="Only reindex this collection (default: every declared collection)")

    search = subcommands.add_parser("search", help="Run a search and print matching document ids")
    search.add_argument("collection")
    search.add_argument("query")
    search.add_argument("--match", choices=["all", "any"], default=None)
    search.add_argument("--relevant", action="store_true", default=None, help="Rank by keyword overlap")
    search.add_argument("--field", dest="field_scope", default=None, help="Restrict to one declared field")
    search.add_argument("--allow-empty", dest="allow_empty_search", action="store_true", default=None)
    return parser


def load_registry(reference: str) -> SearchableRegistry:
    """Import ``module:attribute`` and check it is a registry (or a factory returning one)."""
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Registry reference must look like 'module:attribute', got {reference!r}")
    module = importlib.import_module(module_name)
    registry = getattr(module, attribute)
    if callable(registry) and not isinstance(registry, SearchableRegistry):
        registry = registry()
    if not isinstance(registry, SearchableRegistry):
        raise ValueError(f"{reference} is not a SearchableRegistry")
    return registry


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)
    settings = Settings()
    configure_logging(args.log_level or settings.log_level, json_output=settings.log_json)

    try:
        registry = load_registry(args.registry)
    except (ImportError, AttributeError, ValueError) as exc:
        print(f"Cannot load registry: {exc}", file=sys.stderr)
        return 1

    with SqliteDocumentStore(args.database or settings.database_path) as store:
        service = SearchService(store, registry, settings)
        try:
            if args.command == "reindex":
                return _run_reindex(service, args.collection)
            return _run_search(service, args)
        except KeywordSearchError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1


def _run_reindex(service: SearchService, collection: str | None) -> int:
    reports = service.reindex_all(collection)
    failed = 0
    for report in reports:
        progress = "".join("." if outcome.succeeded else "F" for outcome in report.outcomes)
        print(f"{report.collection:<20} {progress}")
        print(f"{'':<20} {report.succeeded} succeeded, {report.failed} failed")
        for outcome in report.failures:
            print(f"{'':<20} - {outcome.document_id}: {outcome.error}")
        if report.error is not None:
            print(f"{'':<20} scan failed: {report.error}")
            failed += 1
        failed += report.failed
    return 1 if failed else 0


def _run_search(service: SearchService, args: argparse.Namespace) -> int:
    overrides = {
        key: value
        for key, value in {
            "match": args.match,
            "relevant_search": args.relevant,
            "field_scope": args.field_scope,
            "allow_empty_search": args.allow_empty_search,
        }.items()
        if value is not None
    }
    results = service.search(args.collection, args.query, **overrides)
    for document in results:
        if document.relevance is not None:
            print(f"{document.relevance:>4}  {document.id}")
        else:
            print(document.id)
    print(f"{len(results)} result(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
