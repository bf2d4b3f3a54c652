"""Structured JSON logging with trace correlation.

Every line carries the trace/span ids of the active span and, when a search
or reindex is running, the collection it targets. ``extra=`` fields are
emitted as top-level keys; keyword lists are capped so that logging a large
document's keywords stays readable.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import logging
from pathlib import Path
import sys
from typing import Any

import orjson
from pydantic import BaseModel

from keyword_search.observability.context import get_trace_context


_STANDARD_RECORD_KEYS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    REDACT_KEYS = frozenset({"password", "api_key", "secret", "authorization", "credentials"})
    MAX_MESSAGE_LEN = 2000
    MAX_FIELD_LEN = 500
    MAX_KEYWORDS = 50

    def format(self, record: logging.LogRecord) -> str:
        entry = self._base_entry(record)
        entry.update(self._context_fields())
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(self._extra_fields(record))
        return orjson.dumps(entry, default=self._json_default).decode("utf-8")

    def _base_entry(self, record: logging.LogRecord) -> dict[str, Any]:
        message = record.getMessage()
        if len(message) > self.MAX_MESSAGE_LEN:
            message = message[: self.MAX_MESSAGE_LEN] + "..."
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": message,
            "logger": record.name,
        }
        # keyword_search.search.indexer -> indexer
        if "." in record.name:
            entry["component"] = record.name.rsplit(".", 1)[-1]
        return entry

    def _context_fields(self) -> dict[str, Any]:
        ctx = get_trace_context()
        fields = {"trace_id": ctx.get("trace_id", ""), "span_id": ctx.get("span_id", "")}
        if collection := ctx.get("collection"):
            fields["collection"] = collection
        return fields

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: self._clean(key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_KEYS and not key.startswith("_")
        }

    def _clean(self, key: str, value: Any) -> Any:
        if key.lower() in self.REDACT_KEYS:
            return "[REDACTED]"
        if isinstance(value, str) and len(value) > self.MAX_FIELD_LEN:
            return value[: self.MAX_FIELD_LEN] + "..."
        if isinstance(value, (list, tuple)) and len(value) > self.MAX_KEYWORDS:
            return [*value[: self.MAX_KEYWORDS], f"... {len(value) - self.MAX_KEYWORDS} more"]
        return value

    def _json_default(self, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json")
        if isinstance(value, (set, frozenset)):
            try:
                return sorted(value)
            except TypeError:
                return list(value)
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, (bytes, bytearray)):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, Exception):
            return f"{type(value).__name__}: {value}"
        return repr(value)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Root log level name, case-insensitive
        json_output: Use ``JsonFormatter`` when True, a plain text format otherwise
        logger_levels: Per-logger level overrides (logger name -> level name)
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        JsonFormatter() if json_output else logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    root.addHandler(handler)

    for logger_name, logger_level in (logger_levels or {}).items():
        logging.getLogger(logger_name).setLevel(getattr(logging, logger_level.upper(), logging.INFO))
