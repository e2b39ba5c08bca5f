"""Logging setup for LocalS3: human-readable text or one JSON object per line."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Attributes the request middleware attaches through ``extra=``.
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "request_id", "bucket")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def request_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the request attributes set on ``record``, skipping unset ones."""
    fields = {}
    for name in REQUEST_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


class JSONFormatter(logging.Formatter):
    """Renders each record as a single-line JSON object.

    Keys: timestamp, level, logger, message, exception (when present), and
    whichever request fields the record carries.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        doc: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            doc["exception"] = self.formatException(record.exc_info)
        doc.update(request_fields(record))
        return json.dumps(doc, default=str)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Send all logging to stderr at ``level`` using the ``fmt`` layout.

    Any handlers already on the root logger are replaced.

    Args:
        level: Level name; unknown names fall back to INFO.
        fmt: ``"json"`` for structured output, anything else for text.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(_build_formatter(fmt))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(numeric_level)
    root.addHandler(handler)
