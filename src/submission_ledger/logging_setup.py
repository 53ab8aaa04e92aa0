"""Process-wide logging configuration.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where records go and how they look.  Three formats are supported,
selected by ``[logging] format``:

- ``simple``   — ``LEVEL name: message``
- ``detailed`` — timestamp, level, logger name and message
- ``json``     — one JSON object per line, for log collectors
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from submission_ledger.config import LoggingSettings

_SIMPLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
_DETAILED_FORMAT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class JsonFormatter(logging.Formatter):
    """Emit newline-delimited JSON logs with stable core fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


def build_formatter(style: str) -> logging.Formatter:
    if style == "json":
        return JsonFormatter()
    if style == "simple":
        return logging.Formatter(_SIMPLE_FORMAT)
    return logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)


def configure_logging(settings: LoggingSettings) -> None:
    """Configure root logging with a single stderr handler.

    Existing root handlers are replaced, so calling this twice does not
    duplicate output.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(settings.level.upper())

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(build_formatter(settings.format))
    root.addHandler(handler)

    # httpx logs every request at INFO, which would drown the ledger lines.
    logging.getLogger("httpx").setLevel(max(logging.WARNING, root.level))
