"""Process-wide logging setup driven by ``[logging]`` configuration.

Modules only ever call ``logging.getLogger(__name__)``; this module is the
one place that attaches handlers, and only entry points (CLI, ``run``) call
:func:`configure_logging`.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from yibi_indexer.config import LoggingSettings

_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
}


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(settings: LoggingSettings) -> None:
    """Install a root stream handler matching ``settings``.

    Calling this twice replaces the previously installed handler rather than
    stacking duplicates.
    """
    handler = logging.StreamHandler()
    if settings.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_FORMATS.get(settings.format, _FORMATS["detailed"])))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_yibi_handler", False):
            root.removeHandler(existing)
    handler._yibi_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
