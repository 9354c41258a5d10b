"""Logging setup for the staff portal."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from staff_portal.config import Settings

HANDLER_NAME = "staff_portal"

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonLogFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited docstring
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "component"):
            payload["component"] = getattr(record, "component")
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(settings: Settings, *, log_level: Optional[str] = None) -> None:
    """Install the portal's root handler. Calling it again is a no-op.

    Handlers that a host (uvicorn, pytest) already attached are left alone.
    """

    root_logger = logging.getLogger()
    if any(handler.name == HANDLER_NAME for handler in root_logger.handlers):
        return

    level_name = log_level or settings.log_level
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    if settings.log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JsonLogFormatter())
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # requests logs every connection at DEBUG, including full upstream URLs.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
