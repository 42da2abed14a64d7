from __future__ import annotations

import json
import logging
import os
from typing import Any

from argus.context import current_correlation

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class CorrelationFilter(logging.Filter):
    """Copy the request correlation ids onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        corr = current_correlation()
        record.request_id = getattr(record, "request_id", None) or corr.request_id
        record.user_id = getattr(record, "user_id", None) or corr.user_id
        record.session_id = getattr(record, "session_id", None) or corr.session_id
        record.trace_id = getattr(record, "trace_id", None) or corr.trace_id
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if value in (None, ""):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging() -> None:
    """Configure the root logger; JSON output is switched on with LOG_JSON."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    use_json = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationFilter())
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] - %(message)s")
        )
    root.addHandler(handler)
