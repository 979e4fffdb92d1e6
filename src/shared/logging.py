import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_CONTEXT_KEYS = ("event_name", "delivery_id", "repo", "pr_number", "check")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)

        return json.dumps(payload, default=str)


_LOGGING_CONFIGURED = False


def configure_logging() -> None:
    """Install the JSON handler on the root logger once per process.

    Records go to stderr: stdout is reserved for GitHub Actions workflow
    commands, which the runner parses line by line.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    root = logging.getLogger()
    root.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    _LOGGING_CONFIGURED = True


class ContextAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        merged = dict(self.extra)
        merged.update(extra)
        kwargs["extra"] = merged
        return msg, kwargs

    def bind(self, **context: Any) -> "ContextAdapter":
        merged = dict(self.extra)
        merged.update({k: v for k, v in context.items() if v is not None})
        return ContextAdapter(self.logger, merged)


def get_logger(name: str, **context: Any) -> ContextAdapter:
    configure_logging()
    return ContextAdapter(logging.getLogger(name), context)
