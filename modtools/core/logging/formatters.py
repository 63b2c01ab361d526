# modtools/core/logging/formatters.py
from __future__ import annotations
import json
import logging

from modtools.core.redaction import redactText

__all__ = ["CONTEXT_FIELDS", "RedactingFormatter", "JsonFormatter", "DevFormatter"]


# Attributes passed through `extra=` that the JSON log keeps
CONTEXT_FIELDS = ("trial", "round", "mod", "submodule")



class RedactingFormatter(logging.Formatter):
    """Delegates to `inner`, then scrubs credentials from the rendered text."""
    def __init__(self, inner: logging.Formatter):
        super().__init__()
        self.inner = inner

    def format(self, record: logging.LogRecord) -> str:
        return redactText(self.inner.format(record))



class JsonFormatter(logging.Formatter):
    """One JSON object per line for the log file."""
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "pid": record.process,
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str, separators=(",", ":"))



class DevFormatter(logging.Formatter):
    """
    Console formatter.

    INFO records from modtools loggers print bare so status output reads like
    a plain script; everything else is prefixed with level and logger.
    """
    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            text = f"{text}\n{record.exc_text}"
        if record.levelno == logging.INFO and record.name.startswith("modtools"):
            return text
        return f"{record.levelname}: [{record.name}] {text}"
