# modtools/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from pathlib import Path

from .formatters import DevFormatter, JsonFormatter, RedactingFormatter

__all__ = ["NOISY_LOGGERS", "configureLogging"]



# Third-party loggers that chatter at INFO/DEBUG
NOISY_LOGGERS = ["httpx", "httpcore", "httpcore.connection", "httpcore.http11", "asyncio"]



def configureLogging(level: str | int = "INFO", *, logFile: str | Path | None = None, jsonFile: bool = True) -> None:
    """
    Initiate the global logging configuration.

      - Console logs through DevFormatter at `level`
      - Optional rotating file log (JSON lines unless jsonFile=False), always DEBUG
      - Token scrubbing on every handler
    """
    if isinstance(level, str):
        rootLevel = logging.getLevelName(level.upper())
        if not isinstance(rootLevel, int):
            rootLevel = logging.INFO
    else:
        rootLevel = int(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG if logFile else rootLevel)

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(RedactingFormatter(DevFormatter()))
    root.addHandler(consoleHandler)

    if logFile:
        fileHandler = logging.handlers.RotatingFileHandler(
            str(logFile),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8"
        )
        fileHandler.setLevel(logging.DEBUG)
        inner = JsonFormatter() if jsonFile else logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        fileHandler.setFormatter(RedactingFormatter(inner))
        root.addHandler(fileHandler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
