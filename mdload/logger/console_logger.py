from __future__ import annotations

import logging
import sys
from typing import Any

from .base import Logger

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(message)s"


def _format_fields(fields: dict[str, Any]) -> str:
    parts = []
    for key, value in fields.items():
        text = str(value)
        if " " in text or "=" in text:
            text = repr(text)
        parts.append(f"{key}={text}")
    return " ".join(parts)


class ConsoleLogger(Logger):
    """Logger writing ``message key=value ...`` lines to stderr via ``logging``."""

    def __init__(self, name: str = "mdload", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(_FORMAT))
            self._logger.addHandler(handler)
        self._logger.propagate = False

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        # ``event`` duplicates the message in most calls; keep it out of the line.
        if fields.get("event") == message:
            fields = {k: v for k, v in fields.items() if k != "event"}
        if fields:
            message = f"{message} {_format_fields(fields)}"
        self._logger.log(level, message)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)
