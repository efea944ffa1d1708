"""
Structured logger used throughout skills_supply.

Callers attach structured context as keyword arguments, usually a single
``data`` mapping:

    logger.warning("Skipping plugin without skills", data={"alias": alias})

Records are emitted through the standard ``logging`` module so that host
applications can route them with ordinary handler configuration. The
structured payload is available on each record as ``record.data``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

_ROOT_NAMESPACE = "skills_supply"


class Logger:
    """Thin wrapper that forwards messages with structured data."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._logger = logging.getLogger(namespace)

    def _emit(self, level: int, message: str, data: dict[str, Any], exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        payload = data.pop("data", None)
        if payload is None:
            payload = {}
        elif not isinstance(payload, dict):
            payload = {"value": payload}
        payload = {**payload, **data}
        self._logger.log(level, message, extra={"data": payload}, exc_info=exc_info, stacklevel=3)

    def debug(self, message: str, **data: Any) -> None:
        self._emit(logging.DEBUG, message, data)

    def info(self, message: str, **data: Any) -> None:
        self._emit(logging.INFO, message, data)

    def warning(self, message: str, **data: Any) -> None:
        self._emit(logging.WARNING, message, data)

    def error(self, message: str, **data: Any) -> None:
        self._emit(logging.ERROR, message, data)

    def exception(self, message: str, **data: Any) -> None:
        self._emit(logging.ERROR, message, data, exc_info=True)


_loggers: dict[str, Logger] = {}
_lock = threading.Lock()


def get_logger(namespace: str) -> Logger:
    """Return the shared Logger for ``namespace``."""
    with _lock:
        logger = _loggers.get(namespace)
        if logger is None:
            logger = Logger(namespace)
            _loggers[namespace] = logger
        return logger


logging.getLogger(_ROOT_NAMESPACE).addHandler(logging.NullHandler())
