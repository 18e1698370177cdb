"""Shared logger used across the HubFetch backend."""

from __future__ import annotations

import logging
import sys
from typing import Optional, Union

LOGGER_NAME = "hubfetch"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

_CONFIGURED = False


class HubFetchLogger:
    """Thin facade over :mod:`logging` exposing log/warn/error calls."""

    def __init__(self, name: str = LOGGER_NAME) -> None:
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, message: str) -> None:
        self._logger.info(message)

    def warn(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def debug(self, message: str) -> None:
        self._logger.debug(message)


def _resolve_level(level: Union[str, int, None]) -> int:
    if isinstance(level, int):
        return level
    if level is None:
        return logging.INFO
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: Union[str, int, None] = None, log_file: Optional[str] = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    base = logging.getLogger(LOGGER_NAME)
    base.setLevel(_resolve_level(level))
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    base.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            base.addHandler(file_handler)
        except OSError as exc:
            base.warning(f"HubFetch: Could not open log file {log_file}: {exc}")

    _CONFIGURED = True


logger = HubFetchLogger()

__all__ = ["HubFetchLogger", "configure_logging", "logger"]
