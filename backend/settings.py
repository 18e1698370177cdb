"""User settings stored in a small ``key = value`` config file."""

from __future__ import annotations

import os
from typing import Dict

from config import DEFAULT_DOWNLOAD_PATH, SETTINGS_FILE
from logger import logger
from utils import read_text, write_text

DOWNLOAD_PATH_KEY = "downloadPath"
DEFAULT_SETTINGS_TEXT = f'{DOWNLOAD_PATH_KEY} = "{DEFAULT_DOWNLOAD_PATH}"\n'


def parse_settings_text(text: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip("\"'")
    return values


def create_default_settings(path: str = SETTINGS_FILE) -> None:
    write_text(path, DEFAULT_SETTINGS_TEXT)
    logger.log(f"HubFetch: Created default settings file {path}")


def load_settings(path: str = SETTINGS_FILE) -> Dict[str, str]:
    """Load settings from ``path``, creating the file with defaults when missing."""
    settings = {"download_path": os.path.abspath(DEFAULT_DOWNLOAD_PATH)}

    if not os.path.exists(path):
        try:
            create_default_settings(path)
        except OSError as exc:
            logger.warn(f"HubFetch: Failed to create settings file {path}: {exc}; using defaults")
            return settings

    values = parse_settings_text(read_text(path))
    download_path = values.get(DOWNLOAD_PATH_KEY, "")
    if download_path:
        settings["download_path"] = os.path.abspath(os.path.expanduser(download_path))

    logger.log(f"HubFetch: Download path: {settings['download_path']}")
    return settings


__all__ = ["create_default_settings", "load_settings", "parse_settings_text"]
