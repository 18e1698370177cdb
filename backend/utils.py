"""Generic helpers for file handling in the HubFetch backend."""

from __future__ import annotations

import os

from logger import logger


def read_text(path: str) -> str:
    """Return the UTF-8 text of ``path``, or an empty string when unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as source:
            return source.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warn(f"HubFetch: Could not read {path}: {exc}")
        return ""


def write_text(path: str, text: str) -> None:
    _make_dirs(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as output:
        output.write(text)


def save_file(directory: str, filename: str, data: bytes) -> str:
    """Write ``data`` to ``directory/filename``, creating the directory first.

    An existing file of the same name is overwritten. Returns the absolute path.
    """
    directory = os.path.abspath(directory or ".")
    _make_dirs(directory)
    full_path = os.path.join(directory, filename)
    with open(full_path, "wb") as output:
        output.write(data)
    logger.log(f"HubFetch: Saved file -> {full_path} ({len(data)} bytes)")
    return full_path


def _make_dirs(directory: str) -> None:
    if directory:
        os.makedirs(directory, exist_ok=True)


__all__ = ["read_text", "save_file", "write_text"]
