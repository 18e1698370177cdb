"""Lazily created shared httpx client for the HubFetch backend."""

from __future__ import annotations

import threading
from typing import Optional

import httpx

from config import DEFAULT_HEADERS
from logger import logger

_HTTP_CLIENT: Optional[httpx.Client] = None
_HTTP_CLIENT_LOCK = threading.Lock()


def ensure_http_client(context: str = "") -> httpx.Client:
    global _HTTP_CLIENT
    with _HTTP_CLIENT_LOCK:
        if _HTTP_CLIENT is None:
            if context:
                logger.debug(f"{context}: creating shared HTTP client")
            _HTTP_CLIENT = httpx.Client(headers=DEFAULT_HEADERS, follow_redirects=True)
        return _HTTP_CLIENT


def close_http_client(context: str = "") -> None:
    global _HTTP_CLIENT
    with _HTTP_CLIENT_LOCK:
        if _HTTP_CLIENT is None:
            return
        try:
            _HTTP_CLIENT.close()
        except Exception as exc:
            logger.warn(f"HubFetch: Failed to close HTTP client{f' ({context})' if context else ''}: {exc}")
        _HTTP_CLIENT = None


__all__ = ["close_http_client", "ensure_http_client"]
