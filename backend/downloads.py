"""Handling of HubFetch download flows: mirrors, archive fallback, keys, save."""

from __future__ import annotations

import json
import os
import time
from typing import Any, Callable, Dict, Optional

import httpx

from archive import fetch_archive
from config import (
    DEPOTKEY_TIMEOUT_SECONDS,
    LUA_EXTENSION,
    LUA_SOURCE_TIMEOUT_SECONDS,
    USER_AGENT,
)
from dlc import add_dlc
from errors import AllSourcesFailed, HubFetchError, PartialSubsystemFailure, SourceUnavailable
from logger import logger
from patches import comment_set_manifest, patch_depotkey
from sources import SourceRegistry, default_registry, try_in_order
from utils import save_file


def _get_bytes(client: httpx.Client, url: str, timeout: float) -> bytes:
    """GET ``url`` and read the whole body within ``timeout`` seconds overall."""
    deadline = time.monotonic() + timeout
    body = bytearray()
    with client.stream(
        "GET", url, headers={"User-Agent": USER_AGENT}, follow_redirects=True, timeout=timeout
    ) as resp:
        code = resp.status_code
        if code != 200:
            raise SourceUnavailable(f"status {code}", source=url)
        for chunk in resp.iter_bytes():
            body.extend(chunk)
            if time.monotonic() > deadline:
                raise SourceUnavailable(f"body not received within {timeout}s", source=url)
    return bytes(body)


def fetch_direct(appid: str, client: httpx.Client, registry: SourceRegistry) -> bytes:
    """Return the body of the first mirror that answers 200 for ``appid``."""

    def _attempt(url: str) -> bytes:
        return _get_bytes(client, url, LUA_SOURCE_TIMEOUT_SECONDS)

    data = try_in_order(registry.lua_urls(appid), _attempt, "lua")
    logger.log(f"HubFetch: Downloaded {appid}{LUA_EXTENSION} from mirror ({len(data)} bytes)")
    return data


def _parse_depotkeys(data: bytes) -> Dict[str, str]:
    parsed = json.loads(data)
    if not isinstance(parsed, dict):
        raise ValueError("depotkeys document is not a JSON object")
    depotkeys: Dict[str, str] = {}
    for key, value in parsed.items():
        if not isinstance(value, str):
            raise ValueError(f"depot key for {key} is not a string")
        depotkeys[str(key)] = value
    return depotkeys


def fetch_depotkeys(client: httpx.Client, registry: SourceRegistry) -> Dict[str, str]:
    """Return the appid -> depot key mapping from the first parseable source."""

    def _attempt(url: str) -> Dict[str, str]:
        return _parse_depotkeys(_get_bytes(client, url, DEPOTKEY_TIMEOUT_SECONDS))

    depotkeys = try_in_order(list(registry.depotkey_sources), _attempt, "depotkey")
    logger.log(f"HubFetch: Loaded depotkeys.json ({len(depotkeys)} entries)")
    return depotkeys


def fetch_lua(
    appid: str,
    client: httpx.Client,
    registry: SourceRegistry,
    archive_fetcher: Callable[[str, SourceRegistry], bytes] = fetch_archive,
) -> bytes:
    """Try every mirror, then the archive source once the mirrors are exhausted."""
    try:
        return fetch_direct(appid, client, registry)
    except AllSourcesFailed as exc:
        logger.warn(f"HubFetch: {exc}; falling back to archive source")
    return archive_fetcher(appid, registry)


def download_lua(
    appid: str,
    download_path: str,
    client: httpx.Client,
    registry: Optional[SourceRegistry] = None,
    include_dlc: bool = True,
    archive_fetcher: Callable[[str, SourceRegistry], bytes] = fetch_archive,
) -> Dict[str, Any]:
    """Retrieve, patch and save ``<appid>.lua`` then append missing DLC lines.

    Retrieval and save errors propagate as :class:`HubFetchError`. Depot key and
    DLC failures are downgraded to entries in the returned ``warnings`` list.
    """
    appid = str(appid).strip()
    registry = registry or default_registry()

    data = fetch_lua(appid, client, registry, archive_fetcher=archive_fetcher)
    data = comment_set_manifest(data)

    warnings = []
    depotkey_patched = False
    try:
        depotkeys = fetch_depotkeys(client, registry)
    except HubFetchError as exc:
        failure = PartialSubsystemFailure("depotkeys", exc)
        logger.warn(f"HubFetch: {failure}; saving script without depot key")
        warnings.append(str(failure))
    else:
        patched = patch_depotkey(appid, data, depotkeys)
        depotkey_patched = patched != data
        data = patched

    filename = f"{appid}{LUA_EXTENSION}"
    try:
        full_path = save_file(download_path, filename, data)
    except OSError as exc:
        raise HubFetchError(f"Could not save {filename} to {download_path}: {exc}") from exc

    dlc_added = 0
    if include_dlc:
        logger.log("HubFetch: Adding DLC entries without depots...")
        try:
            dlc_added = add_dlc(appid, full_path, client, registry)
        except (HubFetchError, OSError) as exc:
            failure = PartialSubsystemFailure("dlc", exc)
            logger.warn(f"HubFetch: {failure}")
            warnings.append(str(failure))

    return {
        "success": True,
        "appid": appid,
        "path": full_path,
        "bytes": os.path.getsize(full_path),
        "depotkeyPatched": depotkey_patched,
        "dlcAdded": dlc_added,
        "warnings": warnings,
    }


__all__ = [
    "download_lua",
    "fetch_depotkeys",
    "fetch_direct",
    "fetch_lua",
]
