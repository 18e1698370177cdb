"""Text rewrites applied to a retrieved unlock script before it is saved."""

from __future__ import annotations

import re
from typing import Mapping, Optional

from config import DEPOTKEY_FLAG, LUA_COMMENT_PREFIX, SET_MANIFEST_MARKER
from logger import logger

_MARKER = SET_MANIFEST_MARKER.encode("ascii")
_COMMENT = LUA_COMMENT_PREFIX.encode("ascii")


def comment_set_manifest(data: bytes) -> bytes:
    """Comment out every live ``setManifest`` line, keeping line endings intact.

    Lines that are already comments pass through untouched, so running this
    twice gives the same bytes as running it once.
    """
    output = []
    commented = 0
    for line in data.splitlines(True):
        stripped = line.strip()
        if _MARKER in stripped and not stripped.startswith(_COMMENT):
            output.append(_COMMENT + b" " + line)
            commented += 1
            logger.debug(f"HubFetch: Commented -> {stripped.decode('utf-8', errors='replace')}")
            continue
        output.append(line)

    if commented:
        logger.log(f"HubFetch: Commented {commented} {SET_MANIFEST_MARKER} line(s)")
    return b"".join(output)


def depotkey_pattern(appid: str) -> "re.Pattern[bytes]":
    return re.compile(rb"addappid\s*\(\s*" + re.escape(str(appid).encode("ascii")) + rb"\s*\)")


def patch_depotkey(appid: str, data: bytes, depotkeys: Optional[Mapping[str, str]]) -> bytes:
    """Rewrite ``addappid(<appid>)`` into its keyed three-argument form.

    Without a key for ``appid`` or without a matching call the input is
    returned as is.
    """
    depotkey = (depotkeys or {}).get(str(appid))
    if depotkey is None:
        logger.log(f"HubFetch: No depot key found for appid={appid}")
        return data

    replacement = f'addappid({appid},{DEPOTKEY_FLAG},"{depotkey}")'.encode("utf-8")
    patched, count = depotkey_pattern(appid).subn(lambda _match: replacement, data)
    if not count:
        logger.log(f"HubFetch: No addappid({appid}) call to patch")
        return data

    logger.log(f"HubFetch: Patched {count} addappid({appid}) call(s) with depot key")
    return patched


__all__ = ["comment_set_manifest", "depotkey_pattern", "patch_depotkey"]
