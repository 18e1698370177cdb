"""DLC discovery through the app metadata API and appending to unlock scripts."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

import httpx

from config import METADATA_TIMEOUT_SECONDS, USER_AGENT
from errors import HubFetchError, NotFound, SourceUnavailable
from logger import logger
from sources import SourceRegistry

NUMERIC_RUN_RE = re.compile(r"\d+")
ADDAPPID_ID_RE = re.compile(r"addappid\(\s*(\d+)")

DEPOTS_ABSENT = "absent"
DEPOTS_FLAG = "flag"
DEPOTS_LISTING = "listing"


@dataclass(frozen=True)
class Depots:
    """The ``depots`` field of a metadata entry, resolved once at parse time."""

    kind: str = DEPOTS_ABSENT
    flag: str = ""
    listing: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, raw: Any) -> "Depots":
        if raw is None:
            return cls()
        if isinstance(raw, dict):
            return cls(kind=DEPOTS_LISTING, listing=raw)
        if isinstance(raw, str):
            return cls(kind=DEPOTS_FLAG, flag=raw)
        logger.warn(f"HubFetch: Unexpected depots field type {type(raw).__name__}; treating as absent")
        return cls()

    @property
    def has_depots(self) -> bool:
        if self.kind == DEPOTS_LISTING:
            return bool(self.listing)
        if self.kind == DEPOTS_FLAG:
            return bool(self.flag)
        return False

    def dlc_ids(self) -> Set[str]:
        if self.kind != DEPOTS_LISTING:
            return set()
        dlc_map = self.listing.get("dlc")
        if dlc_map is None:
            return set()
        if isinstance(dlc_map, dict):
            return {str(key) for key in dlc_map}
        logger.warn(f"HubFetch: depots.dlc is a {type(dlc_map).__name__}, not a mapping; ignored")
        return set()


@dataclass(frozen=True)
class AppInfo:
    appid: str
    dlc_ids: List[str]
    depots: Depots

    @property
    def has_depots(self) -> bool:
        return self.depots.has_depots


def _numeric_runs(value: Any) -> Set[str]:
    if not isinstance(value, str):
        return set()
    return set(NUMERIC_RUN_RE.findall(value))


def _section(entry: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = entry.get(name)
    return value if isinstance(value, dict) else {}


def sort_numeric(ids: Set[str]) -> List[str]:
    return sorted((value for value in ids if value.isdigit()), key=int)


def parse_app_info(appid: str, payload: Any) -> AppInfo:
    """Build an :class:`AppInfo` for ``appid`` out of a metadata API document."""
    data = payload.get("data") if isinstance(payload, dict) else None
    entry = data.get(str(appid)) if isinstance(data, dict) else None
    if not isinstance(entry, dict):
        raise NotFound(f"No metadata for appid {appid}")

    depots = Depots.parse(entry.get("depots"))

    found: Set[str] = set()
    found |= _numeric_runs(_section(entry, "common").get("listofdlc"))
    found |= _numeric_runs(_section(entry, "extended").get("listofdlc"))
    found |= depots.dlc_ids()
    found |= {str(key) for key in _section(entry, "dlc")}

    return AppInfo(appid=str(appid), dlc_ids=sort_numeric(found), depots=depots)


def get_app_info(appid: str, client: httpx.Client, registry: SourceRegistry) -> AppInfo:
    url = registry.metadata_url_for(appid)
    try:
        resp = client.get(
            url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
            timeout=METADATA_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as exc:
        raise SourceUnavailable(f"Metadata request failed: {exc}", source=url) from exc

    if resp.status_code != 200:
        raise SourceUnavailable(f"Metadata status {resp.status_code}", source=url)

    try:
        payload = resp.json()
    except ValueError as exc:
        raise SourceUnavailable(f"Metadata response is not JSON: {exc}", source=url) from exc

    return parse_app_info(appid, payload)


def existing_appids(lua_path: str) -> Set[str]:
    """Collect the ids already registered via ``addappid`` in ``lua_path``."""
    present: Set[str] = set()
    if not os.path.exists(lua_path):
        return present
    with open(lua_path, "r", encoding="utf-8", errors="replace") as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line:
                continue
            match = ADDAPPID_ID_RE.search(line)
            if match:
                present.add(match.group(1))
    return present


def _needs_leading_newline(lua_path: str) -> bool:
    try:
        with open(lua_path, "rb") as handle:
            handle.seek(0, os.SEEK_END)
            if handle.tell() == 0:
                return False
            handle.seek(-1, os.SEEK_END)
            return handle.read(1) not in (b"\n", b"\r")
    except FileNotFoundError:
        return False


def select_depotless_dlc(dlc_ids: List[str], client: httpx.Client, registry: SourceRegistry) -> List[str]:
    selected: List[str] = []
    for dlc_id in dlc_ids:
        try:
            info = get_app_info(dlc_id, client, registry)
        except HubFetchError as exc:
            logger.warn(f"HubFetch: Failed to get info for DLC {dlc_id}: {exc}")
            continue
        if info.has_depots:
            logger.debug(f"HubFetch: DLC {dlc_id} has depots; skipped")
            continue
        selected.append(dlc_id)
    return selected


def add_dlc(
    appid: str,
    lua_path: str,
    client: httpx.Client,
    registry: SourceRegistry,
) -> int:
    """Append ``addappid(<dlc>)`` for every depot-less DLC not yet in the script.

    Returns the number of lines written; zero means there was nothing to add.
    Only a failed lookup of ``appid`` itself is raised.
    """
    main_info = get_app_info(str(appid), client, registry)
    if not main_info.dlc_ids:
        logger.log(f"HubFetch: No DLC listed for appid={appid}")
        return 0

    depotless = select_depotless_dlc(main_info.dlc_ids, client, registry)
    if not depotless:
        logger.log(f"HubFetch: Every DLC of appid={appid} has its own depots")
        return 0

    present = existing_appids(lua_path)
    new_ids = [dlc_id for dlc_id in depotless if dlc_id not in present]
    if not new_ids:
        logger.log(f"HubFetch: All depot-less DLC of appid={appid} already present in {lua_path}")
        return 0

    written = 0
    leading_newline = _needs_leading_newline(lua_path)
    with open(lua_path, "a", encoding="utf-8", newline="") as output:
        for dlc_id in new_ids:
            line = f"addappid({dlc_id})"
            try:
                if leading_newline:
                    output.write("\n")
                    leading_newline = False
                output.write(line + "\n")
                output.flush()
            except OSError as exc:
                logger.warn(f"HubFetch: Failed to write {line}: {exc}")
                continue
            written += 1
            logger.log(f"HubFetch: Added DLC -> {line}")

    return written


__all__ = [
    "AppInfo",
    "Depots",
    "add_dlc",
    "existing_appids",
    "get_app_info",
    "parse_app_info",
    "select_depotless_dlc",
    "sort_numeric",
]
