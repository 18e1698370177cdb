"""Resolving user input (store links, ids, names) into Steam app ids."""

from __future__ import annotations

import re
from typing import Any, Dict, List

import requests

from config import SEARCH_TIMEOUT_SECONDS, USER_AGENT
from errors import SourceUnavailable
from logger import logger
from sources import SourceRegistry

APPID_URL_RE = re.compile(r"(?:/app/|steamdb\.info/app/)(\d+)")


def extract_appid(user_input: str) -> int:
    """Return the app id in a Steam/SteamDB link or a bare number.

    Raises ``ValueError`` when the input is neither.
    """
    text = (user_input or "").strip()
    if not text:
        raise ValueError("Input must not be empty")

    match = APPID_URL_RE.search(text)
    if match:
        appid = int(match.group(1))
        logger.log(f"HubFetch: Extracted appid {appid} from link")
        return appid

    if text.isdigit():
        return int(text)

    raise ValueError("Enter a game name, a Steam/SteamDB link or a numeric appid")


def find_games(name: str, registry: SourceRegistry) -> List[Dict[str, Any]]:
    """Search the game catalogue by name; an empty list means no match."""
    name = (name or "").strip()
    if not name:
        raise ValueError("Game name must not be empty")

    url = registry.search_url
    logger.log(f"HubFetch: Searching for '{name}' -> {url}")
    try:
        resp = requests.get(
            url,
            params={"search": name},
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=SEARCH_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise SourceUnavailable(f"Search request failed: {exc}", source=url) from exc

    if resp.status_code != 200:
        raise SourceUnavailable(f"Search status {resp.status_code}", source=url)

    try:
        payload = resp.json()
    except ValueError as exc:
        raise SourceUnavailable(f"Search response is not JSON: {exc}", source=url) from exc

    games: List[Dict[str, Any]] = []
    raw_games = payload.get("games") if isinstance(payload, dict) else None
    for entry in raw_games or []:
        if not isinstance(entry, dict):
            continue
        try:
            appid = int(entry.get("appid"))
        except (TypeError, ValueError):
            continue
        games.append({"appid": appid, "name": str(entry.get("name") or "").strip()})

    if not games:
        logger.log(f"HubFetch: No games match '{name}'")
    return games


__all__ = ["extract_appid", "find_games"]
