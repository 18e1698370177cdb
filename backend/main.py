"""Command line entry point for HubFetch."""

from __future__ import annotations

import argparse
import sys
import time
from typing import Callable, List, Optional

import httpx

from config import APP_NAME, APP_VERSION, DIVISION, SETTINGS_FILE
from downloads import download_lua
from errors import HubFetchError, NotFound
from http_client import close_http_client, ensure_http_client
from logger import configure_logging, logger
from search import extract_appid, find_games
from settings import load_settings
from sources import SourceRegistry, default_registry

PROMPT_QUERY = "Enter a game name / AppID / Steam link / SteamDB link: "
PROMPT_SELECTION = "Enter the number of the game to download: "


def resolve_appid(query: str, registry: SourceRegistry, prompt: Callable[[str], str] = input) -> int:
    try:
        return extract_appid(query)
    except ValueError:
        logger.log(f"HubFetch: No appid in '{query.strip()}'; searching by name")

    games = find_games(query, registry)
    if not games:
        raise NotFound(f"No games match '{query.strip()}'")
    if len(games) == 1:
        game = games[0]
    else:
        print(f"Found {len(games)} matching games:")
        for index, game in enumerate(games, start=1):
            print(f" {index}. {game['name']:<30} | AppID: {game['appid']}")
        choice = prompt(PROMPT_SELECTION).strip()
        try:
            selection = int(choice)
        except ValueError:
            raise ValueError(f"Selection must be a number between 1 and {len(games)}") from None
        if not 1 <= selection <= len(games):
            raise ValueError(f"Selection must be a number between 1 and {len(games)}")
        game = games[selection - 1]

    logger.log(f"HubFetch: Selected {game['name']} (AppID: {game['appid']})")
    return int(game["appid"])


def run_download(
    appid: int,
    download_path: str,
    client: httpx.Client,
    registry: SourceRegistry,
    include_dlc: bool = True,
) -> bool:
    print(DIVISION)
    logger.log(f"HubFetch: Starting download of {appid}.lua")
    for index, url in enumerate(registry.lua_urls(str(appid)), start=1):
        logger.log(f"HubFetch:  {index}. {url}")

    started = time.monotonic()
    try:
        result = download_lua(str(appid), download_path, client, registry, include_dlc=include_dlc)
    except HubFetchError as exc:
        logger.error(f"HubFetch: Download failed for appid={appid}: {exc}")
        return False
    finally:
        print(DIVISION)
        logger.log(f"HubFetch: Elapsed {time.monotonic() - started:.2f}s")

    for warning in result["warnings"]:
        logger.warn(f"HubFetch: {warning}")
    logger.log(
        f"HubFetch: Saved {result['path']} ({result['bytes']} bytes, "
        f"depot key {'patched' if result['depotkeyPatched'] else 'not patched'}, "
        f"{result['dlcAdded']} DLC added)"
    )
    return True


def interactive_loop(
    download_path: str,
    client: httpx.Client,
    registry: SourceRegistry,
    include_dlc: bool = True,
    prompt: Callable[[str], str] = input,
) -> None:
    while True:
        print(DIVISION)
        try:
            query = prompt(PROMPT_QUERY)
        except (EOFError, KeyboardInterrupt):
            print()
            return
        try:
            appid = resolve_appid(query, registry, prompt=prompt)
        except (EOFError, KeyboardInterrupt):
            print()
            return
        except (ValueError, HubFetchError) as exc:
            logger.error(f"HubFetch: Could not resolve appid: {exc}")
            continue
        run_download(appid, download_path, client, registry, include_dlc=include_dlc)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hubfetch",
        description="Download Steam unlock scripts from ManifestHub mirrors.",
    )
    parser.add_argument("query", nargs="?", help="Game name, appid, Steam or SteamDB link")
    parser.add_argument("--dest", help="Download directory (overrides the settings file)")
    parser.add_argument("--config", default=SETTINGS_FILE, help=f"Settings file (default: {SETTINGS_FILE})")
    parser.add_argument("--no-dlc", action="store_true", help="Skip appending depot-less DLC entries")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    print(DIVISION)
    print(f"{APP_NAME} v{APP_VERSION}")
    print(DIVISION)

    settings = load_settings(args.config)
    download_path = args.dest or settings["download_path"]
    registry = default_registry()
    client = ensure_http_client("HubFetch: main")
    include_dlc = not args.no_dlc

    try:
        if args.query:
            try:
                appid = resolve_appid(args.query, registry)
            except (ValueError, HubFetchError, EOFError) as exc:
                logger.error(f"HubFetch: Could not resolve appid: {exc}")
                return 1
            return 0 if run_download(appid, download_path, client, registry, include_dlc=include_dlc) else 1

        interactive_loop(download_path, client, registry, include_dlc=include_dlc)
        return 0
    finally:
        close_http_client("HubFetch: main")


if __name__ == "__main__":
    sys.exit(main())
