"""Source registry and the ordered-fallback helper shared by the fetchers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from config import (
    ARCHIVE_SOURCE,
    DEPOTKEY_SOURCES,
    LUA_SOURCES,
    METADATA_URL,
    SEARCH_URL,
)
from errors import AllSourcesFailed
from logger import logger

T = TypeVar("T")

APPID_PLACEHOLDER = "<appid>"


def fill_template(template: str, appid: str) -> str:
    return template.replace(APPID_PLACEHOLDER, str(appid))


@dataclass(frozen=True)
class SourceRegistry:
    """Immutable set of endpoints, built once and passed to every fetcher."""

    lua_sources: Tuple[str, ...] = LUA_SOURCES
    archive_source: str = ARCHIVE_SOURCE
    depotkey_sources: Tuple[str, ...] = DEPOTKEY_SOURCES
    metadata_url: str = METADATA_URL
    search_url: str = SEARCH_URL

    def lua_urls(self, appid: str) -> List[str]:
        return [fill_template(template, appid) for template in self.lua_sources]

    def archive_url(self, appid: str) -> str:
        return fill_template(self.archive_source, appid)

    def metadata_url_for(self, appid: str) -> str:
        return fill_template(self.metadata_url, appid)


def default_registry() -> SourceRegistry:
    return SourceRegistry()


def try_in_order(sources: Sequence[str], attempt: Callable[[str], T], label: str) -> T:
    """Run ``attempt`` against each source in order and return the first success.

    Every failure is logged and remembered; once the list is exhausted an
    :class:`AllSourcesFailed` carrying the last error is raised.
    """
    last_error: Optional[BaseException] = None
    total = len(sources)
    for index, source in enumerate(sources, start=1):
        logger.log(f"HubFetch: Trying {label} source #{index}/{total} -> {source}")
        try:
            result = attempt(source)
        except Exception as exc:
            last_error = exc
            logger.warn(f"HubFetch: {label} source #{index} failed: {exc}")
            continue
        logger.log(f"HubFetch: {label} source #{index} succeeded")
        return result

    raise AllSourcesFailed(label, total, last_error)


__all__ = ["SourceRegistry", "default_registry", "fill_template", "try_in_order"]
