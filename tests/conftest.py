"""
Shared pytest fixtures for HubFetch tests.

Provides:
- a source registry pointing at fake hosts
- an httpx MockTransport router that records every request
- zip payload builders
"""

from __future__ import annotations

import io
import json
import sys
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1] / "backend"
if BACKEND_ROOT.is_dir():
    sys.path.insert(0, str(BACKEND_ROOT))

from sources import SourceRegistry  # noqa: E402

Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Tuple[int, bytes]]


class Router:
    """MockTransport handler keyed by (method, url) that records calls."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.calls: List[Tuple[str, str]] = []

    def add(self, url: str, handler: Handler, method: str = "GET") -> None:
        self.routes[(method, url)] = handler

    def json(self, url: str, payload: Any, status: int = 200) -> None:
        self.add(url, lambda request: httpx.Response(status, json=payload))

    def count(self, url: str, method: str = "GET") -> int:
        return sum(1 for call in self.calls if call == (method, url))

    def __call__(self, request: httpx.Request):
        key = (request.method, str(request.url))
        self.calls.append(key)
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, content=b"not found")
        if isinstance(handler, tuple):
            status, content = handler
            return httpx.Response(status, content=content)
        if callable(handler):
            return handler(request)
        return handler


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def client(router: Router):
    with httpx.Client(transport=httpx.MockTransport(router)) as http:
        yield http


@pytest.fixture
def async_transport(router: Router) -> httpx.MockTransport:
    return httpx.MockTransport(router)


@pytest.fixture
def registry() -> SourceRegistry:
    return SourceRegistry(
        lua_sources=(
            "https://mirror1.test/<appid>/<appid>.lua",
            "https://mirror2.test/gh/<appid>/<appid>.lua",
            "https://mirror3.test/gh/<appid>/<appid>.lua",
            "https://mirror4.test/gh/<appid>/<appid>.lua",
        ),
        archive_source="https://archive.test/proxy/<appid>.zip",
        depotkey_sources=(
            "https://keys1.test/depotkeys.json",
            "https://keys2.test/depotkeys.json",
        ),
        metadata_url="https://meta.test/v1/info/<appid>",
        search_url="https://search.test/api/loadGames.php",
    )


def build_zip(members: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def make_zip() -> Callable[[Dict[str, bytes]], bytes]:
    return build_zip


def metadata_doc(appid: str, **entry: Any) -> Dict[str, Any]:
    return {"data": {appid: entry}, "status": "success"}


@pytest.fixture
def metadata() -> Callable[..., Dict[str, Any]]:
    return metadata_doc


@pytest.fixture
def depotkeys_bytes() -> bytes:
    return json.dumps({"999": "feedface"}).encode("utf-8")
