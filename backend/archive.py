"""Archive-hosted fallback source: probe, watched stream, zip member extraction."""

from __future__ import annotations

import asyncio
import io
import os
import time
import zipfile
import zlib
from typing import Optional, Tuple

import httpx

from config import (
    ARCHIVE_CHUNK_SIZE,
    ARCHIVE_IDLE_RATE_BYTES,
    ARCHIVE_IDLE_TIMEOUT_BUFFER_SECONDS,
    ARCHIVE_IDLE_TIMEOUT_FLOOR_SECONDS,
    ARCHIVE_MAX_ATTEMPTS,
    ARCHIVE_MIN_RATE_BYTES,
    ARCHIVE_MIN_TIMEOUT_BUFFER_SECONDS,
    ARCHIVE_MIN_TIMEOUT_FLOOR_SECONDS,
    ARCHIVE_PROBE_TIMEOUT_SECONDS,
    ARCHIVE_UNKNOWN_SIZE_IDLE_SECONDS,
    ARCHIVE_UNKNOWN_SIZE_TIMEOUT_SECONDS,
    ARCHIVE_WATCHDOG_INTERVAL_SECONDS,
    DEFAULT_HEADERS,
    LUA_EXTENSION,
)
from errors import ContentInvalid, NotFound, SourceUnavailable, StreamStalled
from logger import logger
from sources import SourceRegistry

ZIP_MAGIC = b"PK"
MEMBER_READ_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)
PROGRESS_LOG_EVERY_CHUNKS = 100


def compute_timeouts(content_length: Optional[int]) -> Tuple[int, int]:
    """Return ``(min_timeout, idle_timeout)`` in seconds for a payload size.

    The first assumes at least 32 KiB/s overall, the second tolerates gaps
    down to 8 KiB/s. Unknown sizes get fixed conservative values.
    """
    if not content_length or content_length <= 0:
        return ARCHIVE_UNKNOWN_SIZE_TIMEOUT_SECONDS, ARCHIVE_UNKNOWN_SIZE_IDLE_SECONDS

    min_timeout = content_length // ARCHIVE_MIN_RATE_BYTES + ARCHIVE_MIN_TIMEOUT_BUFFER_SECONDS
    idle_timeout = content_length // ARCHIVE_IDLE_RATE_BYTES + ARCHIVE_IDLE_TIMEOUT_BUFFER_SECONDS
    return (
        max(min_timeout, ARCHIVE_MIN_TIMEOUT_FLOOR_SECONDS),
        max(idle_timeout, ARCHIVE_IDLE_TIMEOUT_FLOOR_SECONDS),
    )


async def probe_content_length(client: httpx.AsyncClient, url: str) -> Optional[int]:
    try:
        resp = await client.head(url, timeout=ARCHIVE_PROBE_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        logger.warn(f"HubFetch: Archive size probe failed: {exc}")
        return None

    if resp.status_code != 200:
        logger.warn(f"HubFetch: Archive size probe status={resp.status_code}")
        return None

    raw = resp.headers.get("Content-Length")
    try:
        size = int(raw)
    except (TypeError, ValueError):
        logger.log("HubFetch: Archive size unknown (no Content-Length)")
        return None
    return size if size > 0 else None


class _Progress:
    """Last-progress timestamp written by the reader and read by the watchdog."""

    def __init__(self) -> None:
        self.last = time.monotonic()
        self.connected = False
        self.total = 0

    def touch(self) -> None:
        self.last = time.monotonic()

    def idle_for(self) -> float:
        return time.monotonic() - self.last


async def stream_archive(
    client: httpx.AsyncClient,
    url: str,
    min_timeout: float,
    idle_timeout: float,
    content_length: Optional[int] = None,
    chunk_size: int = ARCHIVE_CHUNK_SIZE,
    interval: float = ARCHIVE_WATCHDOG_INTERVAL_SECONDS,
) -> bytes:
    """Download ``url`` into memory once, under an idle-progress watchdog.

    ``min_timeout`` bounds connecting and waiting for the response head,
    ``idle_timeout`` bounds any gap between received chunks afterwards.
    Raises :class:`StreamStalled` when the watchdog cancels the read,
    :class:`SourceUnavailable` when no usable response arrives, and lets
    mid-stream ``httpx`` errors propagate.
    """
    buffer = bytearray()
    progress = _Progress()
    started = time.monotonic()

    async def _read() -> None:
        try:
            async with client.stream("GET", url, timeout=httpx.Timeout(min_timeout, read=None)) as resp:
                if resp.status_code != 200:
                    raise SourceUnavailable(f"Archive status {resp.status_code}", source=url)
                progress.connected = True
                progress.touch()
                chunks = 0
                async for chunk in resp.aiter_bytes(chunk_size):
                    if not chunk:
                        continue
                    buffer.extend(chunk)
                    progress.total += len(chunk)
                    progress.touch()
                    chunks += 1
                    if chunks % PROGRESS_LOG_EVERY_CHUNKS == 0:
                        _log_progress(progress.total, content_length, started)
        except httpx.HTTPError as exc:
            if not progress.connected:
                raise SourceUnavailable(f"Archive request failed: {exc}", source=url) from exc
            raise

    reader = asyncio.ensure_future(_read())
    try:
        while True:
            done, _ = await asyncio.wait({reader}, timeout=interval)
            if done:
                break
            limit = idle_timeout if progress.connected else min_timeout
            idle = progress.idle_for()
            if idle > limit:
                logger.warn(
                    f"HubFetch: No archive progress for {idle:.0f}s (limit {limit}s); cancelling download"
                )
                reader.cancel()
                try:
                    await reader
                except asyncio.CancelledError:
                    pass
                raise StreamStalled(f"No progress for {limit}s", source=url)
    finally:
        if not reader.done():
            reader.cancel()

    reader.result()
    _log_progress(progress.total, content_length, started)
    return bytes(buffer)


def _log_progress(total: int, content_length: Optional[int], started: float) -> None:
    elapsed = max(time.monotonic() - started, 0.001)
    speed_kb = total / 1024.0 / elapsed
    if content_length:
        pct = total / content_length * 100.0
        logger.debug(f"HubFetch: Archive {pct:.2f}% ({total}/{content_length} bytes) {speed_kb:.2f} KB/s")
    else:
        logger.debug(f"HubFetch: Archive {total} bytes {speed_kb:.2f} KB/s")


async def download_with_retries(
    client: httpx.AsyncClient,
    url: str,
    min_timeout: float,
    idle_timeout: float,
    content_length: Optional[int] = None,
    interval: float = ARCHIVE_WATCHDOG_INTERVAL_SECONDS,
    max_attempts: int = ARCHIVE_MAX_ATTEMPTS,
) -> bytes:
    """Run :func:`stream_archive` until it yields data or attempts run out.

    Stalls, mid-stream read errors and empty bodies all consume one attempt
    from the same budget. Exhausting it raises :class:`StreamStalled`.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            logger.log(f"HubFetch: Retrying archive download (attempt {attempt}/{max_attempts})")
        try:
            data = await stream_archive(
                client,
                url,
                min_timeout,
                idle_timeout,
                content_length=content_length,
                interval=interval,
            )
        except StreamStalled as exc:
            last_error = exc
            continue
        except httpx.HTTPError as exc:
            logger.warn(f"HubFetch: Archive read failed: {exc}; discarding partial data")
            last_error = exc
            continue

        if not data:
            logger.warn("HubFetch: Archive stream ended without data")
            last_error = None
            continue
        return data

    reason = str(last_error) if last_error is not None else "empty response"
    raise StreamStalled(f"Archive download failed after {max_attempts} attempts: {reason}", source=url)


def validate_zip_payload(data: bytes, url: str = "") -> None:
    if len(data) >= 4 and data.startswith(ZIP_MAGIC):
        return
    preview = data[:50].decode("utf-8", errors="ignore")
    logger.warn(
        f"HubFetch: Archive source returned non-zip content (magic={data[:4].hex()}, "
        f"size={len(data)}, preview={preview!r})"
    )
    raise ContentInvalid("Response is not a valid zip archive", source=url or None)


def extract_member(data: bytes, expected_name: str, url: str = "") -> bytes:
    """Return the first member whose base name equals ``expected_name``."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(data), "r")
    except zipfile.BadZipFile as exc:
        raise ContentInvalid(f"Could not open zip archive: {exc}", source=url or None) from exc

    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            if os.path.basename(info.filename.replace("\\", "/")) != expected_name:
                continue
            try:
                with archive.open(info) as member:
                    payload = member.read()
            except MEMBER_READ_ERRORS as exc:
                raise ContentInvalid(f"Could not read {info.filename}: {exc}", source=url or None) from exc
            logger.log(f"HubFetch: Extracted {expected_name} from archive ({len(payload)} bytes)")
            return payload

    raise NotFound(f"{expected_name} not found in archive", source=url or None)


async def _fetch_archive(
    appid: str,
    registry: SourceRegistry,
    transport: Optional[httpx.AsyncBaseTransport],
    interval: float,
    timeouts: Optional[Tuple[float, float]],
) -> bytes:
    url = registry.archive_url(appid)
    async with httpx.AsyncClient(
        headers=DEFAULT_HEADERS, follow_redirects=True, transport=transport
    ) as client:
        size = await probe_content_length(client, url)
        min_timeout, idle_timeout = timeouts or compute_timeouts(size)
        logger.log(
            f"HubFetch: Archive size={size if size else 'unknown'} "
            f"timeout={min_timeout}s idle_timeout={idle_timeout}s"
        )
        data = await download_with_retries(
            client, url, min_timeout, idle_timeout, content_length=size, interval=interval
        )

    validate_zip_payload(data, url)
    return extract_member(data, f"{appid}{LUA_EXTENSION}", url)


def fetch_archive(
    appid: str,
    registry: SourceRegistry,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    interval: float = ARCHIVE_WATCHDOG_INTERVAL_SECONDS,
    timeouts: Optional[Tuple[float, float]] = None,
) -> bytes:
    """Fetch ``<appid>.lua`` out of the archive-hosted zip."""
    logger.log(f"HubFetch: Trying archive source -> {registry.archive_url(appid)}")
    return asyncio.run(_fetch_archive(str(appid), registry, transport, interval, timeouts))


__all__ = [
    "ZIP_MAGIC",
    "compute_timeouts",
    "download_with_retries",
    "extract_member",
    "fetch_archive",
    "probe_content_length",
    "stream_archive",
    "validate_zip_payload",
]
