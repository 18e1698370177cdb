"""Error taxonomy for the HubFetch retrieval pipeline."""

from __future__ import annotations

from typing import Optional


class HubFetchError(Exception):
    """Base class for every error raised by the retrieval pipeline."""

    code = "hubfetch_error"

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.message} (URL: {self.source})"
        return self.message


class SourceUnavailable(HubFetchError):
    """A single source failed: network error, timeout or unexpected status."""

    code = "source_unavailable"


class AllSourcesFailed(SourceUnavailable):
    """Every source of an ordered list failed."""

    code = "all_sources_failed"

    def __init__(self, label: str, attempts: int, last_error: Optional[BaseException] = None) -> None:
        message = f"All {attempts} {label} source(s) failed"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


class ContentInvalid(HubFetchError):
    """The payload is categorically wrong (not a zip, unparseable container)."""

    code = "content_invalid"


class StreamStalled(HubFetchError):
    """The archive stream made no progress and the retry budget ran out."""

    code = "stream_stalled"


class NotFound(HubFetchError):
    """The requested member or metadata entry does not exist."""

    code = "not_found"


class PartialSubsystemFailure(HubFetchError):
    """An optional stage (depot keys, DLC expansion) failed as a whole."""

    code = "partial_subsystem_failure"

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause


__all__ = [
    "AllSourcesFailed",
    "ContentInvalid",
    "HubFetchError",
    "NotFound",
    "PartialSubsystemFailure",
    "SourceUnavailable",
    "StreamStalled",
]
