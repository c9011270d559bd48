from __future__ import annotations

import re
from enum import StrEnum

_STATUS_IN_MESSAGE = re.compile(r"status: (\d+)")


class ErrorCode(StrEnum):
    FETCH_FAILED = "FETCH_FAILED"
    FETCH_TIMEOUT = "FETCH_TIMEOUT"
    FETCH_CANCELLED = "FETCH_CANCELLED"
    CROSS_ORIGIN_BLOCKED = "CROSS_ORIGIN_BLOCKED"
    ENDPOINT_NOT_FOUND = "ENDPOINT_NOT_FOUND"
    CACHE_STORAGE_ERROR = "CACHE_STORAGE_ERROR"
    INVALID_URL = "INVALID_URL"


class LinkDecoError(Exception):
    """Base class for every expected failure raised by linkdeco.

    Extensions catch it to render a fallback presentation; the MCP layer
    serialises it into the tool error envelope. Business logic lets it
    propagate unchanged so the message and type reach the caller.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class FetchError(LinkDecoError):
    """Network, DNS or HTTP status failure while fetching a URL.

    ``status`` carries the HTTP status code when one is known. ``cached`` is
    True when the error was replayed from a negative cache entry instead of a
    live request.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        cached: bool = False,
        code: ErrorCode = ErrorCode.FETCH_FAILED,
        suggestion: str = "The remote site may be temporarily unavailable.",
        recoverable: bool = True,
    ) -> None:
        super().__init__(code, message, suggestion, recoverable)
        self.status = status
        self.cached = cached


class FetchTimeoutError(FetchError):
    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            code=ErrorCode.FETCH_TIMEOUT,
            suggestion="The site took too long to respond.",
        )


class FetchCancelledError(FetchError):
    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(
            message,
            code=ErrorCode.FETCH_CANCELLED,
            suggestion="The caller cancelled the operation.",
            recoverable=False,
        )


class CrossOriginError(FetchError):
    """Fetch blocked by a cross-origin policy of the hosting runtime."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message,
            code=ErrorCode.CROSS_ORIGIN_BLOCKED,
            suggestion="This site blocks cross-origin requests.",
            recoverable=False,
        )


class EndpointNotFoundError(LinkDecoError):
    def __init__(self, url: str) -> None:
        super().__init__(
            ErrorCode.ENDPOINT_NOT_FOUND,
            f"No oEmbed provider found for URL: {url}",
            suggestion="Use a card block for sites without an oEmbed endpoint.",
        )
        self.url = url


class CacheStorageError(LinkDecoError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.CACHE_STORAGE_ERROR, message, recoverable=True)


class InvalidUrlError(LinkDecoError):
    def __init__(self, url: str) -> None:
        super().__init__(
            ErrorCode.INVALID_URL,
            f"Invalid URL: {url}",
            suggestion="Provide an absolute http(s) URL.",
        )
        self.url = url


def status_from_error(error: BaseException) -> int | None:
    """Return the HTTP status carried by ``error`` or embedded in its message."""
    status = getattr(error, "status", None)
    if isinstance(status, int):
        return status
    match = _STATUS_IN_MESSAGE.search(str(error))
    return int(match.group(1)) if match else None


def is_cross_origin_error(error: BaseException) -> bool:
    return isinstance(error, CrossOriginError)


def format_error_info(error: BaseException | None) -> str | None:
    """Format an error as ``TypeName[message]`` for fallback rendering."""
    if error is None:
        return None
    type_name = type(error).__name__
    message = str(error)
    return f"{type_name}[{message}]" if message else type_name
