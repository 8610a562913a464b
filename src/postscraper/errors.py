"""Exception types raised by the scraper services."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "ContentStoreError",
    "FetchError",
    "FetchErrorKind",
    "ImportErrorKind",
    "MediaImportError",
    "ParseError",
    "ParseErrorKind",
    "ScraperError",
]


class ScraperError(Exception):
    """Base class for every error raised by :mod:`postscraper`."""


class FetchErrorKind(str, Enum):
    TRANSPORT = "transport_error"
    HTTP = "http_error"


class FetchError(ScraperError):
    """A document could not be retrieved."""

    def __init__(
        self,
        kind: FetchErrorKind,
        url: str,
        message: str = "",
        *,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.url = url
        self.status_code = status_code
        detail = message or (f"HTTP {status_code}" if status_code is not None else kind.value)
        super().__init__(f"{kind.value} for {url}: {detail}")


class ParseErrorKind(str, Enum):
    STRUCTURE = "structure_error"


class ParseError(ScraperError):
    """An article page is missing a mandatory container."""

    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class ImportErrorKind(str, Enum):
    DOWNLOAD_FAILED = "download_failed"
    STORE_REJECTED = "store_rejected"


class MediaImportError(ScraperError):
    """A media asset could not be downloaded or stored."""

    def __init__(self, kind: ImportErrorKind, source_url: str, message: str = "") -> None:
        self.kind = kind
        self.source_url = source_url
        super().__init__(f"{kind.value} for {source_url}: {message or kind.value}")


class ContentStoreError(ScraperError):
    """The content store refused a query or a write."""
