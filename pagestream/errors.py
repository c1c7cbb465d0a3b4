"""Exception hierarchy for the page-stream document.

Only configuration failures at open time are fatal to a document. Per-page
failures (protocol, fetch, decode, invalid page) are absorbed by the page
pipeline and replaced with the placeholder image.
"""

from __future__ import annotations

from typing import Optional


class PageStreamError(Exception):
    """Base class for all page-stream errors."""


class ConfigError(PageStreamError, ValueError):
    """The document description is missing, unreadable or incomplete."""


class InitializationError(PageStreamError, RuntimeError):
    """The document could not be opened."""


class ProtocolError(PageStreamError):
    """The page URL is malformed or uses a scheme other than http/https."""

    def __init__(self, scheme: str, url: str, reason: str = "") -> None:
        super().__init__(reason or f"Unsupported URL scheme {scheme!r} in {url}")
        self.scheme = scheme
        self.url = url


class FetchError(PageStreamError):
    """A page request timed out or did not answer with HTTP 200."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = "") -> None:
        detail = f"HTTP {status} {reason}".strip() if status is not None else reason
        super().__init__(f"Failed to fetch {url}: {detail}")
        self.url = url
        self.status = status
        self.reason = reason


class DecodeError(PageStreamError):
    """Page bytes are corrupt or in an unsupported format."""


class InvalidPageError(PageStreamError, IndexError):
    """Page number outside ``[1, count]``."""

    def __init__(self, pageno: int, count: int) -> None:
        super().__init__(f"Invalid page number {pageno} (document has {count} pages)")
        self.pageno = pageno
        self.count = count


class DocumentStateError(PageStreamError, RuntimeError):
    """An accessor was called while the document is not open."""


class DocumentNotOpenError(DocumentStateError):
    pass


class DocumentClosedError(DocumentStateError):
    pass


class TextEngineError(PageStreamError, RuntimeError):
    """The text/OCR engine is missing or failed."""
