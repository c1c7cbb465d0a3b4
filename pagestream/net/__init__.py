"""Remote page fetching over HTTP (requests)."""

from .client import (
    FILE_BLOCK_TIMEOUT,
    FILE_TOTAL_TIMEOUT,
    PageFetcher,
    build_page_url,
    check_scheme,
)

__all__ = [
    "FILE_BLOCK_TIMEOUT",
    "FILE_TOTAL_TIMEOUT",
    "PageFetcher",
    "build_page_url",
    "check_scheme",
]
