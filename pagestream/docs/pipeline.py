"""Page pipeline: cached fetch, decode with placeholder fallback, metrics.

All mutable document state lives in :class:`PageStreamState`, which the
document owns and passes to these functions explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import numpy as np

from pagestream.docs.cache import (
    PAGE_METRICS_CACHE_SIZE,
    RAW_PAGE_CACHE_SIZE,
    BoundedPageCache,
)
from pagestream.errors import DecodeError, FetchError, InvalidPageError, ProtocolError
from pagestream.image.processing import decode_image
from pagestream.net.client import PageFetcher

logger = logging.getLogger(__name__)

COVER_PAGE = 1

PlaceholderFactory = Callable[[], np.ndarray]


def _raw_cache() -> BoundedPageCache[bytes]:
    return BoundedPageCache(RAW_PAGE_CACHE_SIZE, name="page data cache")


def _metrics_cache() -> BoundedPageCache[Tuple[int, int]]:
    return BoundedPageCache(PAGE_METRICS_CACHE_SIZE, name="page size cache")


@dataclass
class PageStreamState:
    page_data: BoundedPageCache[bytes] = field(default_factory=_raw_cache)
    page_sizes: BoundedPageCache[Tuple[int, int]] = field(default_factory=_metrics_cache)
    cover_image_data: Optional[bytes] = None

    def reset(self) -> None:
        self.page_data.clear()
        self.page_sizes.clear()
        self.cover_image_data = None


def check_page_number(pageno: int, count: int) -> None:
    if pageno < 1 or pageno > count:
        raise InvalidPageError(pageno, count)


def get_or_download_page_data(state: PageStreamState, fetcher: PageFetcher, pageno: int) -> bytes:
    """Return raw page bytes from the cache, downloading them on a miss.

    Doxygen:
    - @param state: Document state holding the raw page cache.
    - @param fetcher: HTTP fetcher for the document.
    - @param pageno: 1-based page number.
    - @return: Raw page bytes.
    - @throws ProtocolError: Disallowed URL scheme.
    - @throws FetchError: Timeout or non-200 response.
    """
    cached = state.page_data.get(pageno)
    if cached is not None:
        logger.debug("Using cached page %d", pageno)
        return cached

    logger.debug("Page %d not cached, downloading", pageno)
    data = fetcher.fetch(pageno)
    state.page_data.put(pageno, data)
    if pageno == COVER_PAGE:
        state.cover_image_data = data
    return data


def decode_page(
    state: PageStreamState,
    fetcher: PageFetcher,
    pageno: int,
    placeholder: PlaceholderFactory,
) -> np.ndarray:
    """Fetch and decode one page, substituting the placeholder on failure."""
    try:
        data = get_or_download_page_data(state, fetcher, pageno)
    except ProtocolError as exc:
        logger.error("Page %d: %s", pageno, exc)
        return placeholder()
    except FetchError as exc:
        logger.warning("Page %d: %s", pageno, exc)
        return placeholder()

    try:
        return decode_image(data)
    except DecodeError as exc:
        logger.error("Failed to render page %d: %s", pageno, exc)
        return placeholder()


def get_page_image(
    state: PageStreamState,
    fetcher: PageFetcher,
    pageno: int,
    count: int,
    placeholder: PlaceholderFactory,
) -> np.ndarray:
    """Produce the bitmap for a page and record its size.

    Never raises for per-page failures: invalid page numbers, fetch errors
    and decode errors all yield the placeholder bitmap. Invalid page numbers
    do not touch the network or the metrics cache.

    Doxygen:
    - @param state: Document state.
    - @param fetcher: HTTP fetcher for the document.
    - @param pageno: 1-based page number.
    - @param count: Number of pages in the document.
    - @param placeholder: Factory returning a fresh placeholder bitmap.
    - @return: New bitmap owned by the caller.
    """
    try:
        check_page_number(pageno, count)
    except InvalidPageError as exc:
        logger.warning("%s", exc)
        return placeholder()

    image = decode_page(state, fetcher, pageno, placeholder)
    h, w = image.shape[:2]
    state.page_sizes.put(pageno, (w, h))
    return image


def get_cover_image_data(state: PageStreamState, fetcher: PageFetcher) -> Optional[bytes]:
    """Return page 1 bytes, fetching them if page 1 was never downloaded."""
    if state.cover_image_data is not None:
        return state.cover_image_data
    try:
        return get_or_download_page_data(state, fetcher, COVER_PAGE)
    except (ProtocolError, FetchError) as exc:
        logger.warning("Cover image unavailable: %s", exc)
        return None
