"""HTTP fetching of individual page images from a templated URL.

The fetcher performs exactly one GET per call. It never retries; callers
decide how to recover from a :class:`FetchError`.
"""

from __future__ import annotations

import logging
import time
from typing import Optional
from urllib.parse import urlsplit

import requests
import urllib3

from pagestream.config import MAX_WIDTH_PLACEHOLDER, PAGE_NUMBER_PLACEHOLDER
from pagestream.errors import FetchError, ProtocolError

logger = logging.getLogger(__name__)

# Seconds without receiving a block, and for the whole transfer.
FILE_BLOCK_TIMEOUT = 15
FILE_TOTAL_TIMEOUT = 60

ALLOWED_SCHEMES = ("http", "https")
# Upper bound for one socket read; the total deadline is checked after each.
CHUNK_SIZE = 2048


def build_page_url(template: str, pageno: int, max_width: int) -> str:
    """Fill the URL template for a 1-based page number.

    Doxygen:
    - @param template: URL containing ``{pageNumber}`` and ``{maxWidth}``.
    - @param pageno: 1-based page number; the server expects a 0-based index.
    - @param max_width: Display width in pixels.
    - @return: Request URL.
    """
    url = template.replace(PAGE_NUMBER_PLACEHOLDER, str(pageno - 1))
    return url.replace(MAX_WIDTH_PLACEHOLDER, str(int(max_width)))


def check_scheme(url: str) -> None:
    """Raise :class:`ProtocolError` unless ``url`` is a well-formed http or https URL."""
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError as exc:
        raise ProtocolError("", url, reason=f"Malformed URL {url}: {exc}") from exc
    if scheme not in ALLOWED_SCHEMES:
        raise ProtocolError(scheme, url)


class PageFetcher:
    """Download page bytes for a page-stream document.

    Doxygen:
    - @param url_template: Remote URL template from the document config.
    - @param max_width: Width substituted for ``{maxWidth}``.
    - @param username: Optional HTTP basic auth user.
    - @param password: Optional HTTP basic auth password.
    - @param block_timeout: Connect/read timeout per block, seconds.
    - @param total_timeout: Upper bound for the whole transfer, seconds.
    - @param session: requests session to use; a new one is created if omitted.
    """

    def __init__(
        self,
        url_template: str,
        max_width: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        block_timeout: float = FILE_BLOCK_TIMEOUT,
        total_timeout: float = FILE_TOTAL_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url_template = url_template
        self.max_width = int(max_width)
        self.username = username
        self.password = password
        self.block_timeout = block_timeout
        self.total_timeout = total_timeout
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def page_url(self, pageno: int) -> str:
        return build_page_url(self.url_template, pageno, self.max_width)

    def fetch(self, pageno: int) -> bytes:
        """Download the raw bytes of one page.

        Doxygen:
        - @param pageno: 1-based page number.
        - @return: Response body.
        - @throws ProtocolError: If the URL is malformed or not http/https.
        - @throws FetchError: On timeout, transport failure or non-200 status.
        """
        url = self.page_url(pageno)
        check_scheme(url)

        auth = (self.username, self.password or "") if self.username else None
        logger.debug("Downloading page %d from %s", pageno, url)
        deadline = time.monotonic() + self.total_timeout
        try:
            with self.session.get(
                url,
                headers={"Accept-Encoding": "identity"},
                auth=auth,
                timeout=(self.block_timeout, self.block_timeout),
                stream=True,
            ) as resp:
                if resp.status_code != 200:
                    logger.debug("Response headers for %s: %s", url, dict(resp.headers))
                    raise FetchError(url, resp.status_code, resp.reason or "")
                chunks = []
                # read1 returns after one socket read; the deadline is checked per read.
                while True:
                    chunk = resp.raw.read1(CHUNK_SIZE, decode_content=True)
                    if not chunk:
                        break
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise FetchError(url, reason=f"transfer exceeded {self.total_timeout}s")
        except requests.Timeout as exc:
            raise FetchError(url, reason=f"timeout: {exc}") from exc
        except (requests.RequestException, urllib3.exceptions.HTTPError, OSError) as exc:
            raise FetchError(url, reason=str(exc)) from exc

        data = b"".join(chunks)
        logger.debug("Downloaded page %d (%d bytes)", pageno, len(data))
        return data

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
