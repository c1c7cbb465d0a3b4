"""Page-stream document: a remote image sequence exposed as a paginated document."""

from __future__ import annotations

import enum
import logging
import os
from functools import partial
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import requests

from pagestream.config import PageStreamConfig, load_config
from pagestream.docs.cache import BoundedPageCache
from pagestream.docs.model import DocumentProps, Page
from pagestream.docs.pipeline import (
    PageStreamState,
    get_cover_image_data,
    get_page_image,
)
from pagestream.errors import (
    ConfigError,
    DecodeError,
    DocumentClosedError,
    DocumentNotOpenError,
    InitializationError,
    TextEngineError,
)
from pagestream.image.processing import (
    ForeignBitmap,
    Rect,
    decode_image,
    extract_region,
    placeholder_image,
    to_foreign_bitmap,
)
from pagestream.net.client import PageFetcher
from pagestream.ocr.reader import TextEngine
from pagestream.render.draw import normalize_rotation, render_region

logger = logging.getLogger(__name__)

PROVIDER = "opdspse"
PROVIDER_NAME = "OPDS Page Stream Document"
MIME_TYPE = "application/opdspse"
PROVIDER_WEIGHT = 100

DEFAULT_DISPLAY_WIDTH = 1072


class DocumentState(enum.Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


class PageStreamDocument:
    """Document whose pages are images fetched one by one over HTTP.

    Doxygen:
    - @param file_path: Page-stream description file (``key=value`` lines).
    - @param text_engine: Engine used for text/OCR queries; optional.
    - @param display_width: Width substituted for ``{maxWidth}`` in page URLs.
    - @param placeholder_path: Image shown for pages that cannot be loaded;
      a drawn default is used when omitted.
    - @param remove_source_on_close: Delete ``file_path`` on close.
    - @param session: requests session used for page downloads.
    """

    provider = PROVIDER
    provider_name = PROVIDER_NAME

    def __init__(
        self,
        file_path: str,
        text_engine: Optional[TextEngine] = None,
        display_width: int = DEFAULT_DISPLAY_WIDTH,
        placeholder_path: Optional[str] = None,
        remove_source_on_close: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.file = file_path
        self.text_engine = text_engine
        self.display_width = int(display_width)
        self.remove_source_on_close = remove_source_on_close
        self.config: Optional[PageStreamConfig] = None
        self.session = session
        self.fetcher: Optional[PageFetcher] = None
        self.state = DocumentState.UNOPENED
        self._pages = PageStreamState()
        self._placeholder = partial(placeholder_image, placeholder_path)

    @classmethod
    def from_file(cls, file_path: str, **kwargs: Any) -> "PageStreamDocument":
        doc = cls(file_path, **kwargs)
        doc.open()
        return doc

    @classmethod
    def register(cls, registry: Any) -> None:
        registry.add_provider(PROVIDER, MIME_TYPE, cls, PROVIDER_WEIGHT)

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> "PageStreamDocument":
        """Load the configuration and enter the open state.

        Doxygen:
        - @return: self.
        - @throws InitializationError: If the configuration is missing or
          invalid, or the document is not in the unopened state. A failed
          open is permanent.
        """
        if self.state is not DocumentState.UNOPENED:
            raise InitializationError(f"Cannot open document in state {self.state.value!r}")
        try:
            self.config = load_config(self.file)
        except ConfigError as exc:
            self.state = DocumentState.FAILED
            raise InitializationError(f"Failed to read page-stream configuration: {exc}") from exc

        self.fetcher = PageFetcher(
            self.config.remote_url,
            max_width=self.display_width,
            username=self.config.username,
            password=self.config.password,
            session=self.session,
        )
        self.state = DocumentState.OPEN
        logger.info("Opened %r with %d pages", self.config.title, self.config.count)
        return self

    def close(self) -> None:
        """Release caches and remove the backing file; safe to call repeatedly."""
        if self.state is not DocumentState.OPEN:
            return
        self.state = DocumentState.CLOSED
        self._pages.reset()
        if self.fetcher is not None:
            self.fetcher.close()
        if self.remove_source_on_close and self.file and os.path.exists(self.file):
            try:
                os.remove(self.file)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", self.file, exc)
        logger.debug("Document closed")

    @property
    def is_open(self) -> bool:
        return self.state is DocumentState.OPEN

    def _check_open(self) -> PageStreamConfig:
        if self.state is DocumentState.CLOSED:
            raise DocumentClosedError("Document is closed")
        if self.state is not DocumentState.OPEN or self.config is None:
            raise DocumentNotOpenError(f"Document is not open (state {self.state.value!r})")
        return self.config

    def __enter__(self) -> "PageStreamDocument":
        if self.state is DocumentState.UNOPENED:
            self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- metadata ----------------------------------------------------------

    def get_pages(self) -> int:
        return self._check_open().count

    @property
    def page_count(self) -> int:
        return self.get_pages()

    @property
    def title(self) -> str:
        return self._check_open().title

    def get_toc(self) -> List[Dict[str, Any]]:
        self._check_open()
        return []

    def get_document_props(self) -> DocumentProps:
        config = self._check_open()
        return DocumentProps(title=config.title, pages=config.count)

    def get_cache_size(self) -> int:
        self._check_open()
        return len(self._pages.page_data)

    def clean_cache(self) -> None:
        self._check_open()
        self._pages.page_data.clear()
        self._pages.page_sizes.clear()

    @property
    def page_data_cache(self) -> BoundedPageCache[bytes]:
        return self._pages.page_data

    @property
    def size_cache(self) -> BoundedPageCache[Tuple[int, int]]:
        return self._pages.page_sizes

    # -- pages -------------------------------------------------------------

    def get_page_image(self, pageno: int) -> np.ndarray:
        """Decoded bitmap for a page; the placeholder when it cannot be loaded."""
        config = self._check_open()
        return get_page_image(self._pages, self.fetcher, pageno, config.count, self._placeholder)

    def open_page(self, pageno: int) -> Page:
        return Page.from_image(pageno, self.get_page_image(pageno))

    def get_original_page_size(self, pageno: int) -> Tuple[int, int]:
        """Pixel size of a page, from the metrics cache when possible."""
        self._check_open()
        cached = self._pages.page_sizes.get(pageno)
        if cached is not None:
            return cached
        image = self.get_page_image(pageno)
        h, w = image.shape[:2]
        return w, h

    def get_page_dimensions(self, pageno: int, zoom: float = 1.0, rotation: int = 0) -> Tuple[float, float]:
        width, height = self.get_original_page_size(pageno)
        if normalize_rotation(rotation) in (90, 270):
            width, height = height, width
        return width * zoom, height * zoom

    def get_used_bbox(self, pageno: int) -> Dict[str, float]:
        width, height = self.get_original_page_size(pageno)
        return {"x0": 0, "y0": 0, "x1": width, "y1": height}

    def get_cover_page_image(self) -> Optional[np.ndarray]:
        """Bitmap of page 1, reusing its downloaded bytes when available."""
        self._check_open()
        data = get_cover_image_data(self._pages, self.fetcher)
        if data is None:
            return None
        try:
            return decode_image(data)
        except DecodeError as exc:
            logger.error("Failed to render cover image: %s", exc)
            return None

    def render_page(
        self,
        pageno: int,
        rect: Optional[Rect] = None,
        zoom: float = 1.0,
        rotation: int = 0,
        gamma: Optional[float] = None,
    ) -> np.ndarray:
        """Render a page region for display.

        Doxygen:
        - @param pageno: 1-based page number.
        - @param rect: Region in zoomed page coordinates; None for the whole page.
        - @param zoom: Zoom factor.
        - @param rotation: Clockwise rotation in degrees (multiple of 90).
        - @param gamma: Optional gamma correction.
        - @return: New RGB or gray bitmap.
        """
        image = self.get_page_image(pageno)
        page_rect = rect.scale(1.0 / zoom) if rect is not None and zoom > 0 else rect
        return render_region(image, page_rect, zoom, rotation, gamma)

    def get_page_bitmap(
        self,
        pageno: int,
        rect: Optional[Rect] = None,
        zoom: float = 1.0,
        gamma: Optional[float] = None,
    ) -> ForeignBitmap:
        """Page pixels in the text engine layout.

        Doxygen:
        - @param pageno: 1-based page number.
        - @param rect: Region in page coordinates; None for the whole page.
        - @param zoom: Zoom factor applied after cropping.
        - @param gamma: Optional gamma correction.
        - @return: Freshly allocated foreign bitmap.
        """
        image = self.get_page_image(pageno)
        return to_foreign_bitmap(extract_region(image, rect, zoom, gamma))

    # -- text delegation ---------------------------------------------------

    def _engine(self, zoom: float) -> TextEngine:
        self._check_open()
        if zoom <= 0:
            raise ValueError(f"Zoom must be positive for text queries, got {zoom}")
        if self.text_engine is None:
            raise TextEngineError("No text engine configured for this document")
        return self.text_engine

    @staticmethod
    def _to_page_box(box: Dict[str, Any], zoom: float, x0: float = 0.0, y0: float = 0.0) -> Dict[str, Any]:
        out = dict(box)
        out["x"] = x0 + box["x"] / zoom
        out["y"] = y0 + box["y"] / zoom
        out["width"] = box["width"] / zoom
        out["height"] = box["height"] / zoom
        if "words" in box:
            out["words"] = [PageStreamDocument._to_page_box(w, zoom, x0, y0) for w in box["words"]]
        return out

    def get_text_boxes(self, pageno: int, zoom: float = 1.0) -> List[Dict[str, Any]]:
        """Recognized lines (with words) in page coordinates."""
        engine = self._engine(zoom)
        bitmap = self.get_page_bitmap(pageno, zoom=zoom)
        return [self._to_page_box(line, zoom) for line in engine.get_text_boxes(bitmap)]

    def get_word_from_position(self, pageno: int, x: float, y: float, zoom: float = 1.0) -> Optional[Dict[str, Any]]:
        """Word under a point given in page coordinates, or None."""
        engine = self._engine(zoom)
        bitmap = self.get_page_bitmap(pageno, zoom=zoom)
        word = engine.get_word_from_position(bitmap, x * zoom, y * zoom)
        if word is None:
            return None
        return self._to_page_box(word, zoom)

    def get_text_from_rect(self, pageno: int, rect: Rect, zoom: float = 1.0) -> str:
        """Text recognized inside a page-coordinate rectangle."""
        engine = self._engine(zoom)
        return engine.get_text(self.get_page_bitmap(pageno, rect=rect, zoom=zoom))

    def get_page_text(self, pageno: int, zoom: float = 1.0) -> str:
        engine = self._engine(zoom)
        return engine.get_text(self.get_page_bitmap(pageno, zoom=zoom))
