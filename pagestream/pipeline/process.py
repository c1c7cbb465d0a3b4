"""High-level helpers: export page images and OCR page ranges.

Both helpers walk pages sequentially; every page is fetched, decoded and
released before the next one is requested.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Optional

import cv2

from pagestream.docs.document import PageStreamDocument

logger = logging.getLogger(__name__)

PAGE_FILE_PATTERN = "page_{:04d}.png"


def parse_page_range(spec: Optional[str], count: int) -> List[int]:
    """Parse ``"1,3-5"`` style page selections.

    Doxygen:
    - @param spec: Comma-separated pages and ranges; None or empty for all pages.
    - @param count: Number of pages in the document.
    - @return: Sorted unique page numbers within ``[1, count]``.
    - @throws ValueError: On malformed input.
    """
    if not spec:
        return list(range(1, count + 1))
    pages = set()
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        start, sep, end = part.partition("-")
        first = int(start) if start.strip() else 1
        last = int(end) if sep and end.strip() else (count if sep else first)
        if first > last:
            raise ValueError(f"Invalid page range: {part!r}")
        pages.update(p for p in range(first, last + 1) if 1 <= p <= count)
    return sorted(pages)


def export_pages(
    doc: PageStreamDocument,
    out_dir: str,
    pages: Optional[Iterable[int]] = None,
    zoom: float = 1.0,
    gamma: Optional[float] = None,
) -> Dict[int, str]:
    """Render pages to PNG files.

    Doxygen:
    - @param doc: Open page-stream document.
    - @param out_dir: Output directory, created if missing.
    - @param pages: Page numbers; all pages when None.
    - @param zoom: Zoom factor for the rendered images.
    - @param gamma: Optional gamma correction.
    - @return: Mapping of page number to written file path.
    """
    os.makedirs(out_dir, exist_ok=True)
    selected = list(pages) if pages is not None else list(range(1, doc.get_pages() + 1))
    written: Dict[int, str] = {}
    for pageno in selected:
        image = doc.render_page(pageno, zoom=zoom, gamma=gamma)
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
        path = os.path.join(out_dir, PAGE_FILE_PATTERN.format(pageno))
        if not cv2.imwrite(path, image):
            logger.error("Failed to write %s", path)
            continue
        written[pageno] = path
        logger.info("Page %d written to %s", pageno, path)
    return written


def ocr_pages(
    doc: PageStreamDocument,
    pages: Optional[Iterable[int]] = None,
    zoom: float = 1.0,
) -> Dict[int, str]:
    """Recognize the text of each page through the document's text engine."""
    selected = list(pages) if pages is not None else list(range(1, doc.get_pages() + 1))
    texts: Dict[int, str] = {}
    for pageno in selected:
        texts[pageno] = doc.get_page_text(pageno, zoom=zoom)
        logger.debug("Page %d: %d characters recognized", pageno, len(texts[pageno]))
    return texts
