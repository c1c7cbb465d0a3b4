"""High-level orchestration: page export and OCR over page ranges."""

from .process import (
    export_pages,
    ocr_pages,
    parse_page_range,
)

__all__ = [
    "export_pages",
    "ocr_pages",
    "parse_page_range",
]
