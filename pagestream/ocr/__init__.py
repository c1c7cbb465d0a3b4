"""OCR (Optical Character Recognition) text engine.

Defines the narrow ``TextEngine`` interface the document delegates to and a
pytesseract implementation with line grouping and column ordering.
"""

from .reader import (
    TesseractTextEngine,
    TextEngine,
    build_word_frame,
    group_words_to_lines,
    lines_to_text,
    order_lines_by_columns,
    word_at_position,
)

__all__ = [
    "TesseractTextEngine",
    "TextEngine",
    "build_word_frame",
    "group_words_to_lines",
    "lines_to_text",
    "order_lines_by_columns",
    "word_at_position",
]
