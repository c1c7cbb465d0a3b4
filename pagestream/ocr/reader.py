"""Text engine interface and a Tesseract-backed implementation.

The document hands page pixels to the engine as a :class:`ForeignBitmap`
and gets back word and line geometry in bitmap coordinates. Mapping those
coordinates back to page space is the document's job.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import numpy as np
import pandas as pd
import pytesseract
from sklearn.cluster import KMeans

from pagestream.errors import TextEngineError
from pagestream.image.processing import ForeignBitmap, from_foreign_bitmap

logger = logging.getLogger(__name__)


class TextEngine(Protocol):
    """Narrow capability the document delegates text queries to."""

    def get_text_boxes(self, bitmap: ForeignBitmap) -> List[Dict[str, Any]]:
        """Return line dicts (text, x, y, width, height, words) in reading order."""
        ...

    def get_word_from_position(self, bitmap: ForeignBitmap, x: float, y: float) -> Optional[Dict[str, Any]]:
        """Return the word box containing the point, or None."""
        ...

    def get_text(self, bitmap: ForeignBitmap) -> str:
        """Return all recognized text in reading order."""
        ...


def build_word_frame(data: Dict[str, Any], conf_threshold: float = 0) -> pd.DataFrame:
    """Turn ``pytesseract.image_to_data`` output into a clean word frame.

    Doxygen:
    - @param data: Dict returned with ``output_type=Output.DICT``.
    - @param conf_threshold: Words at or below this confidence are dropped.
    - @return: DataFrame with one row per recognized word.
    """
    df = pd.DataFrame(data)
    if df.empty:
        return df
    df['conf'] = pd.to_numeric(df['conf'], errors='coerce').fillna(-1)
    df = df[df['conf'] > conf_threshold].copy()
    df['text'] = df['text'].fillna('').astype(str).str.strip()
    return df[df['text'] != '']


def group_words_to_lines(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Group words sharing block/paragraph/line numbers into line boxes."""
    if df.empty:
        return []
    lines: List[Dict[str, Any]] = []
    for _, g in df.groupby(['block_num', 'par_num', 'line_num'], sort=True):
        g = g.sort_values('left')
        words = [
            {
                'text': str(row.text),
                'x': int(row.left),
                'y': int(row.top),
                'width': int(row.width),
                'height': int(row.height),
                'confidence': float(row.conf),
            }
            for row in g.itertuples(index=False)
        ]
        x = int(g['left'].min())
        y = int(g['top'].min())
        lines.append({
            'text': ' '.join(w['text'] for w in words),
            'x': x,
            'y': y,
            'width': int((g['left'] + g['width']).max() - x),
            'height': int((g['top'] + g['height']).max() - y),
            'confidence': float(g['conf'].mean()),
            'words': words,
        })
    return lines


def _by_position(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(lines, key=lambda d: (d['y'], d['x']))


def order_lines_by_columns(lines: List[Dict[str, Any]], max_cols: int = 2) -> List[Dict[str, Any]]:
    """Order lines column by column, left to right, top to bottom.

    Columns are found by clustering line centers with KMeans; a second
    column is only accepted when it cuts the inertia sharply.

    Doxygen:
    - @param lines: Line dicts with x, y, width.
    - @param max_cols: Upper bound on detected columns.
    - @return: Lines in reading order.
    """
    if len(lines) < 4 or max_cols < 2:
        return _by_position(lines)

    xs = np.array([ln['x'] + ln['width'] / 2 for ln in lines], dtype=float).reshape(-1, 1)
    k_max = min(max_cols, len(lines) // 2)
    inertias = [
        KMeans(n_clusters=k, random_state=42, n_init='auto').fit(xs).inertia_
        for k in range(1, k_max + 1)
    ]
    best_k = 1
    for k in range(2, k_max + 1):
        if inertias[k - 1] < 0.2 * inertias[0]:
            best_k = k
            break
    if best_k == 1:
        return _by_position(lines)

    labels = KMeans(n_clusters=best_k, random_state=42, n_init='auto').fit(xs).labels_
    cols: List[List[Dict[str, Any]]] = [[] for _ in range(best_k)]
    for label, line in zip(labels, lines):
        cols[label].append(line)
    cols.sort(key=lambda col: float(np.mean([ln['x'] for ln in col])))
    ordered: List[Dict[str, Any]] = []
    for col in cols:
        ordered.extend(_by_position(col))
    return ordered


def word_at_position(lines: List[Dict[str, Any]], x: float, y: float) -> Optional[Dict[str, Any]]:
    """Find the word box containing ``(x, y)``.

    Doxygen:
    - @param lines: Line dicts carrying a ``words`` list.
    - @param x: Horizontal position in bitmap coordinates.
    - @param y: Vertical position in bitmap coordinates.
    - @return: Copy of the word dict, or None.
    """
    for line in lines:
        for word in line.get('words', []):
            if word['x'] <= x < word['x'] + word['width'] and word['y'] <= y < word['y'] + word['height']:
                return dict(word)
    return None


def lines_to_text(lines: List[Dict[str, Any]]) -> str:
    return '\n'.join(ln['text'] for ln in lines if ln.get('text'))


class TesseractTextEngine:
    """:class:`TextEngine` backed by pytesseract.

    Doxygen:
    - @param lang: Tesseract language(s), e.g. ``'eng'`` or ``'rus+eng'``.
    - @param conf_threshold: Minimum word confidence to keep.
    - @param max_cols: Maximum number of text columns to detect.
    """

    def __init__(self, lang: str = 'eng', conf_threshold: float = 30, max_cols: int = 2) -> None:
        self.lang = lang
        self.conf_threshold = conf_threshold
        self.max_cols = max_cols

    def _image_to_data(self, bitmap: ForeignBitmap) -> Dict[str, Any]:
        img = from_foreign_bitmap(bitmap)
        try:
            return pytesseract.image_to_data(img, lang=self.lang, output_type=pytesseract.Output.DICT)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError) as exc:
            logger.error("Tesseract failed on %dx%d bitmap: %s", bitmap.width, bitmap.height, exc)
            raise TextEngineError(f"Tesseract failed: {exc}") from exc

    def get_text_boxes(self, bitmap: ForeignBitmap) -> List[Dict[str, Any]]:
        df = build_word_frame(self._image_to_data(bitmap), conf_threshold=self.conf_threshold)
        lines = group_words_to_lines(df)
        logger.debug("Recognized %d lines on %dx%d bitmap", len(lines), bitmap.width, bitmap.height)
        return order_lines_by_columns(lines, max_cols=self.max_cols)

    def get_word_from_position(self, bitmap: ForeignBitmap, x: float, y: float) -> Optional[Dict[str, Any]]:
        return word_at_position(self.get_text_boxes(bitmap), x, y)

    def get_text(self, bitmap: ForeignBitmap) -> str:
        return lines_to_text(self.get_text_boxes(bitmap))
