"""Page bitmap helpers: decoding, placeholder, region extraction, gamma.

Bitmaps are numpy ``uint8`` arrays, ``H x W x 3`` RGB for color pages and
``H x W`` for grayscale pages. Every transform here either returns the array
it received unchanged (no-op) or a newly allocated array; inputs are never
modified in place.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from pagestream.errors import DecodeError

logger = logging.getLogger(__name__)

PLACEHOLDER_SIZE = (600, 800)
PLACEHOLDER_TEXT = "Page unavailable"


@dataclass(frozen=True)
class Rect:
    x0: float
    y0: float
    x1: float
    y1: float

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Rect":
        return cls(x, y, x + w, y + h)

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def scale(self, zoom: float) -> "Rect":
        return Rect(self.x0 * zoom, self.y0 * zoom, self.x1 * zoom, self.y1 * zoom)


@dataclass
class ForeignBitmap:
    """Pixel buffer in the layout expected by the OCR engine.

    24 bpp buffers hold BGR triplets; 8 bpp buffers hold gray levels and carry
    an identity palette. Rows are packed without padding.
    """

    width: int
    height: int
    bpp: int
    data: bytearray
    palette: Optional[List[Tuple[int, int, int]]] = None

    @property
    def bytes_per_pixel(self) -> int:
        return self.bpp // 8

    @property
    def stride(self) -> int:
        return self.width * self.bytes_per_pixel


def is_grayscale(bitmap: np.ndarray) -> bool:
    return bitmap.ndim == 2


def _composite_on_white(bgra: np.ndarray) -> np.ndarray:
    # Transparent areas would otherwise decode as black.
    alpha = bgra[..., 3:4].astype(np.float32) / 255.0
    bgr = bgra[..., :3].astype(np.float32)
    out = bgr * alpha + 255.0 * (1.0 - alpha)
    return np.clip(np.floor(out + 0.5), 0, 255).astype(np.uint8)


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into an RGB or grayscale bitmap.

    Doxygen:
    - @param data: Encoded image (PNG, JPEG, WebP, ...).
    - @return: ``uint8`` array, ``H x W x 3`` RGB or ``H x W`` gray.
    - @throws DecodeError: If the payload is empty, corrupt or unsupported.
    """
    if not data:
        raise DecodeError("Empty image payload")
    buf = np.frombuffer(data, dtype=np.uint8)
    try:
        img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    except cv2.error as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc
    if img is None or img.size == 0:
        raise DecodeError(f"Cannot decode image ({len(data)} bytes)")

    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = cv2.normalize(img, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    if img.ndim == 2:
        return img
    channels = img.shape[2]
    if channels == 1:
        return img[..., 0].copy()
    if channels == 4:
        return cv2.cvtColor(_composite_on_white(img), cv2.COLOR_BGR2RGB)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


@lru_cache(maxsize=4)
def _load_placeholder(path: Optional[str]) -> np.ndarray:
    if path:
        try:
            with open(path, "rb") as f:
                return decode_image(f.read())
        except (OSError, DecodeError) as exc:
            logger.error("Cannot load placeholder image %s: %s", path, exc)

    width, height = PLACEHOLDER_SIZE
    img = Image.new("L", (width, height), 255)
    draw = ImageDraw.Draw(img)
    draw.rectangle([8, 8, width - 9, height - 9], outline=96, width=4)
    font = ImageFont.load_default()
    left, top, right, bottom = draw.textbbox((0, 0), PLACEHOLDER_TEXT, font=font)
    draw.text(
        ((width - (right - left)) // 2, (height - (bottom - top)) // 2),
        PLACEHOLDER_TEXT,
        fill=0,
        font=font,
    )
    return np.array(img, dtype=np.uint8)


def placeholder_image(path: Optional[str] = None) -> np.ndarray:
    """Return a fresh copy of the placeholder bitmap.

    Doxygen:
    - @param path: Optional image file bundled with the host; when missing or
      unreadable a default placeholder is drawn with Pillow.
    - @return: New bitmap owned by the caller.
    """
    return _load_placeholder(path).copy()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_rect(rect: Rect, width: int, height: int) -> Tuple[int, int, int, int]:
    """Clamp a rectangle to bitmap bounds in whole pixels.

    Doxygen:
    - @param rect: Requested region in bitmap coordinates.
    - @param width: Bitmap width.
    - @param height: Bitmap height.
    - @return: ``(x0, y0, x1, y1)``; the full bitmap if the clamped region is empty.
    """
    x0 = max(0, _round_half_up(rect.x0))
    y0 = max(0, _round_half_up(rect.y0))
    x1 = min(width, _round_half_up(rect.x1))
    y1 = min(height, _round_half_up(rect.y1))
    if x1 - x0 <= 0 or y1 - y0 <= 0:
        logger.debug("Empty crop %s for %dx%d bitmap, using full image", rect, width, height)
        return 0, 0, width, height
    return x0, y0, x1, y1


def crop(bitmap: np.ndarray, box: Tuple[int, int, int, int]) -> np.ndarray:
    """Crop to an already clamped box; returns ``bitmap`` itself when the box covers it."""
    x0, y0, x1, y1 = box
    h, w = bitmap.shape[:2]
    if (x0, y0, x1, y1) == (0, 0, w, h):
        return bitmap
    return bitmap[y0:y1, x0:x1].copy()


def scaled_size(width: int, height: int, zoom: float) -> Tuple[int, int]:
    """Output size for a zoom factor, at least one pixel on each axis."""
    return max(1, _round_half_up(width * zoom)), max(1, _round_half_up(height * zoom))


def scale(bitmap: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """Resize to ``(width, height)``; returns ``bitmap`` itself when the size matches."""
    h, w = bitmap.shape[:2]
    new_w, new_h = size
    if (new_w, new_h) == (w, h):
        return bitmap
    shrinking = new_w * new_h < w * h
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    return cv2.resize(bitmap, (new_w, new_h), interpolation=interpolation)


@lru_cache(maxsize=16)
def _gamma_lut(gamma: float) -> np.ndarray:
    levels = np.arange(256, dtype=np.float64) / 255.0
    table = np.floor(255.0 * np.power(levels, gamma) + 0.5)
    return np.clip(table, 0, 255).astype(np.uint8)


def gamma_table(gamma: float) -> np.ndarray:
    """256-entry lookup table ``round(255 * (c / 255) ** gamma)``."""
    return _gamma_lut(float(gamma)).copy()


def apply_gamma(bitmap: np.ndarray, gamma: Optional[float]) -> np.ndarray:
    """Remap every channel through the gamma table.

    Doxygen:
    - @param bitmap: RGB or grayscale bitmap.
    - @param gamma: Exponent; ``None``, negative values and 1.0 leave the bitmap untouched.
    - @return: ``bitmap`` itself for a no-op, otherwise a new array.
    """
    if gamma is None or gamma < 0 or gamma == 1.0:
        return bitmap
    return cv2.LUT(bitmap, _gamma_lut(float(gamma)))


def extract_region(
    bitmap: np.ndarray,
    rect: Optional[Rect] = None,
    zoom: float = 1.0,
    gamma: Optional[float] = None,
) -> np.ndarray:
    """Crop, zoom and gamma-correct a region of a page bitmap.

    The crop is clamped to the bitmap; an empty crop falls back to the whole
    image. Output dimensions are ``max(1, round(crop_dim * zoom))``.

    Doxygen:
    - @param bitmap: Decoded page bitmap.
    - @param rect: Region in bitmap coordinates; None means the whole bitmap.
    - @param zoom: Scale factor applied after cropping.
    - @param gamma: Optional gamma correction.
    - @return: ``bitmap`` itself if every step was a no-op, otherwise a new array.
    """
    h, w = bitmap.shape[:2]
    box = clamp_rect(rect, w, h) if rect is not None else (0, 0, w, h)
    cropped = crop(bitmap, box)
    ch, cw = cropped.shape[:2]
    scaled = scale(cropped, scaled_size(cw, ch, zoom))
    return apply_gamma(scaled, gamma)


def identity_palette() -> List[Tuple[int, int, int]]:
    return [(i, i, i) for i in range(256)]


def to_foreign_bitmap(bitmap: np.ndarray) -> ForeignBitmap:
    """Copy a bitmap into the OCR engine layout.

    Doxygen:
    - @param bitmap: RGB or grayscale bitmap.
    - @return: 24 bpp BGR buffer, or 8 bpp gray buffer with identity palette.
    """
    h, w = bitmap.shape[:2]
    if is_grayscale(bitmap):
        data = bytearray(w * h)
        np.frombuffer(data, dtype=np.uint8).reshape(h, w)[...] = bitmap
        return ForeignBitmap(width=w, height=h, bpp=8, data=data, palette=identity_palette())

    data = bytearray(w * h * 3)
    np.frombuffer(data, dtype=np.uint8).reshape(h, w, 3)[...] = bitmap[..., ::-1]
    return ForeignBitmap(width=w, height=h, bpp=24, data=data)


def from_foreign_bitmap(fb: ForeignBitmap) -> np.ndarray:
    """Read a foreign bitmap back as an RGB or grayscale array."""
    buf = np.frombuffer(bytes(fb.data), dtype=np.uint8)
    if fb.bpp == 8:
        return buf.reshape(fb.height, fb.width).copy()
    if fb.bpp == 24:
        return buf.reshape(fb.height, fb.width, 3)[..., ::-1].copy()
    raise ValueError(f"Unsupported foreign bitmap depth: {fb.bpp} bpp")
