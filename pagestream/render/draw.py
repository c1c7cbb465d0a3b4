"""Rendering helpers: blit page bitmaps into viewer canvases.

Canvases are numpy arrays owned by the caller and modified in place.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from pagestream.image.processing import Rect, extract_region, scale

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def normalize_rotation(rotation: int) -> int:
    """Map any multiple of 90 degrees into {0, 90, 180, 270}."""
    rotation = int(rotation) % 360
    if rotation % 90:
        raise ValueError(f"Rotation must be a multiple of 90 degrees, got {rotation}")
    return rotation


def rotate_bitmap(bitmap: np.ndarray, rotation: int) -> np.ndarray:
    rotation = normalize_rotation(rotation)
    if rotation == 0:
        return bitmap
    return cv2.rotate(bitmap, _ROTATIONS[rotation])


def _match_channels(bitmap: np.ndarray, target: np.ndarray) -> np.ndarray:
    if target.ndim == bitmap.ndim:
        return bitmap
    if target.ndim == 3:
        return cv2.cvtColor(bitmap, cv2.COLOR_GRAY2RGB)
    return cv2.cvtColor(bitmap, cv2.COLOR_RGB2GRAY)


def draw_page(bitmap: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Scale a page bitmap to the canvas size and copy it in.

    Doxygen:
    - @param bitmap: Page bitmap (RGB or gray).
    - @param target: Canvas array, modified in place.
    - @return: The canvas.
    """
    th, tw = target.shape[:2]
    scaled = _match_channels(scale(bitmap, (tw, th)), target)
    target[...] = scaled
    return target


def render_region(
    bitmap: np.ndarray,
    rect: Optional[Rect] = None,
    zoom: float = 1.0,
    rotation: int = 0,
    gamma: Optional[float] = None,
) -> np.ndarray:
    """Extract a zoomed, gamma-corrected region and rotate it for display."""
    region = extract_region(bitmap, rect, zoom, gamma)
    return rotate_bitmap(region, rotation)
