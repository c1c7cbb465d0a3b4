"""Drawing of page bitmaps into viewer canvases."""

from .draw import draw_page, normalize_rotation, render_region, rotate_bitmap

__all__ = [
    "draw_page",
    "normalize_rotation",
    "render_region",
    "rotate_bitmap",
]
