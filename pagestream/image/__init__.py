"""Image-level processing: decoding, region extraction, gamma, foreign bitmaps."""

from .processing import (
    ForeignBitmap,
    Rect,
    apply_gamma,
    clamp_rect,
    decode_image,
    extract_region,
    from_foreign_bitmap,
    gamma_table,
    placeholder_image,
    to_foreign_bitmap,
)

__all__ = [
    "ForeignBitmap",
    "Rect",
    "apply_gamma",
    "clamp_rect",
    "decode_image",
    "extract_region",
    "from_foreign_bitmap",
    "gamma_table",
    "placeholder_image",
    "to_foreign_bitmap",
]
