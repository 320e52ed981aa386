"""
Background Classifier
=====================
Decides whether a bitmap row is plain background and therefore safe to cut
through. A small per-channel tolerance absorbs anti-aliasing noise around
rendered glyphs and shapes; an exact match would almost never succeed.
"""

from __future__ import annotations

import numpy as np

from .models import RenderedBitmap, RGBColor

DEFAULT_TOLERANCE = 5


def background_mask(
    pixels: np.ndarray,
    background: RGBColor,
    tolerance: int = DEFAULT_TOLERANCE,
) -> np.ndarray:
    """Per-pixel background verdict for any (..., C) pixel array. Alpha is ignored."""
    rgb = pixels[..., :3].astype(np.int16)
    bg = np.asarray(background.as_tuple(), dtype=np.int16)
    return np.all(np.abs(rgb - bg) <= tolerance, axis=-1)


def is_background_row(
    bitmap: RenderedBitmap,
    row_index: int,
    background: RGBColor,
    tolerance: int = DEFAULT_TOLERANCE,
) -> bool:
    """
    True iff every pixel in the row is within ``tolerance`` of ``background``
    on each of R, G and B.

    Raises:
        IndexError: If ``row_index`` is outside the bitmap.
    """
    if row_index < 0 or row_index >= bitmap.height:
        raise IndexError(
            f"Row {row_index} outside bitmap of height {bitmap.height}"
        )
    return bool(background_mask(bitmap.pixels[row_index], background, tolerance).all())
