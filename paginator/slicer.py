"""
Page Slicer
===========
Cuts one page-sized region out of the full bitmap and composites it onto a
background-filled canvas, producing an image ready for PDF embedding.
"""

from __future__ import annotations

import io

import numpy as np
from PIL import Image

from .models import RenderedBitmap, RGBColor


def slice_page(
    bitmap: RenderedBitmap,
    start_offset_px: int,
    end_offset_px: int,
    background: RGBColor,
) -> Image.Image:
    """
    Materialize bitmap rows [start_offset_px, end_offset_px) as an RGB image
    exactly ``bitmap.width`` wide.

    The canvas is filled with ``background`` first and the region copied on
    top; RGBA sources are alpha-composited so transparent edges take the
    page color instead of black.

    Raises:
        ValueError: If the range is empty or outside the bitmap.
    """
    if not 0 <= start_offset_px < end_offset_px <= bitmap.height:
        raise ValueError(
            f"Invalid slice [{start_offset_px}, {end_offset_px}) "
            f"for bitmap of height {bitmap.height}"
        )

    height = end_offset_px - start_offset_px
    canvas = np.empty((height, bitmap.width, 3), dtype=np.uint8)
    canvas[:, :] = background.as_tuple()

    region = bitmap.pixels[start_offset_px:end_offset_px]
    if bitmap.has_alpha:
        alpha = region[..., 3:4].astype(np.float32) / 255.0
        blended = region[..., :3] * alpha + canvas * (1.0 - alpha)
        canvas[:] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
    else:
        canvas[:] = region

    return Image.fromarray(canvas)


def encode_png(image: Image.Image) -> bytes:
    """Encode a page image as PNG bytes."""
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
