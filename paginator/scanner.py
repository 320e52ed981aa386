"""
Break-Point Scanner
===================
Moves a hard page cut upward to the nearest blank row so that lines of
content are not severed between pages.
"""

from __future__ import annotations

import logging

from .classifier import DEFAULT_TOLERANCE, is_background_row
from .models import RenderedBitmap, RGBColor

logger = logging.getLogger(__name__)

# How far above a hard cut to look for a blank row, in layout pixels.
DEFAULT_SCAN_BUDGET_LAYOUT_PX = 100


def scan_window_px(
    device_pixel_scale: float,
    layout_budget_px: float = DEFAULT_SCAN_BUDGET_LAYOUT_PX,
) -> int:
    """Convert the layout-space scan budget into bitmap rows."""
    return max(0, int(round(layout_budget_px * device_pixel_scale)))


def find_break(
    bitmap: RenderedBitmap,
    range_start: int,
    hard_cut: int,
    scan_window: int,
    background: RGBColor,
    tolerance: int = DEFAULT_TOLERANCE,
) -> int:
    """
    Pick the split offset for the page that starts at ``range_start``.

    Rows ``hard_cut - 1, hard_cut - 2, ...`` are tested bottom-up, at most
    ``scan_window`` of them and never ``range_start`` itself, so the page
    always keeps a positive height. The first background row found becomes
    the split. At the true end of content, or when no background row lies
    in the window, ``hard_cut`` is returned unchanged.
    """
    if hard_cut >= bitmap.height:
        return hard_cut

    lowest_row = max(range_start + 1, hard_cut - scan_window)

    for row in range(hard_cut - 1, lowest_row - 1, -1):
        if is_background_row(bitmap, row, background, tolerance):
            if row != hard_cut - 1:
                logger.debug(
                    f"Break moved up {hard_cut - row}px to row {row}"
                )
            return row

    logger.debug(
        f"No background row in [{lowest_row}, {hard_cut}); "
        f"hard cut at {hard_cut}"
    )
    return hard_cut
