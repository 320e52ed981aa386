"""
Geometry Mapper
===============
Conversions between the three coordinate spaces used during pagination:

    layout space:  unscaled pixels of the laid-out document
    bitmap space:  pixels of the rasterized bitmap (layout × device scale)
    output space:  millimeters on the generated PDF page

Two horizontal factors exist. ``px_to_mm`` maps bitmap pixels onto the page
width and drives image placement; ``dom_to_mm`` maps layout pixels onto the
page width and drives link rectangles. Both must describe the same page
width, so the mapper measures their disagreement (``scale_drift``).
"""

from __future__ import annotations

import math

from .errors import InvalidInputError
from .models import LinkRegion, PageGeometry, PlacedLink


def _require_finite_positive(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{name} must be finite and > 0, got {value}")


class GeometryMapper:
    """Conversion factors derived once per pagination run."""

    def __init__(
        self,
        geometry: PageGeometry,
        bitmap_width: int,
        device_pixel_scale: float,
    ):
        _require_finite_positive("bitmap_width", bitmap_width)
        _require_finite_positive("device_pixel_scale", device_pixel_scale)
        _require_finite_positive("page_width_mm", geometry.page_width_mm)
        _require_finite_positive("page_height_mm", geometry.page_height_mm)
        _require_finite_positive(
            "layout_content_width_px", geometry.layout_content_width_px
        )
        for name in ("margin_top_mm", "margin_bottom_mm"):
            value = getattr(geometry, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidInputError(f"{name} must be finite and >= 0")
        if geometry.content_height_mm <= 0:
            raise InvalidInputError(
                "Margins leave no room for content "
                f"({geometry.content_height_mm}mm)"
            )

        self.geometry = geometry
        self.bitmap_width = int(bitmap_width)
        self.device_pixel_scale = float(device_pixel_scale)

        self.px_to_mm = geometry.page_width_mm / self.bitmap_width
        self.mm_to_px = self.bitmap_width / geometry.page_width_mm
        self.dom_to_mm = geometry.page_width_mm / geometry.layout_content_width_px

        self.page_capacity_px = int(
            math.floor(geometry.content_height_mm * self.mm_to_px)
        )
        if self.page_capacity_px < 1:
            raise InvalidInputError(
                "Page capacity rounds down to zero bitmap rows"
            )

    # ─── Space Conversions ────────────────────────────────────────────

    def layout_to_bitmap(self, value: float) -> float:
        return value * self.device_pixel_scale

    def bitmap_to_mm(self, value_px: float) -> float:
        return value_px * self.px_to_mm

    def bitmap_to_output_y(self, y_within_page_px: float) -> float:
        """Vertical position on an output page for a row of its slice."""
        return self.geometry.margin_top_mm + y_within_page_px * self.px_to_mm

    def scale_drift(self) -> float:
        """Relative mismatch between the bitmap width and the scaled layout width."""
        expected = self.geometry.layout_content_width_px * self.device_pixel_scale
        return abs(self.bitmap_width - expected) / self.bitmap_width

    # ─── Links ────────────────────────────────────────────────────────

    def link_to_output(
        self,
        link: LinkRegion,
        page_start_px: int,
        page_end_px: int,
    ) -> PlacedLink:
        """
        Project a layout-space link rectangle onto the page covering
        bitmap rows [page_start_px, page_end_px).

        The rectangle is clipped to the page's image area so a link that
        straddles a break never spills into the margins. A link lying wholly
        outside the slice (clamped onto the first or last page) is pinned to
        the nearest edge at its own height, capped at the slice height.
        """
        top_px = self.layout_to_bitmap(link.y)
        y_on_slice_px = min(
            max(top_px - page_start_px, 0.0),
            float(page_end_px - page_start_px),
        )
        slice_height_mm = self.bitmap_to_mm(page_end_px - page_start_px)
        y_on_slice_mm = self.bitmap_to_mm(y_on_slice_px)

        x_mm = min(max(link.x * self.dom_to_mm, 0.0), self.geometry.page_width_mm)
        width_mm = min(
            link.width * self.dom_to_mm,
            self.geometry.page_width_mm - x_mm,
        )
        full_height_mm = min(link.height * self.dom_to_mm, slice_height_mm)
        cut_above_mm = self.bitmap_to_mm(max(page_start_px - top_px, 0.0))
        height_mm = min(
            link.height * self.dom_to_mm - cut_above_mm,
            slice_height_mm - y_on_slice_mm,
        )
        if top_px >= page_end_px:
            y_on_slice_mm = slice_height_mm - full_height_mm
            height_mm = full_height_mm
        elif self.layout_to_bitmap(link.y + link.height) <= page_start_px:
            y_on_slice_mm = 0.0
            height_mm = full_height_mm

        return PlacedLink(
            x_mm=x_mm,
            y_mm=self.geometry.margin_top_mm + y_on_slice_mm,
            width_mm=max(width_mm, 0.0),
            height_mm=max(height_mm, 0.0),
            target=link.target,
        )
