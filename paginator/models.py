"""
Data Models
===========
Pydantic models for the pagination pipeline.
All result models are serializable to JSON for the run report.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import numpy as np
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


# ─── Enums ────────────────────────────────────────────────────────────────────


class ThemeMode(str, Enum):
    """Presentation theme the document was rendered with."""
    LIGHT = "light"
    DARK = "dark"


class IssueType(str, Enum):
    """Types of irregularities recorded during a pagination run."""
    FORCED_CUT = "forced_cut"
    HEADER_CLAMPED = "header_clamped"
    LINK_CLAMPED = "link_clamped"
    SCALE_DRIFT = "scale_drift"
    EMPTY_BITMAP = "empty_bitmap"


class DriverState(Enum):
    """States of the pagination driver."""
    SCANNING = "SCANNING"
    SLICING = "SLICING"
    PLACING = "PLACING"
    DONE = "DONE"


# ─── Colors ───────────────────────────────────────────────────────────────────


HEX_COLOR_PATTERN = re.compile(
    r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE
)


class RGBColor(BaseModel):
    """A single opaque RGB color."""
    model_config = ConfigDict(frozen=True)

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)

    @classmethod
    def from_hex(cls, value: str) -> RGBColor:
        """Parse ``#RRGGBB``; anything unparseable falls back to white."""
        match = HEX_COLOR_PATTERN.match(value.strip())
        if not match:
            return cls(r=255, g=255, b=255)
        return cls(
            r=int(match.group(1), 16),
            g=int(match.group(2), 16),
            b=int(match.group(3), 16),
        )

    def to_hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)

    def as_unit_floats(self) -> tuple[float, float, float]:
        """Channels scaled to 0..1, as PDF drawing operators expect."""
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0)


THEME_BACKGROUNDS: dict[ThemeMode, str] = {
    ThemeMode.LIGHT: "#FFFFFF",
    ThemeMode.DARK: "#050A15",
}


def theme_background(theme: ThemeMode) -> RGBColor:
    """Background color a theme renders its page canvas with."""
    return RGBColor.from_hex(THEME_BACKGROUNDS[theme])


# ─── Bitmap ───────────────────────────────────────────────────────────────────


class RenderedBitmap(BaseModel):
    """
    Rasterized document content.

    ``pixels`` is a row-major ``uint8`` array shaped (height, width, channels)
    with 3 (RGB) or 4 (RGBA) channels. The model holds a read-only view, so
    the caller's array is left untouched and nothing downstream may mutate it.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    pixels: np.ndarray = Field(exclude=True)
    device_pixel_scale: float = Field(
        gt=0,
        description="Bitmap pixels per layout pixel"
    )

    @field_validator("pixels")
    @classmethod
    def _check_pixels(cls, value: np.ndarray) -> np.ndarray:
        if not isinstance(value, np.ndarray):
            raise ValueError("pixels must be a numpy array")
        if value.ndim != 3 or value.shape[2] not in (3, 4):
            raise ValueError(
                f"pixels must be shaped (H, W, 3|4), got {value.shape}"
            )
        if value.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {value.dtype}")
        value = value.view()
        value.setflags(write=False)
        return value

    @field_validator("device_pixel_scale")
    @classmethod
    def _check_scale(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("device_pixel_scale must be finite")
        return value

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def has_alpha(self) -> bool:
        return self.pixels.shape[2] == 4

    @property
    def is_empty(self) -> bool:
        return self.height == 0 or self.width == 0


# ─── Layout Metadata ──────────────────────────────────────────────────────────


class LinkRegion(BaseModel):
    """A hyperlink hit-region in layout space."""
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    target: str

    @computed_field
    @property
    def center_y(self) -> float:
        return self.y + self.height / 2.0


class HeaderMark(BaseModel):
    """A heading's vertical position in layout space."""
    model_config = ConfigDict(allow_inf_nan=False)

    level: int = Field(ge=1, le=6)
    text: str
    offset_top: float = Field(description="Layout-space top offset (px)")


class PageGeometry(BaseModel):
    """Fixed output page geometry. Defaults are A4 portrait."""
    model_config = ConfigDict(allow_inf_nan=False)

    page_width_mm: float = Field(default=210.0, gt=0)
    page_height_mm: float = Field(default=297.0, gt=0)
    margin_top_mm: float = Field(default=20.0, ge=0)
    margin_bottom_mm: float = Field(default=20.0, ge=0)
    layout_content_width_px: float = Field(
        default=794.0,
        gt=0,
        description="Width of the laid-out content (A4 at 96 DPI)"
    )

    @computed_field
    @property
    def content_height_mm(self) -> float:
        return self.page_height_mm - self.margin_top_mm - self.margin_bottom_mm


# ─── Pagination Output Models ─────────────────────────────────────────────────


class PageBoundary(BaseModel):
    """One page's vertical extent in bitmap space: [start, end)."""
    start_offset_px: int = Field(ge=0)
    end_offset_px: int = Field(ge=0)
    forced: bool = Field(
        default=False,
        description="True when the page ends with a hard cut through content"
    )

    @computed_field
    @property
    def height_px(self) -> int:
        return self.end_offset_px - self.start_offset_px

    def contains(self, offset: float) -> bool:
        return self.start_offset_px <= offset < self.end_offset_px


class PlacedLink(BaseModel):
    """A clickable rectangle on an output page, in millimeters."""
    x_mm: float
    y_mm: float
    width_mm: float
    height_mm: float
    target: str


class OutputPage(BaseModel):
    """One materialized page, handed straight to the PDF writer."""
    index: int = Field(ge=0)
    image: bytes = Field(exclude=True, repr=False)
    width_px: int
    height_px: int
    image_height_mm: float
    placed_links: list[PlacedLink] = Field(default_factory=list)


class OutlineEntry(BaseModel):
    """A bookmark pointing at a 1-indexed output page."""
    text: str
    level: int = Field(ge=1, le=6)
    page_number: int = Field(ge=1)


class PaginationIssue(BaseModel):
    """An irregularity recorded during pagination. Never fatal."""
    type: IssueType
    severity: int = Field(
        ge=0, le=100,
        description="Severity score 0-100"
    )
    message: str
    context: Optional[dict] = None


# ─── Report / Result Models ───────────────────────────────────────────────────


class PaginationReport(BaseModel):
    """Post-pagination validation report."""
    bitmap_height_px: int = 0
    total_pages: int = 0
    forced_cuts: int = 0
    shortest_page_px: int = 0
    tallest_page_px: int = 0
    headers_total: int = 0
    headers_clamped: int = 0
    links_total: int = 0
    links_placed: int = 0
    links_clamped: int = 0
    partition_errors: list[str] = Field(default_factory=list)
    issue_breakdown: dict[str, int] = Field(default_factory=dict)

    @computed_field
    @property
    def partition_ok(self) -> bool:
        return not self.partition_errors

    @computed_field
    @property
    def clean_break_rate(self) -> float:
        if self.total_pages == 0:
            return 0.0
        return round(
            (self.total_pages - self.forced_cuts) / self.total_pages * 100,
            2
        )


class SourceMetadata(BaseModel):
    """Metadata about the source bitmap."""
    name: str = ""
    source_image: str = ""
    width_px: int = 0
    height_px: int = 0
    device_pixel_scale: float = 1.0
    background: str = "#FFFFFF"
    file_hash: str = ""


class PaginationResult(BaseModel):
    """
    Complete output of a pagination run.
    This is the top-level JSON structure written next to the PDF.
    """
    paginator_version: str = "1.0.0"
    run_timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    source: SourceMetadata = Field(default_factory=SourceMetadata)
    geometry: PageGeometry = Field(default_factory=PageGeometry)
    boundaries: list[PageBoundary] = Field(default_factory=list)
    outline: list[OutlineEntry] = Field(default_factory=list)
    issues: list[PaginationIssue] = Field(default_factory=list)
    report: PaginationReport = Field(default_factory=PaginationReport)
    output_pdf: Optional[str] = None

    @computed_field
    @property
    def page_count(self) -> int:
        return len(self.boundaries)
