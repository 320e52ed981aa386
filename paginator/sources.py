"""
Bitmap Sources
==============
The rasterization collaborator, seen through a narrow interface:

    source.produce(content) -> RenderedDocument(bitmap, headers, links, ...)

Rendering markdown and rasterizing it happen elsewhere. The shipped
implementation reads a pre-rendered tall PNG plus a JSON sidecar describing
the layout it was rendered from:

    report.png
    report.layout.json
        {
          "device_pixel_scale": 2.0,
          "layout_content_width_px": 794,
          "theme": "dark",                 # or "background": "#050A15"
          "headers": [{"level": 1, "text": "Intro", "offset_top": 0}],
          "links": [{"x": 64, "y": 120, "width": 80, "height": 18,
                     "target": "https://example.com"}]
        }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

import numpy as np
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import RasterizationError
from .models import (
    HeaderMark,
    LinkRegion,
    RenderedBitmap,
    RGBColor,
    ThemeMode,
    theme_background,
)

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".layout.json"


class LayoutMetadata(BaseModel):
    """Contents of a layout sidecar file."""
    model_config = ConfigDict(allow_inf_nan=False)

    device_pixel_scale: float = Field(default=1.0, gt=0)
    layout_content_width_px: Optional[float] = Field(default=None, gt=0)
    theme: Optional[ThemeMode] = None
    background: Optional[str] = None
    headers: list[HeaderMark] = Field(default_factory=list)
    links: list[LinkRegion] = Field(default_factory=list)

    def resolve_background(self) -> RGBColor:
        """Explicit background wins over theme; default is the light theme."""
        if self.background:
            return RGBColor.from_hex(self.background)
        return theme_background(self.theme or ThemeMode.LIGHT)


class RenderedDocument(BaseModel):
    """Everything the pagination core needs, fully materialized."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    bitmap: RenderedBitmap
    background: RGBColor
    headers: list[HeaderMark] = Field(default_factory=list)
    links: list[LinkRegion] = Field(default_factory=list)
    layout_content_width_px: Optional[float] = None


class BitmapSource(Protocol):
    """Anything that can turn document content into a bitmap + metadata."""

    def produce(self, content: str | Path) -> RenderedDocument:
        ...


def sidecar_path_for(image_path: str | Path) -> Path:
    image_path = Path(image_path)
    return image_path.with_name(image_path.stem + SIDECAR_SUFFIX)


def load_bitmap(image_path: str | Path, device_pixel_scale: float) -> RenderedBitmap:
    """Decode an image file into a RenderedBitmap (RGB, or RGBA if it has alpha)."""
    with Image.open(image_path) as img:
        has_alpha = img.mode in ("RGBA", "LA") or (
            img.mode == "P" and "transparency" in img.info
        )
        img = img.convert("RGBA" if has_alpha else "RGB")
        pixels = np.asarray(img, dtype=np.uint8).copy()
    return RenderedBitmap(pixels=pixels, device_pixel_scale=device_pixel_scale)


class SidecarImageSource:
    """Reads ``<name>.png`` together with ``<name>.layout.json``."""

    def __init__(self, require_sidecar: bool = False):
        self.require_sidecar = require_sidecar

    def produce(self, content: str | Path) -> RenderedDocument:
        """
        Load a pre-rendered bitmap and its layout metadata.

        Args:
            content: Path to the rendered image.

        Returns:
            RenderedDocument ready for pagination.

        Raises:
            FileNotFoundError: If the image (or a required sidecar) is missing.
            RasterizationError: If either file cannot be decoded.
        """
        image_path = Path(content)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        metadata = self._load_metadata(image_path)

        try:
            bitmap = load_bitmap(image_path, metadata.device_pixel_scale)
        except Exception as e:
            raise RasterizationError(
                f"Cannot decode image {image_path}: {e}"
            ) from e

        logger.info(
            f"Loaded {image_path.name}: {bitmap.width}x{bitmap.height}px, "
            f"scale {bitmap.device_pixel_scale}, "
            f"{len(metadata.headers)} headers, {len(metadata.links)} links"
        )

        return RenderedDocument(
            name=image_path.stem,
            bitmap=bitmap,
            background=metadata.resolve_background(),
            headers=metadata.headers,
            links=metadata.links,
            layout_content_width_px=metadata.layout_content_width_px,
        )

    def _load_metadata(self, image_path: Path) -> LayoutMetadata:
        sidecar = sidecar_path_for(image_path)
        if not sidecar.exists():
            if self.require_sidecar:
                raise FileNotFoundError(f"Layout sidecar not found: {sidecar}")
            logger.warning(
                f"No layout sidecar for {image_path.name}; "
                f"paginating without links or outline"
            )
            return LayoutMetadata()

        try:
            with open(sidecar, "r", encoding="utf-8") as f:
                data = json.load(f)
            return LayoutMetadata.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise RasterizationError(
                f"Invalid layout sidecar {sidecar}: {e}"
            ) from e
