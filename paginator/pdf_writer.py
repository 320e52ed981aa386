"""
PDF Writer
==========
Builds the output PDF with PyMuPDF (fitz).

Each OutputPage becomes one page: the full page is painted with the
background color, the page image is embedded at the top margin across the
full page width, and every placed link becomes a URI link annotation.
Outline entries become the document's bookmark tree.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from .errors import PdfWriteError
from .models import OutlineEntry, OutputPage, PageGeometry, RGBColor

logger = logging.getLogger(__name__)

POINTS_PER_MM = 72.0 / 25.4


def mm_to_pt(value_mm: float) -> float:
    return value_mm * POINTS_PER_MM


def normalize_toc_levels(entries: list[OutlineEntry]) -> list[list]:
    """
    Convert outline entries to a PyMuPDF table of contents.

    PyMuPDF requires the first entry at level 1 and no entry more than one
    level deeper than its predecessor; markdown documents routinely skip
    levels (h1 → h3). Each entry is nested one below its nearest shallower
    ancestor, so headings of equal source level stay siblings.
    """
    toc: list[list] = []
    # (source level, emitted level) of the open ancestors
    stack: list[tuple[int, int]] = []
    for entry in entries:
        while stack and stack[-1][0] >= entry.level:
            stack.pop()
        level = stack[-1][1] + 1 if stack else 1
        toc.append([level, entry.text, entry.page_number])
        stack.append((entry.level, level))
    return toc


class PdfWriter:
    """
    Accumulates pages into a fitz.Document.

    Usable as a context manager; the document is closed on exit.
    """

    def __init__(self, geometry: PageGeometry, background: RGBColor):
        self.geometry = geometry
        self.background = background
        self.doc = fitz.open()
        self.page_width_pt = mm_to_pt(geometry.page_width_mm)
        self.page_height_pt = mm_to_pt(geometry.page_height_mm)

    def __enter__(self) -> PdfWriter:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def page_count(self) -> int:
        return self.doc.page_count

    def add_page(self, page: OutputPage) -> None:
        """Append one page with its image and link annotations."""
        try:
            pdf_page = self.doc.new_page(
                width=self.page_width_pt, height=self.page_height_pt
            )

            pdf_page.draw_rect(
                pdf_page.rect,
                color=None,
                fill=self.background.as_unit_floats(),
                width=0,
            )

            top_pt = mm_to_pt(self.geometry.margin_top_mm)
            image_rect = fitz.Rect(
                0,
                top_pt,
                self.page_width_pt,
                top_pt + mm_to_pt(page.image_height_mm),
            )
            pdf_page.insert_image(image_rect, stream=page.image, keep_proportion=False)

            for link in page.placed_links:
                x0 = mm_to_pt(link.x_mm)
                y0 = mm_to_pt(link.y_mm)
                pdf_page.insert_link({
                    "kind": fitz.LINK_URI,
                    "from": fitz.Rect(
                        x0,
                        y0,
                        x0 + mm_to_pt(link.width_mm),
                        y0 + mm_to_pt(link.height_mm),
                    ),
                    "uri": link.target,
                })
        except Exception as e:
            raise PdfWriteError(
                f"Failed to write page {page.index + 1}: {e}"
            ) from e

    def set_outline(self, entries: list[OutlineEntry]) -> None:
        """Write the bookmark tree. Page numbers are clamped to the document."""
        if not entries:
            return
        last_page = max(1, self.doc.page_count)
        clamped = [
            entry.model_copy(
                update={"page_number": min(entry.page_number, last_page)}
            )
            for entry in entries
        ]
        try:
            self.doc.set_toc(normalize_toc_levels(clamped))
        except Exception as e:
            raise PdfWriteError(f"Failed to write outline: {e}") from e

    def set_metadata(self, title: str = "", subject: Optional[str] = None) -> None:
        metadata = {"title": title, "creator": "pdf-paginator"}
        if subject:
            metadata["subject"] = subject
        self.doc.set_metadata(metadata)

    def save(self, path: str | Path) -> Path:
        """Save the document, creating parent directories as needed."""
        path = Path(path)
        if self.doc.page_count == 0:
            raise PdfWriteError("Refusing to save a PDF with no pages")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.doc.save(str(path), garbage=3, deflate=True)
        except Exception as e:
            raise PdfWriteError(f"Failed to save PDF to {path}: {e}") from e
        logger.info(f"Saved PDF ({self.doc.page_count} pages): {path}")
        return path

    def close(self) -> None:
        if not self.doc.is_closed:
            self.doc.close()
