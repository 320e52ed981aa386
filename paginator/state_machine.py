"""
Pagination Driver
=================
Deterministic state machine that walks a tall bitmap from top to bottom,
emitting one output page per iteration:

    SCANNING → SLICING → PLACING → (next page) … → DONE

Each page is handed to a sink as soon as it is built; the driver keeps only
the ordered list of page boundaries, which the annotation placer needs
afterwards to assign headers.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .annotator import AnnotationPlacer
from .classifier import DEFAULT_TOLERANCE
from .geometry import GeometryMapper
from .models import (
    DriverState,
    IssueType,
    LinkRegion,
    OutputPage,
    PageBoundary,
    PaginationIssue,
    RenderedBitmap,
    RGBColor,
)
from .scanner import DEFAULT_SCAN_BUDGET_LAYOUT_PX, find_break, scan_window_px
from .slicer import encode_png, slice_page

logger = logging.getLogger(__name__)

PageSink = Callable[[OutputPage], None]


class PaginationDriver:
    """
    Finite state machine that turns a RenderedBitmap into an ordered,
    contiguous list of PageBoundary values plus one OutputPage per boundary.
    """

    def __init__(
        self,
        bitmap: RenderedBitmap,
        background: RGBColor,
        mapper: GeometryMapper,
        tolerance: int = DEFAULT_TOLERANCE,
        scan_budget_layout_px: float = DEFAULT_SCAN_BUDGET_LAYOUT_PX,
        page_capacity_px: Optional[int] = None,
        scan_window: Optional[int] = None,
    ):
        self.bitmap = bitmap
        self.background = background
        self.mapper = mapper
        self.tolerance = tolerance
        self.page_capacity_px = page_capacity_px or mapper.page_capacity_px
        self.scan_window = (
            scan_window
            if scan_window is not None
            else scan_window_px(bitmap.device_pixel_scale, scan_budget_layout_px)
        )
        self.placer = AnnotationPlacer(mapper)
        self.reset()

    def reset(self):
        """Reset the state machine for a fresh pagination run."""
        self.state = DriverState.SCANNING
        self.y_offset = 0
        self.page_index = 0
        self.boundaries: list[PageBoundary] = []
        self.placer.issues = []
        self._issues: list[PaginationIssue] = []

    @property
    def issues(self) -> list[PaginationIssue]:
        return self._issues + self.placer.issues

    def run(
        self,
        links: Optional[list[LinkRegion]] = None,
        page_sink: Optional[PageSink] = None,
    ) -> list[PageBoundary]:
        """
        Paginate the whole bitmap.

        Args:
            links: Layout-space link regions to place on the pages.
            page_sink: Callable receiving each OutputPage once committed.

        Returns:
            The ordered page boundaries covering [0, bitmap.height).
        """
        self.reset()
        links = links or []

        if self.bitmap.is_empty:
            logger.warning("Empty bitmap; no pages produced")
            self.state = DriverState.DONE
            return self.boundaries

        logger.info(
            f"Paginating {self.bitmap.width}x{self.bitmap.height}px bitmap "
            f"(capacity {self.page_capacity_px}px/page, "
            f"scan window {self.scan_window}px)"
        )

        while self.state != DriverState.DONE:
            self._step(links, page_sink)

        logger.info(f"Pagination complete: {len(self.boundaries)} pages")
        return self.boundaries

    def _step(self, links: list[LinkRegion], page_sink: Optional[PageSink]):
        """Run one page through SCANNING → SLICING → PLACING."""
        height = self.bitmap.height

        # ─── 1. Scanning: choose the split ───
        hard_cut = min(self.y_offset + self.page_capacity_px, height)
        split_y = find_break(
            self.bitmap,
            self.y_offset,
            hard_cut,
            self.scan_window,
            self.background,
            self.tolerance,
        )
        forced = split_y == hard_cut and hard_cut < height
        if forced:
            self._issues.append(PaginationIssue(
                type=IssueType.FORCED_CUT,
                severity=30,
                message=f"Page {self.page_index + 1} cut through content",
                context={"offset_px": hard_cut},
            ))

        # ─── 2. Slicing: materialize the page image ───
        self.state = DriverState.SLICING
        image = slice_page(self.bitmap, self.y_offset, split_y, self.background)
        page = OutputPage(
            index=self.page_index,
            image=encode_png(image),
            width_px=image.width,
            height_px=image.height,
            image_height_mm=self.mapper.bitmap_to_mm(split_y - self.y_offset),
        )

        # ─── 3. Placing: attach links whose center falls on this page ───
        self.state = DriverState.PLACING
        page.placed_links = self.placer.links_for_page(
            links,
            self.y_offset,
            split_y,
            is_first_page=self.page_index == 0,
            is_last_page=split_y >= height,
        )

        logger.debug(
            f"Page {self.page_index + 1}: rows [{self.y_offset}, {split_y}), "
            f"{len(page.placed_links)} links"
        )

        if page_sink is not None:
            page_sink(page)

        self.boundaries.append(PageBoundary(
            start_offset_px=self.y_offset,
            end_offset_px=split_y,
            forced=forced,
        ))
        self.y_offset = split_y
        self.page_index += 1

        self.state = (
            DriverState.DONE if self.y_offset >= height else DriverState.SCANNING
        )
