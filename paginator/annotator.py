"""
Annotation Placer
=================
Re-projects layout metadata onto the pages produced by the driver:

    - Links are selected per page while the page is being built, by testing
      whether the link's vertical center falls inside the page's bitmap range.
    - Headers are assigned after the fact, once every page boundary is known.

Neither step ever drops an annotation or raises: anything that lands outside
the recorded boundaries is clamped onto the nearest page and reported.
"""

from __future__ import annotations

import bisect
import logging

from .geometry import GeometryMapper
from .models import (
    HeaderMark,
    IssueType,
    LinkRegion,
    OutlineEntry,
    PageBoundary,
    PaginationIssue,
    PlacedLink,
)

logger = logging.getLogger(__name__)


def find_page_index(boundaries: list[PageBoundary], offset_px: float) -> int | None:
    """
    Index of the boundary with ``start <= offset_px < end``, or None.

    Boundaries are contiguous and sorted, so a bisect over the start
    offsets is enough.
    """
    if not boundaries:
        return None
    starts = [b.start_offset_px for b in boundaries]
    idx = bisect.bisect_right(starts, offset_px) - 1
    if idx < 0 or not boundaries[idx].contains(offset_px):
        return None
    return idx


class AnnotationPlacer:
    """
    Places links and outline entries, collecting clamping issues
    along the way.
    """

    def __init__(self, mapper: GeometryMapper):
        self.mapper = mapper
        self.issues: list[PaginationIssue] = []

    # ─── Links ────────────────────────────────────────────────────────

    def link_center_px(self, link: LinkRegion) -> float:
        return self.mapper.layout_to_bitmap(link.center_y)

    def links_for_page(
        self,
        links: list[LinkRegion],
        start_px: int,
        end_px: int,
        is_first_page: bool = False,
        is_last_page: bool = False,
    ) -> list[PlacedLink]:
        """
        Place every link whose vertical center lies in [start_px, end_px).

        Links whose center lies above the bitmap are clamped onto the first
        page and links past its end onto the last page, rather than lost.
        """
        placed: list[PlacedLink] = []
        for link in links:
            center = self.link_center_px(link)
            if start_px <= center < end_px:
                placed.append(self.mapper.link_to_output(link, start_px, end_px))
            elif (is_last_page and center >= end_px) or (
                is_first_page and center < start_px
            ):
                self.issues.append(PaginationIssue(
                    type=IssueType.LINK_CLAMPED,
                    severity=20,
                    message="Link center lies outside the bitmap",
                    context={"target": link.target, "center_px": center},
                ))
                placed.append(self.mapper.link_to_output(link, start_px, end_px))
        return placed

    # ─── Headers ──────────────────────────────────────────────────────

    def assign_headers(
        self,
        headers: list[HeaderMark],
        boundaries: list[PageBoundary],
    ) -> list[OutlineEntry]:
        """
        Map each header to the 1-indexed page containing its top offset,
        preserving document order and nesting level.
        """
        if not boundaries:
            if headers:
                logger.warning(
                    f"{len(headers)} headers but no pages; outline skipped"
                )
            return []

        last_index = len(boundaries) - 1
        outline: list[OutlineEntry] = []

        for header in headers:
            offset_px = self.mapper.layout_to_bitmap(header.offset_top)
            page_index = find_page_index(boundaries, offset_px)

            if page_index is None:
                page_index = 0 if offset_px < 0 else last_index
                self.issues.append(PaginationIssue(
                    type=IssueType.HEADER_CLAMPED,
                    severity=10,
                    message=f"Header '{header.text}' clamped to page {page_index + 1}",
                    context={"offset_px": offset_px},
                ))

            outline.append(OutlineEntry(
                text=header.text,
                level=header.level,
                page_number=page_index + 1,
            ))

        return outline
