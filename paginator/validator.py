"""
Validation Engine
=================
Post-pagination validation and reporting.

After each run, generates a report covering:
    - Partition invariant (pages tile [0, height) exactly once)
    - Page count and page height range
    - Forced hard cuts through content
    - Header and link placement, including clamped annotations
    - Issue breakdown by type

Never silently ignores failures.
"""

from __future__ import annotations

import logging
from collections import Counter

from .models import (
    IssueType,
    OutlineEntry,
    PageBoundary,
    PaginationIssue,
    PaginationReport,
)

logger = logging.getLogger(__name__)


def check_partition(
    boundaries: list[PageBoundary],
    bitmap_height: int,
) -> list[str]:
    """Describe every way ``boundaries`` fails to tile [0, bitmap_height)."""
    errors: list[str] = []

    if not boundaries:
        if bitmap_height > 0:
            errors.append(f"No pages for bitmap of height {bitmap_height}")
        return errors

    if boundaries[0].start_offset_px != 0:
        errors.append(
            f"First page starts at {boundaries[0].start_offset_px}, not 0"
        )
    if boundaries[-1].end_offset_px != bitmap_height:
        errors.append(
            f"Last page ends at {boundaries[-1].end_offset_px}, "
            f"not {bitmap_height}"
        )

    for i, b in enumerate(boundaries):
        if b.start_offset_px >= b.end_offset_px:
            errors.append(
                f"Page {i + 1} has non-positive height "
                f"[{b.start_offset_px}, {b.end_offset_px})"
            )
        if i + 1 < len(boundaries):
            nxt = boundaries[i + 1]
            if b.end_offset_px != nxt.start_offset_px:
                errors.append(
                    f"Gap/overlap between page {i + 1} (ends "
                    f"{b.end_offset_px}) and page {i + 2} (starts "
                    f"{nxt.start_offset_px})"
                )

    return errors


class ValidationEngine:
    """
    Validates a finished pagination run and produces a report.
    """

    def validate(
        self,
        boundaries: list[PageBoundary],
        bitmap_height: int,
        outline: list[OutlineEntry],
        issues: list[PaginationIssue],
        headers_total: int = 0,
        links_total: int = 0,
        links_placed: int = 0,
    ) -> PaginationReport:
        """
        Run full validation on a pagination run.

        Args:
            boundaries: Page boundaries produced by the driver.
            bitmap_height: Height of the paginated bitmap in pixels.
            outline: Outline entries produced by the annotation placer.
            issues: Issues recorded by the driver and placer.
            headers_total: Number of header marks supplied.
            links_total: Number of link regions supplied.
            links_placed: Number of links attached to pages.

        Returns:
            PaginationReport with all detected issues.
        """
        report = PaginationReport(
            bitmap_height_px=bitmap_height,
            total_pages=len(boundaries),
            headers_total=headers_total,
            links_total=links_total,
            links_placed=links_placed,
        )

        report.partition_errors = check_partition(boundaries, bitmap_height)

        if boundaries:
            heights = [b.height_px for b in boundaries]
            report.shortest_page_px = min(heights)
            report.tallest_page_px = max(heights)
            report.forced_cuts = sum(1 for b in boundaries if b.forced)

        issue_counts = Counter(issue.type.value for issue in issues)
        report.issue_breakdown = dict(issue_counts)
        report.headers_clamped = issue_counts.get(IssueType.HEADER_CLAMPED.value, 0)
        report.links_clamped = issue_counts.get(IssueType.LINK_CLAMPED.value, 0)

        pages = [entry.page_number for entry in outline]
        if any(a > b for a, b in zip(pages, pages[1:])):
            logger.warning("Outline page numbers are not in document order")

        if links_placed != links_total:
            logger.warning(
                f"{links_total - links_placed} of {links_total} links "
                f"were not placed"
            )

        # Log summary
        logger.info("=" * 60)
        logger.info("PAGINATION REPORT")
        logger.info("=" * 60)
        logger.info(f"Bitmap Height: {report.bitmap_height_px}px")
        logger.info(f"Total Pages: {report.total_pages}")
        logger.info(
            f"Forced Cuts: {report.forced_cuts} "
            f"(clean breaks {report.clean_break_rate}%)"
        )
        logger.info(
            f"Page Height Range: {report.shortest_page_px}-"
            f"{report.tallest_page_px}px"
        )
        logger.info(
            f"Headers: {report.headers_total} "
            f"({report.headers_clamped} clamped)"
        )
        logger.info(
            f"Links: {report.links_placed}/{report.links_total} placed "
            f"({report.links_clamped} clamped)"
        )

        if report.partition_errors:
            for error in report.partition_errors:
                logger.error(f"  • {error}")
        else:
            logger.info("Partition: OK")

        if report.issue_breakdown:
            logger.info("Issue Breakdown:")
            for issue_type, count in sorted(report.issue_breakdown.items()):
                logger.info(f"  • {issue_type}: {count}")

        logger.info("=" * 60)

        return report
