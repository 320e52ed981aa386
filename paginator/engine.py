"""
Pagination Engine
=================
Main orchestrator that combines bitmap acquisition, pagination, annotation
placement, validation and PDF output into a complete pipeline.

Usage:
    engine = PaginationEngine(config)
    result = engine.run("path/to/rendered.png")
    # result is a PaginationResult; the PDF path is result.output_pdf

Architecture:
    BitmapSource → RenderedDocument → PaginationDriver (Scanner, Slicer,
    GeometryMapper, link placement) → PdfWriter pages → AnnotationPlacer
    (outline) → ValidationEngine → PaginationResult (JSON)
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import os
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from . import __version__
from .classifier import DEFAULT_TOLERANCE
from .errors import InvalidInputError
from .geometry import GeometryMapper
from .models import (
    IssueType,
    OutputPage,
    PageGeometry,
    PaginationIssue,
    PaginationResult,
    RGBColor,
    SourceMetadata,
    ThemeMode,
    theme_background,
)
from .pdf_writer import PdfWriter
from .scanner import DEFAULT_SCAN_BUDGET_LAYOUT_PX
from .sources import BitmapSource, RenderedDocument, SidecarImageSource
from .state_machine import PaginationDriver
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass
class PaginationConfig:
    """Configuration for the pagination engine."""

    # Page geometry (mm), A4 portrait by default
    page_width_mm: float = 210.0
    page_height_mm: float = 297.0
    margin_top_mm: float = 20.0
    margin_bottom_mm: float = 20.0
    layout_content_width_px: float = 794.0

    # Break detection
    scan_budget_layout_px: float = DEFAULT_SCAN_BUDGET_LAYOUT_PX
    tolerance: int = DEFAULT_TOLERANCE
    max_scale_drift: float = 0.01

    # Background: explicit color wins over theme, theme over the sidecar
    background: Optional[str] = None
    theme: Optional[ThemeMode] = None

    # Output settings
    output_dir: str = "output"
    output_filename: Optional[str] = None
    date_stamp: bool = True
    save_report: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def page_geometry(self, layout_content_width_px: Optional[float] = None) -> PageGeometry:
        try:
            return PageGeometry(
                page_width_mm=self.page_width_mm,
                page_height_mm=self.page_height_mm,
                margin_top_mm=self.margin_top_mm,
                margin_bottom_mm=self.margin_bottom_mm,
                layout_content_width_px=(
                    layout_content_width_px or self.layout_content_width_px
                ),
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid page geometry: {e}") from e


class PaginationEngine:
    """
    Main pagination engine.

    Orchestrates the full pipeline:
        1. Bitmap + metadata acquisition
        2. Input validation
        3. Page-by-page pagination with link placement
        4. Outline assignment
        5. Validation
        6. PDF and report output
    """

    def __init__(
        self,
        config: Optional[PaginationConfig] = None,
        source: Optional[BitmapSource] = None,
    ):
        self.config = config or PaginationConfig()
        self.source = source or SidecarImageSource()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        # Configure root logger for the paginator package
        package_logger = logging.getLogger("paginator")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
            )
            package_logger.addHandler(file_handler)

    def run(
        self,
        image_path: str,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> PaginationResult:
        """
        Paginate a rendered document image into a PDF.

        Args:
            image_path: Path handed to the bitmap source.
            progress_callback: Callback(pages_done, estimated_total) per page.

        Returns:
            PaginationResult describing pages, outline, issues and output.

        Raises:
            FileNotFoundError: If the source image doesn't exist.
            InvalidInputError: If bitmap or geometry are rejected.
            RasterizationError: If the bitmap source fails.
            PdfWriteError: If the PDF cannot be written.
        """
        image_path = os.path.abspath(image_path)

        if not os.path.exists(image_path):
            raise FileNotFoundError(f"Image not found: {image_path}")

        start_time = time.time()
        logger.info(f"Starting pagination of: {image_path}")

        # ── Step 1: Acquire bitmap and layout metadata ────────────────
        logger.info("Phase 1: Bitmap acquisition")
        document = self.source.produce(image_path)

        # ── Steps 2-5: Paginate into a PDF ────────────────────────────
        output_path = Path(self.config.output_dir) / self._output_filename(document.name)
        result = self.paginate(
            document,
            output_path=output_path,
            progress_callback=progress_callback,
        )
        result.source.source_image = os.path.basename(image_path)
        result.source.file_hash = self._compute_file_hash(image_path)

        elapsed = time.time() - start_time
        logger.info(
            f"Pagination complete in {elapsed:.2f}s, "
            f"{result.page_count} pages, {len(result.outline)} bookmarks"
        )

        # ── Step 6: Save report ───────────────────────────────────────
        if self.config.save_report:
            report_file = Path(self.config.output_dir) / f"{document.name}_pagination.json"
            self._save_json(result, report_file)

        return result

    def paginate(
        self,
        document: RenderedDocument,
        output_path: Optional[Path] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> PaginationResult:
        """
        Paginate an already materialized document.

        Pages stream straight into the PDF writer; when ``output_path`` is
        None the PDF is built but not saved.
        """
        bitmap = document.bitmap
        background = self._resolve_background(document)
        geometry = self.config.page_geometry(document.layout_content_width_px)
        self._validate_settings()

        result = PaginationResult(
            paginator_version=__version__,
            source=SourceMetadata(
                name=document.name,
                width_px=bitmap.width,
                height_px=bitmap.height,
                device_pixel_scale=bitmap.device_pixel_scale,
                background=background.to_hex(),
            ),
            geometry=geometry,
        )

        validator = ValidationEngine()

        if bitmap.is_empty:
            logger.warning("Bitmap is empty; no PDF produced")
            result.issues.append(PaginationIssue(
                type=IssueType.EMPTY_BITMAP,
                severity=100,
                message=f"Bitmap is {bitmap.width}x{bitmap.height}px",
            ))
            result.report = validator.validate(
                [], 0, [], result.issues,
                headers_total=len(document.headers),
                links_total=len(document.links),
            )
            return result

        # ── Step 2: Derive conversion factors ─────────────────────────
        mapper = GeometryMapper(geometry, bitmap.width, bitmap.device_pixel_scale)
        drift = mapper.scale_drift()
        drift_issues: list[PaginationIssue] = []
        if drift > self.config.max_scale_drift:
            logger.warning(
                f"Bitmap width {bitmap.width}px disagrees with layout width "
                f"{geometry.layout_content_width_px}px × scale "
                f"{bitmap.device_pixel_scale} ({drift:.1%}); "
                f"links may drift from the image"
            )
            drift_issues.append(PaginationIssue(
                type=IssueType.SCALE_DRIFT,
                severity=40,
                message=f"Layout/bitmap width mismatch of {drift:.1%}",
                context={"drift": drift},
            ))

        # ── Step 3: Drive pagination, streaming pages into the PDF ────
        logger.info("Phase 2: Pagination")
        driver = PaginationDriver(
            bitmap,
            background,
            mapper,
            tolerance=self.config.tolerance,
            scan_budget_layout_px=self.config.scan_budget_layout_px,
        )
        estimated_pages = max(1, math.ceil(bitmap.height / driver.page_capacity_px))
        links_placed = 0

        with PdfWriter(geometry, background) as writer:

            def commit(page: OutputPage):
                nonlocal links_placed
                writer.add_page(page)
                links_placed += len(page.placed_links)
                if progress_callback:
                    progress_callback(
                        page.index + 1, max(estimated_pages, page.index + 1)
                    )

            boundaries = driver.run(document.links, page_sink=commit)

            # ── Step 4: Outline ───────────────────────────────────────
            logger.info("Phase 3: Outline")
            outline = driver.placer.assign_headers(document.headers, boundaries)
            writer.set_outline(outline)
            writer.set_metadata(title=document.name)

            if output_path is not None:
                result.output_pdf = str(writer.save(output_path))

        result.boundaries = boundaries
        result.outline = outline
        result.issues.extend(drift_issues + driver.issues)

        # ── Step 5: Validation ────────────────────────────────────────
        logger.info("Phase 4: Validation")
        result.report = validator.validate(
            boundaries,
            bitmap.height,
            outline,
            result.issues,
            headers_total=len(document.headers),
            links_total=len(document.links),
            links_placed=links_placed,
        )

        return result

    def _resolve_background(self, document: RenderedDocument) -> RGBColor:
        if self.config.background:
            return RGBColor.from_hex(self.config.background)
        if self.config.theme:
            return theme_background(self.config.theme)
        return document.background

    def _validate_settings(self):
        """Reject settings that would make pagination meaningless."""
        if self.config.tolerance < 0 or self.config.tolerance > 255:
            raise InvalidInputError(
                f"tolerance must be within 0-255, got {self.config.tolerance}"
            )
        budget = self.config.scan_budget_layout_px
        if not math.isfinite(budget) or budget < 0:
            raise InvalidInputError(
                f"scan budget must be finite and >= 0, got {budget}"
            )

    def _output_filename(self, base_name: str) -> str:
        """``<base>-<YYYYMMDD>.pdf`` unless an explicit name is configured."""
        if self.config.output_filename:
            return self.config.output_filename
        clean_name = "".join(
            c if c.isalnum() or c in "-_" else "_"
            for c in base_name
        )[:50] or "document"
        if self.config.date_stamp:
            return f"{clean_name}-{date.today().strftime('%Y%m%d')}.pdf"
        return f"{clean_name}.pdf"

    def _compute_file_hash(self, filepath: str) -> str:
        """Compute SHA-256 hash of a file."""
        sha256 = hashlib.sha256()
        with open(filepath, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)
        return sha256.hexdigest()

    def _save_json(self, result: PaginationResult, filepath: Path):
        """Save PaginationResult to JSON file."""
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            data = result.model_dump()
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            logger.info(f"Saved report: {filepath}")
        except Exception as e:
            logger.error(f"Failed to save report: {e}")
