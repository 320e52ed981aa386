"""
CLI Interface
=============
Command-line interface for the pagination engine.

Usage:
    python -m paginator paginate <image_path> [options]
    python -m paginator batch <directory> [options]
    python -m paginator validate <report_json>
    python -m paginator info <pdf_path>
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import __version__
from .engine import PaginationConfig, PaginationEngine
from .errors import InvalidInputError, PdfWriteError, RasterizationError
from .models import ThemeMode
from .sources import sidecar_path_for

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="pdf-paginator")
def cli():
    """PDF Paginator: split a tall rendered document into a navigable PDF."""
    pass


@cli.command()
@click.argument("image_path", type=click.Path(exists=True))
@click.option(
    "--output", "-o",
    default="output",
    help="Output directory for the PDF and report",
)
@click.option(
    "--filename", "-f",
    default=None,
    help="Explicit PDF filename (defaults to <name>-<YYYYMMDD>.pdf)",
)
@click.option(
    "--no-date",
    is_flag=True,
    default=False,
    help="Do not append the date to the generated filename",
)
@click.option(
    "--theme", "-t",
    default=None,
    type=click.Choice([t.value for t in ThemeMode]),
    help="Theme the bitmap was rendered with (sets the background)",
)
@click.option(
    "--background", "-b",
    default=None,
    help="Explicit background color as #RRGGBB (overrides --theme)",
)
@click.option(
    "--page-width",
    default=210.0,
    type=float,
    help="Page width in mm",
)
@click.option(
    "--page-height",
    default=297.0,
    type=float,
    help="Page height in mm",
)
@click.option(
    "--margin-top",
    default=20.0,
    type=float,
    help="Top margin in mm",
)
@click.option(
    "--margin-bottom",
    default=20.0,
    type=float,
    help="Bottom margin in mm",
)
@click.option(
    "--layout-width",
    default=794.0,
    type=float,
    help="Layout content width in px (when the sidecar doesn't say)",
)
@click.option(
    "--scan-budget",
    default=100.0,
    type=float,
    help="How far above a hard cut to look for a blank row (layout px)",
)
@click.option(
    "--tolerance",
    default=5,
    type=int,
    help="Per-channel tolerance when matching the background",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--no-report",
    is_flag=True,
    default=False,
    help="Skip saving the JSON pagination report",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
def paginate(
    image_path: str,
    output: str,
    filename: str,
    no_date: bool,
    theme: str,
    background: str,
    page_width: float,
    page_height: float,
    margin_top: float,
    margin_bottom: float,
    layout_width: float,
    scan_budget: float,
    tolerance: int,
    log_level: str,
    log_file: str,
    no_report: bool,
    json_output: bool,
):
    """Paginate a single rendered image (with optional layout sidecar) into a PDF."""

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    config = PaginationConfig(
        page_width_mm=page_width,
        page_height_mm=page_height,
        margin_top_mm=margin_top,
        margin_bottom_mm=margin_bottom,
        layout_content_width_px=layout_width,
        scan_budget_layout_px=scan_budget,
        tolerance=tolerance,
        background=background,
        theme=ThemeMode(theme) if theme else None,
        output_dir=output,
        output_filename=filename,
        date_stamp=not no_date,
        save_report=not no_report,
        log_level=log_level,
        log_file=log_file,
    )

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]PDF Paginator v{__version__}[/]\n"
                f"[dim]Paginating: {os.path.basename(image_path)}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        engine = PaginationEngine(config)

        if not json_output:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Paginating...", total=None)

                def on_page(done: int, total: int):
                    progress.update(
                        task,
                        completed=done,
                        total=total,
                        description=f"Page {done}",
                    )

                result = engine.run(image_path, progress_callback=on_page)
                progress.update(task, total=result.page_count, completed=result.page_count)

            try:
                _display_results(result)
            except UnicodeEncodeError:
                # Windows console may not support special chars
                print(f"Pagination complete: {result.page_count} pages")
                print(f"Output: {result.output_pdf}")
        else:
            result = engine.run(image_path)
            # Output clean JSON to stdout
            print(json.dumps(
                result.model_dump(),
                indent=2,
                ensure_ascii=False,
                default=str,
            ))

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except InvalidInputError as e:
        console.print(f"[red]Invalid input:[/] {e}")
        sys.exit(1)
    except RasterizationError as e:
        console.print(f"[red]Bitmap source failed:[/] {e}")
        sys.exit(1)
    except PdfWriteError as e:
        console.print(f"[red]PDF writer failed:[/] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument("directory", type=click.Path(exists=True))
@click.option("--output", "-o", default="output", help="Output directory")
@click.option(
    "--theme", "-t",
    default=None,
    type=click.Choice([t.value for t in ThemeMode]),
    help="Theme for every image",
)
@click.option("--log-level", default="INFO", help="Logging level")
@click.option(
    "--require-sidecar",
    is_flag=True,
    default=False,
    help="Only paginate images that have a .layout.json sidecar",
)
def batch(
    directory: str,
    output: str,
    theme: str,
    log_level: str,
    require_sidecar: bool,
):
    """Batch paginate all PNG images in a directory."""

    image_files = sorted(Path(directory).glob("*.png"))
    if require_sidecar:
        image_files = [p for p in image_files if sidecar_path_for(p).exists()]

    if not image_files:
        console.print(f"[yellow]No PNG images found in: {directory}[/]")
        return

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Batch PDF Paginator[/]\n"
            f"[dim]Found {len(image_files)} images in: {directory}[/]",
            border_style="cyan",
        )
    )
    console.print()

    results = []
    errors = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(
            "Processing images...", total=len(image_files)
        )

        for image_file in image_files:
            progress.update(
                task,
                description=f"Paginating: {image_file.name}",
            )

            try:
                config = PaginationConfig(
                    output_dir=output,
                    theme=ThemeMode(theme) if theme else None,
                    log_level=log_level,
                )
                engine = PaginationEngine(config)
                result = engine.run(str(image_file))
                results.append((image_file.name, result))
            except Exception as e:
                errors.append((image_file.name, str(e)))

            progress.advance(task)

    # Display batch summary
    _display_batch_summary(results, errors)


@cli.command()
@click.argument("json_path", type=click.Path(exists=True))
def validate(json_path: str):
    """Re-display a previously saved pagination report."""

    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Pagination Report[/]\n"
            f"[dim]File: {json_path}[/]",
            border_style="cyan",
        )
    )

    _display_report_table(data.get("report", {}))


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True))
def info(pdf_path: str):
    """Display pages, outline and links of a generated PDF."""

    import fitz

    with fitz.open(pdf_path) as doc:
        toc = doc.get_toc(simple=True)
        link_count = sum(
            1
            for page in doc
            for link in page.get_links()
            if link.get("kind") == fitz.LINK_URI
        )
        first = doc[0].rect if doc.page_count else None
        metadata = doc.metadata or {}
        page_count = doc.page_count

    console.print()
    table = Table(title="PDF Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(pdf_path))
    table.add_row("Pages", str(page_count))
    table.add_row(
        "File Size",
        f"{os.path.getsize(pdf_path) / 1024 / 1024:.2f} MB",
    )
    if first is not None:
        table.add_row(
            "Page Size",
            f"{first.width * 25.4 / 72:.1f} × {first.height * 25.4 / 72:.1f} mm",
        )
    for key in ["title", "creator", "producer"]:
        val = metadata.get(key, "")
        if val:
            table.add_row(key.title(), val)
    table.add_row("Bookmarks", str(len(toc)))
    table.add_row("Links", str(link_count))
    console.print(table)

    if toc:
        outline_table = Table(title="Outline", border_style="green")
        outline_table.add_column("Level", justify="right")
        outline_table.add_column("Title", style="bold")
        outline_table.add_column("Page", justify="right")
        for level, title, page in toc:
            outline_table.add_row(str(level), "  " * (level - 1) + title, str(page))
        console.print(outline_table)

    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_results(result):
    """Display pagination results in a formatted table."""
    console.print()

    source = result.source
    table = Table(title="Source Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Name", source.name)
    table.add_row("Source Image", source.source_image)
    table.add_row("Bitmap", f"{source.width_px}×{source.height_px}px")
    table.add_row("Device Scale", str(source.device_pixel_scale))
    table.add_row("Background", source.background)
    if source.file_hash:
        table.add_row("File Hash", source.file_hash[:16] + "...")
    table.add_row("Output PDF", result.output_pdf or "(not written)")
    console.print(table)
    console.print()

    _display_report_table(result.report.model_dump())

    console.print(
        f"[dim]Paginator v{result.paginator_version} | "
        f"Pages: {result.page_count} | "
        f"Bookmarks: {len(result.outline)} | "
        f"Timestamp: {result.run_timestamp}[/]"
    )
    console.print()


def _display_report_table(report: dict):
    """Display a pagination report as a rich table."""
    table = Table(title="Pagination Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    # Status icons
    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    pages = report.get("total_pages", 0)
    table.add_row(
        "Total Pages",
        str(pages),
        "[green]✓[/]" if pages > 0 else "[red]✗[/]",
    )

    forced = report.get("forced_cuts", 0)
    rate = report.get("clean_break_rate", 0)
    table.add_row(
        "Forced Cuts",
        f"{forced} ({rate}% clean)",
        "[green]✓[/]" if forced == 0 else "[yellow]⚠[/]",
    )

    table.add_row(
        "Page Height Range",
        f"{report.get('shortest_page_px', 0)}-{report.get('tallest_page_px', 0)}px",
        "",
    )

    headers_clamped = report.get("headers_clamped", 0)
    table.add_row(
        "Headers (clamped)",
        f"{report.get('headers_total', 0)} ({headers_clamped})",
        status_icon(headers_clamped),
    )

    links_total = report.get("links_total", 0)
    links_placed = report.get("links_placed", 0)
    table.add_row(
        "Links Placed",
        f"{links_placed}/{links_total}",
        status_icon(links_total - links_placed),
    )

    partition_errors = report.get("partition_errors", [])
    table.add_row(
        "Partition Errors",
        str(len(partition_errors)),
        status_icon(len(partition_errors)),
    )

    console.print(table)
    console.print()

    breakdown = report.get("issue_breakdown", {})
    if breakdown:
        issue_table = Table(
            title="Issue Breakdown",
            border_style="yellow",
        )
        issue_table.add_column("Type", style="bold")
        issue_table.add_column("Count", justify="right")

        for itype, count in sorted(breakdown.items()):
            issue_table.add_row(itype, str(count))

        console.print(issue_table)
        console.print()


def _display_batch_summary(results, errors):
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Processing Summary", border_style="cyan")
    table.add_column("Image", style="bold")
    table.add_column("Pages", justify="right")
    table.add_column("Clean Breaks", justify="right")
    table.add_column("Bookmarks", justify="right")
    table.add_column("Status", justify="center")

    total_pages = 0
    total_forced = 0

    for name, result in results:
        pages = result.page_count
        rate = result.report.clean_break_rate

        total_pages += pages
        total_forced += result.report.forced_cuts

        status = "[green]✓[/]" if result.output_pdf else "[yellow]⚠ EMPTY[/]"
        table.add_row(
            name,
            str(pages),
            f"{rate}%",
            str(len(result.outline)),
            status,
        )

    for name, error in errors:
        table.add_row(
            name,
            "-",
            "-",
            "-",
            "[red]✗ FAILED[/]",
        )

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {total_pages} pages from "
        f"{len(results)} images, {total_forced} forced cuts, "
        f"{len(errors)} failures"
    )
    console.print()


# ─── Entry point (for python -m paginator.cli) ────────────────────────────────


if __name__ == "__main__":
    cli()
