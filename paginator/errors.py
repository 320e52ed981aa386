"""
Errors
======
Exception hierarchy for the paginator.

Pagination itself is deterministic arithmetic over in-memory inputs, so its
only failure mode is bad input. Failures of the rasterization and PDF-writing
collaborators get their own classes so callers can tell them apart.
"""

from __future__ import annotations


class PaginatorError(Exception):
    """Base class for every error raised by this package."""


class PaginationError(PaginatorError):
    """Pagination-logic failure."""


class InvalidInputError(PaginationError, ValueError):
    """Bitmap, geometry or metadata rejected before pagination begins."""


class RasterizationError(PaginatorError):
    """The bitmap source could not produce a bitmap and its layout metadata."""


class PdfWriteError(PaginatorError):
    """The PDF writer could not build or save the output document."""
