"""
PDF Paginator
=============
Turns a single tall rendered document bitmap into a paginated, navigable PDF.

Architecture:
    - Background Classifier: Decides whether a bitmap row is safe to cut through
    - Break-Point Scanner: Finds the nearest blank row above each hard cut
    - Page Slicer: Materializes one page image per boundary
    - Geometry Mapper: Converts between layout, bitmap and output (mm) space
    - Pagination Driver: State machine that walks the bitmap page by page
    - Annotation Placer: Re-projects links and headers onto the produced pages

Version: 1.0.0
"""

__version__ = "1.0.0"
