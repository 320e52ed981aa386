"""
Module entry point for: python -m paginator

Allows running the paginator directly as a module:
    python -m paginator paginate <image_path> [options]
    python -m paginator batch <directory> [options]
    python -m paginator info <pdf_path>
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
