"""
Command-line interface for inspecting reconstructed PDFs.
"""

import json
import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pdfreconx import __version__
from pdfreconx.engine import reconstruct_document
from pdfreconx.exceptions import PdfReconError
from pdfreconx.model import (
    OutlineItem,
    StructuredDocument,
    StructuredImage,
    StructuredParagraph,
    StructuredTable,
)
from pdfreconx.options import ReconstructionOptions

console = Console()


def parse_page_spec(page_spec):
    """Parse '1,3-5' into sorted unique 0-based page indices."""

    if not page_spec or not page_spec.strip():
        raise click.BadParameter("Page specification cannot be empty")
    pages = set()
    for token in page_spec.split(","):
        token = token.strip()
        if "-" in token:
            start_text, _, end_text = token.partition("-")
            if not (start_text.strip().isdigit() and end_text.strip().isdigit()):
                raise click.BadParameter(f"Invalid range format: '{token}'. Expected 'start-end'.")
            start, end = int(start_text), int(end_text)
            if start > end:
                raise click.BadParameter(f"Invalid range '{token}': start page ({start}) must be <= end page ({end}).")
        elif token.isdigit():
            start = end = int(token)
        else:
            raise click.BadParameter(f"Invalid page number: '{token}'")
        if start < 1:
            raise click.BadParameter(f"Invalid page '{token}': page numbers must be >= 1.")
        pages.update(range(start - 1, end))
    return sorted(pages)


def format_file_size(size_bytes):
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


def _configure_logging(verbose):
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose > 1 else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load(input_pdf, pages, workers, extract_images=True):
    options = ReconstructionOptions(
        max_workers=workers,
        page_numbers=parse_page_spec(pages) if pages else None,
        extract_images=extract_images,
    )
    data = Path(input_pdf).read_bytes()
    return reconstruct_document(data, options)


def _outline(document: StructuredDocument):
    outline = []
    for element in document.elements:
        if isinstance(element, StructuredParagraph):
            entry = {"type": "paragraph", "page": element.page_index + 1, "text": element.text}
            if element.heading_level:
                entry["heading_level"] = element.heading_level
            if element.list_hint:
                entry["list"] = {"kind": element.list_hint.kind, "marker": element.list_hint.marker}
        elif isinstance(element, StructuredTable):
            entry = {
                "type": "table",
                "page": element.page_index + 1,
                "rows": element.row_count,
                "columns": element.column_count,
                "cells": [[cell.text for cell in row] for row in element.rows],
            }
        elif isinstance(element, StructuredImage):
            image = document.images[element.image_index]
            entry = {
                "type": "image",
                "page": element.page_index + 1,
                "name": element.name,
                "format": image.format,
                "width": image.width,
                "height": image.height,
            }
        else:
            continue
        outline.append(entry)
    return outline


def _bookmark(item: OutlineItem):
    entry = {"title": item.title, "page": None if item.page_index is None else item.page_index + 1}
    if item.children:
        entry["children"] = [_bookmark(child) for child in item.children]
    return entry


def _print_warnings(document):
    if not document.warnings:
        return
    console.print(f"\n[bold yellow]{len(document.warnings)} warning(s):[/bold yellow]")
    for warning in document.warnings:
        console.print(f"  • {warning}", markup=False)


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    pdfreconx - Rebuild paragraphs, tables and images from PDF files.
    """
    pass


@cli.command(name="info")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.option("--pages", "-p", help="Pages to process (e.g., '1,3-5')", type=str)
@click.option("--workers", "-w", help="Number of page worker threads", type=click.IntRange(min=1))
@click.option("--no-images", is_flag=True, help="Skip image extraction")
@click.option("--verbose", "-v", count=True, help="Enable logging (-vv for debug output)")
def show_info(input_pdf, pages, workers, no_images, verbose):
    """
    Display a summary of the reconstructed document.

    Example:

        pdfreconx info input.pdf --pages 1-3
    """
    _configure_logging(verbose)
    try:
        document = _load(input_pdf, pages, workers, extract_images=not no_images)
    except (PdfReconError, OSError) as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)

    table = Table(title=f"PDF Reconstruction: {os.path.basename(input_pdf)}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("File Size", format_file_size(os.path.getsize(input_pdf)))
    table.add_row("PDF Version", document.version)
    table.add_row("Number of Pages", str(document.page_count))
    table.add_row("Page Size", f"{document.page_width:g} x {document.page_height:g} pt")
    table.add_row("Paragraphs", str(document.paragraph_count))
    table.add_row("Tables", str(document.table_count))
    table.add_row("Images", str(document.image_count))
    if document.outlines:
        table.add_row("Bookmarks", str(sum(len(item.flatten()) for item in document.outlines)))
    if document.metadata.title:
        table.add_row("Title", document.metadata.title)
    if document.metadata.author:
        table.add_row("Author", document.metadata.author)
    if document.metadata.producer:
        table.add_row("Producer", document.metadata.producer)
    table.add_row("Parse Time", f"{document.stats.parse_ms:.1f} ms")
    table.add_row("Page Time", f"{document.stats.pages_ms:.1f} ms")

    console.print()
    console.print(table)
    _print_warnings(document)
    console.print()


@cli.command(name="outline")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.option("--pages", "-p", help="Pages to process (e.g., '1,3-5')", type=str)
@click.option("--workers", "-w", help="Number of page worker threads", type=click.IntRange(min=1))
@click.option("--json", "as_json", is_flag=True, help="Print the outline as JSON")
@click.option("--verbose", "-v", count=True, help="Enable logging (-vv for debug output)")
def show_outline(input_pdf, pages, workers, as_json, verbose):
    """
    List the reconstructed elements in reading order.

    Examples:

        pdfreconx outline input.pdf

        pdfreconx outline input.pdf --json > outline.json
    """
    _configure_logging(verbose)
    try:
        document = _load(input_pdf, pages, workers)
    except (PdfReconError, OSError) as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)

    outline = _outline(document)
    if as_json:
        payload = {
            "elements": outline,
            "bookmarks": [_bookmark(item) for item in document.outlines],
            "page_labels": document.page_labels,
            "warnings": document.warnings,
        }
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    table = Table(title=f"Elements: {os.path.basename(input_pdf)}")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Page", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Content", style="green")
    for index, entry in enumerate(outline, start=1):
        if entry["type"] == "paragraph":
            kind = f"heading {entry['heading_level']}" if "heading_level" in entry else "paragraph"
            content = entry["text"]
        elif entry["type"] == "table":
            kind = "table"
            content = f"{entry['rows']} x {entry['columns']} cells"
        else:
            kind = "image"
            content = f"{entry['name']} ({entry['format']}, {entry['width']}x{entry['height']})"
        table.add_row(str(index), str(entry["page"]), kind, content)

    console.print()
    console.print(table)
    _print_warnings(document)
    console.print()


@cli.command(name="images")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_dir", type=click.Path(file_okay=False))
@click.option("--pages", "-p", help="Pages to process (e.g., '1,3-5')", type=str)
@click.option("--prefix", default="image", help="Prefix for output filenames", type=str)
def export_images(input_pdf, output_dir, pages, prefix):
    """
    Write every extracted image to OUTPUT_DIR.

    Example:

        pdfreconx images input.pdf ./images
    """
    try:
        document = _load(input_pdf, pages, None)
    except (PdfReconError, OSError) as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        sys.exit(1)

    os.makedirs(output_dir, exist_ok=True)
    created = []
    for index, image in enumerate(document.images, start=1):
        path = os.path.join(output_dir, f"{prefix}_{index:03d}.{image.format}")
        with open(path, "wb") as handle:
            handle.write(image.data)
        created.append(path)

    console.print(f"\n[bold green]✓ Wrote {len(created)} image(s)[/bold green]")
    console.print(f"[dim]Output directory: {os.path.abspath(output_dir)}[/dim]")
    for path in created:
        console.print(f"  • {os.path.basename(path)}")
    console.print()


if __name__ == "__main__":
    cli()
