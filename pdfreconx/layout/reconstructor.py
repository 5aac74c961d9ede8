"""Rebuild paragraphs, tables and images of one page in reading order."""

from __future__ import annotations

import logging
from typing import Sequence

from ..constants import SOFT_HYPHEN
from ..model import (
    ListHint,
    StructuredElement,
    StructuredImage,
    StructuredParagraph,
    StructuredTable,
    StructuredTableCell,
    TextSpan,
)
from ..options import LayoutOptions
from ..primitives import BoundingBox, ImagePlacement, LineSegment, PositionedTextRun
from .decorations import apply_decorations
from .tables import DetectedTable, detect_tables

__all__ = ["reconstruct", "runs_to_paragraphs"]

LOGGER = logging.getLogger("pdfreconx.layout")

_TEXT, _IMAGE, _TABLE = "text", "image", "table"


def _rgb_tuple_to_hex(color: tuple[float, float, float]) -> str:
    r = int(round(max(0.0, min(color[0], 1.0)) * 255))
    g = int(round(max(0.0, min(color[1], 1.0)) * 255))
    b = int(round(max(0.0, min(color[2], 1.0)) * 255))
    return f"{r:02X}{g:02X}{b:02X}"


def reconstruct(
    texts: Sequence[PositionedTextRun],
    lines: Sequence[LineSegment],
    images: Sequence[tuple[ImagePlacement, int]] = (),
    options: LayoutOptions | None = None,
    page_index: int = 0,
) -> list[StructuredElement]:
    """Return the structured elements of a page.

    *images* pairs each placement with its index in the document image list.
    Decorations are classified against every segment before tables are
    detected, unless ``options.ignore_table_borders`` restricts them to the
    segments left over once ruled tables have been removed.
    """

    options = options or LayoutOptions()
    if options.ignore_table_borders:
        tables, free_runs, free_segments = detect_tables(texts, lines, options)
        apply_decorations(texts, free_segments, options)
    else:
        apply_decorations(texts, lines, options)
        tables, free_runs, _ = detect_tables(texts, lines, options)

    placements: list[tuple[float, float, int, str, object]] = []
    for run in free_runs:
        placements.append((run.y, run.x, run.sequence, _TEXT, run))
    for placement, image_index in images:
        top = placement.y + placement.height
        placements.append((top, placement.x, placement.sequence, _IMAGE, (placement, image_index)))
    for table in tables:
        placements.append((table.row_edges[0], table.column_edges[0], 0, _TABLE, table))
    placements.sort(key=lambda item: (-item[0], item[1], item[2]))

    elements: list[StructuredElement] = []
    pending: list[PositionedTextRun] = []
    for _y, _x, _sequence, kind, payload in placements:
        if kind == _TEXT:
            pending.append(payload)  # type: ignore[arg-type]
            continue
        elements.extend(runs_to_paragraphs(pending, options, page_index))
        pending = []
        if kind == _IMAGE:
            placement, image_index = payload  # type: ignore[misc]
            elements.append(StructuredImage(image_index, placement.bbox, placement.name, page_index))
        else:
            elements.append(_table_element(payload, options, page_index))  # type: ignore[arg-type]
    elements.extend(runs_to_paragraphs(pending, options, page_index))
    LOGGER.debug("Page %d: %d elements, %d tables", page_index + 1, len(elements), len(tables))
    return elements


def runs_to_paragraphs(
    runs: Sequence[PositionedTextRun],
    options: LayoutOptions | None = None,
    page_index: int = 0,
) -> list[StructuredParagraph]:
    """Group runs that are already in reading order into paragraphs."""

    options = options or LayoutOptions()
    groups: list[list[PositionedTextRun]] = []
    previous: PositionedTextRun | None = None
    for run in runs:
        if previous is None or _starts_paragraph(previous, run, options):
            groups.append([run])
        else:
            groups[-1].append(run)
        previous = run
    paragraphs = [_build_paragraph(group, options, page_index) for group in groups]
    return [paragraph for paragraph in paragraphs if paragraph.text.strip()]


def _starts_paragraph(previous: PositionedTextRun, run: PositionedTextRun, options: LayoutOptions) -> bool:
    size = previous.font_size
    dy = abs(previous.y - run.y)
    if dy > options.paragraph_gap_ratio * size:
        return True
    if run.x - previous.x_end > options.column_gap:
        return True
    return run.x < previous.x and dy < options.same_line_ratio * size


def _build_paragraph(
    runs: Sequence[PositionedTextRun], options: LayoutOptions, page_index: int
) -> StructuredParagraph:
    first = runs[0]
    spans: list[TextSpan] = []
    previous: PositionedTextRun | None = None
    for run in runs:
        if previous is not None and _needs_space(previous, run, options):
            spans.append(TextSpan(" ", font_name=previous.font_name, font_size=previous.font_size))
        spans.append(_span(run))
        previous = run
    paragraph = StructuredParagraph(
        spans=spans,
        heading_level=_heading_level(first.font_size, options),
        page_index=page_index,
        x=first.x,
        y=first.y,
    )
    paragraph.list_hint = _list_hint(paragraph.text, options)
    return paragraph


def _needs_space(previous: PositionedTextRun, run: PositionedTextRun, options: LayoutOptions) -> bool:
    if previous.text[-1:].isspace() or run.text[:1].isspace():
        return False
    if abs(previous.y - run.y) < options.same_line_ratio * previous.font_size:
        return run.x - previous.x_end > options.word_gap
    return not previous.text.endswith(("-", SOFT_HYPHEN))


def _span(run: PositionedTextRun) -> TextSpan:
    return TextSpan(
        text=run.text,
        font_name=run.font_name,
        font_size=run.font_size,
        bold=run.bold,
        italic=run.italic,
        underline=run.underline,
        strikethrough=run.strikethrough,
        superscript=run.rise > 0,
        subscript=run.rise < 0,
        color=_rgb_tuple_to_hex(run.fill_color),
    )


def _heading_level(size: float, options: LayoutOptions) -> int | None:
    for level, threshold in enumerate(options.heading_sizes, start=1):
        if size >= threshold:
            return level
    return None


def _list_hint(text: str, options: LayoutOptions) -> ListHint | None:
    stripped = text.lstrip()
    match = options.bullet_pattern.match(stripped)
    if match:
        return ListHint("bullet", match.group("marker"))
    match = options.decimal_pattern.match(stripped)
    if match:
        return ListHint("ordered", match.group("marker"))
    return None


def _table_element(table: DetectedTable, options: LayoutOptions, page_index: int) -> StructuredTable:
    rows: list[list[StructuredTableCell]] = []
    for row_index, row in enumerate(table.cells):
        cells: list[StructuredTableCell] = []
        for column_index, runs in enumerate(row):
            ordered = sorted(runs, key=lambda run: (-run.y, run.x, run.sequence))
            bbox = BoundingBox(
                table.column_edges[column_index],
                table.row_edges[row_index + 1],
                table.column_edges[column_index + 1],
                table.row_edges[row_index],
            )
            cells.append(StructuredTableCell(runs_to_paragraphs(ordered, options, page_index), bbox))
        rows.append(cells)
    return StructuredTable(rows=rows, bbox=table.bbox, page_index=page_index)
