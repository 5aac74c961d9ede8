"""Underline and strikethrough detection from horizontal strokes."""

from __future__ import annotations

from typing import Sequence

from ..options import LayoutOptions
from ..primitives import LineSegment, PositionedTextRun

__all__ = ["apply_decorations"]


def _overlaps(segment: LineSegment, run: PositionedTextRun) -> bool:
    left = min(segment.x1, segment.x2)
    right = max(segment.x1, segment.x2)
    return left < run.x_end and right > run.x


def apply_decorations(
    runs: Sequence[PositionedTextRun],
    segments: Sequence[LineSegment],
    options: LayoutOptions | None = None,
) -> None:
    """Flag runs crossed or underscored by a horizontal segment, in place."""

    options = options or LayoutOptions()
    horizontals = [segment for segment in segments if segment.is_horizontal]
    if not horizontals:
        return
    for run in runs:
        size = run.font_size
        if size <= 0:
            continue
        strike_y = run.y + options.strike_offset_ratio * size
        for segment in horizontals:
            if not _overlaps(segment, run):
                continue
            y = (segment.y1 + segment.y2) / 2
            if y < run.y and run.y - y < options.underline_ratio * size:
                run.underline = True
            if abs(y - strike_y) < options.strike_tolerance_ratio * size:
                run.strikethrough = True
