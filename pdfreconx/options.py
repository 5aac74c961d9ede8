"""Option objects controlling document reconstruction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from . import constants

__all__ = ["LayoutOptions", "ReconstructionOptions"]


@dataclass(slots=True)
class LayoutOptions:
    """Heuristic thresholds used when rebuilding paragraphs and tables.

    Distances are expressed in page units (1/72 inch). ``*_ratio`` values are
    multiplied by the font size of the run being examined.
    """

    paragraph_gap_ratio: float = constants.PARAGRAPH_GAP_RATIO
    column_gap: float = constants.COLUMN_GAP
    same_line_ratio: float = constants.SAME_LINE_RATIO
    word_gap: float = constants.WORD_GAP
    heading_sizes: tuple[float, float, float] = constants.HEADING_SIZES
    underline_ratio: float = constants.UNDERLINE_RATIO
    strike_offset_ratio: float = constants.STRIKE_OFFSET_RATIO
    strike_tolerance_ratio: float = constants.STRIKE_TOLERANCE_RATIO
    grid_snap_tolerance: float = constants.GRID_SNAP_TOLERANCE
    min_cell_size: float = constants.MIN_CELL_SIZE
    cell_tolerance: float = constants.CELL_TOLERANCE
    min_table_rows: int = constants.MIN_TABLE_ROWS
    min_table_columns: int = constants.MIN_TABLE_COLUMNS
    ignore_table_borders: bool = False
    bullet_pattern: re.Pattern[str] = constants.BULLET_PATTERN
    decimal_pattern: re.Pattern[str] = constants.DECIMAL_PATTERN


@dataclass(slots=True)
class ReconstructionOptions:
    """Options controlling how a PDF buffer is turned into a document."""

    layout: LayoutOptions = field(default_factory=LayoutOptions)
    max_workers: int | None = None
    page_numbers: Sequence[int] | None = None
    extract_images: bool = True
    max_form_depth: int = constants.MAX_FORM_DEPTH
