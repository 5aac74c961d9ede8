"""Shared constants for the reconstruction pipeline.

Every layout threshold below is a heuristic default. They are gathered here
so that :class:`pdfreconx.options.LayoutOptions` can expose them as one
tunable policy layer.
"""

from __future__ import annotations

import re

__all__ = [
    "BULLET_PATTERN",
    "CELL_TOLERANCE",
    "COLUMN_GAP",
    "DEFAULT_FONT_SIZE",
    "DEFAULT_MEDIA_BOX",
    "DEFAULT_PDF_VERSION",
    "DEFAULT_PAGE_HEIGHT",
    "DEFAULT_PAGE_WIDTH",
    "DECIMAL_PATTERN",
    "GRID_SNAP_TOLERANCE",
    "HEADING_SIZES",
    "IDENTITY_MATRIX",
    "IMAGE_CODEC_FILTERS",
    "Matrix",
    "MAX_FORM_DEPTH",
    "MIN_CELL_SIZE",
    "MIN_TABLE_COLUMNS",
    "MIN_TABLE_ROWS",
    "PARAGRAPH_GAP_RATIO",
    "SAME_LINE_RATIO",
    "SEGMENT_AXIS_TOLERANCE",
    "SOFT_HYPHEN",
    "STRIKE_OFFSET_RATIO",
    "STRIKE_TOLERANCE_RATIO",
    "UNDERLINE_RATIO",
    "UNSUPPORTED_FILTERS",
    "WORD_GAP",
]

Matrix = tuple[float, float, float, float, float, float]

IDENTITY_MATRIX: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

DEFAULT_PDF_VERSION = "1.4"
DEFAULT_PAGE_WIDTH = 612.0
DEFAULT_PAGE_HEIGHT = 792.0
DEFAULT_MEDIA_BOX = (0.0, 0.0, DEFAULT_PAGE_WIDTH, DEFAULT_PAGE_HEIGHT)
DEFAULT_FONT_SIZE = 12.0
MAX_FORM_DEPTH = 8

# Stream filters
IMAGE_CODEC_FILTERS = {
    "/DCTDecode": "jpg",
    "/DCT": "jpg",
    "/JPXDecode": "jp2",
}
UNSUPPORTED_FILTERS = {"/CCITTFaxDecode", "/CCF", "/JBIG2Decode"}

# Geometry
SEGMENT_AXIS_TOLERANCE = 0.5

# Decorations
UNDERLINE_RATIO = 0.5
STRIKE_OFFSET_RATIO = 0.3
STRIKE_TOLERANCE_RATIO = 0.3

# Tables
GRID_SNAP_TOLERANCE = 2.0
MIN_CELL_SIZE = 5.0
CELL_TOLERANCE = 2.0
MIN_TABLE_ROWS = 2
MIN_TABLE_COLUMNS = 2

# Paragraphs
PARAGRAPH_GAP_RATIO = 1.5
COLUMN_GAP = 100.0
SAME_LINE_RATIO = 0.5
WORD_GAP = 2.0
HEADING_SIZES = (24.0, 18.0, 16.0)
SOFT_HYPHEN = "\u00ad"

BULLET_PATTERN = re.compile(r"^(?P<marker>[•‣◦▪⁃–—·∙\-*])\s+")
DECIMAL_PATTERN = re.compile(r"^(?P<marker>\(?\d+(?:[\.)]|\)))\s+")
