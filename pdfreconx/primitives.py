"""Positioned drawing primitives produced by content stream replay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import SEGMENT_AXIS_TOLERANCE
from .core.syntax import ObjectId

__all__ = [
    "BoundingBox",
    "ImagePlacement",
    "ImageResource",
    "LineSegment",
    "PositionedTextRun",
]


@dataclass(slots=True)
class BoundingBox:
    """Axis-aligned rectangle using PDF coordinates."""

    left: float
    bottom: float
    right: float
    top: float

    def width(self) -> float:
        return max(0.0, self.right - self.left)

    def height(self) -> float:
        return max(0.0, self.top - self.bottom)

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        return (
            self.left - tolerance <= x <= self.right + tolerance
            and self.bottom - tolerance <= y <= self.top + tolerance
        )


@dataclass(slots=True)
class PositionedTextRun:
    """Decoded text shown by a single string operand, in page space."""

    text: str
    x: float
    y: float
    width: float
    font_size: float
    font_resource: str | None = None
    font_name: str | None = None
    fill_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    rise: float = 0.0
    rotation: float = 0.0
    sequence: int = 0

    @property
    def x_end(self) -> float:
        return self.x + self.width


@dataclass(slots=True)
class LineSegment:
    """Straight stroke or rectangle edge in page space."""

    x1: float
    y1: float
    x2: float
    y2: float
    line_width: float = 1.0
    stroke_color: tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def is_horizontal(self) -> bool:
        return abs(self.y1 - self.y2) <= SEGMENT_AXIS_TOLERANCE and abs(self.x1 - self.x2) > SEGMENT_AXIS_TOLERANCE

    @property
    def is_vertical(self) -> bool:
        return abs(self.x1 - self.x2) <= SEGMENT_AXIS_TOLERANCE and abs(self.y1 - self.y2) > SEGMENT_AXIS_TOLERANCE

    @property
    def orientation(self) -> str:
        if self.is_horizontal:
            return "horizontal"
        if self.is_vertical:
            return "vertical"
        return "other"


@dataclass(slots=True)
class ImageResource:
    """Header values of an image XObject needed to materialise it."""

    object_id: ObjectId | None
    width: int
    height: int
    color_space: Any = None
    bits_per_component: int = 8
    filters: list[str] = field(default_factory=list)
    soft_mask: bytes | None = None
    soft_mask_bits: int = 8
    soft_mask_size: tuple[int, int] | None = None
    image_mask: bool = False


@dataclass(slots=True)
class ImagePlacement:
    """Image XObject drawn by ``Do``, with its page-space footprint."""

    data: bytes
    x: float
    y: float
    width: float
    height: float
    filter_name: str | None
    name: str
    resource: ImageResource
    sequence: int = 0

    @property
    def bbox(self) -> BoundingBox:
        return BoundingBox(self.x, self.y, self.x + self.width, self.y + self.height)
