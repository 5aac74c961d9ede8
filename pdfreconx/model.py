"""Structured document model returned by the reconstruction engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .primitives import BoundingBox

__all__ = [
    "DocumentMetadata",
    "DocumentStats",
    "ExtractedImage",
    "ListHint",
    "OutlineItem",
    "StructuredDocument",
    "StructuredElement",
    "StructuredImage",
    "StructuredParagraph",
    "StructuredTable",
    "StructuredTableCell",
    "TextSpan",
]


@dataclass(slots=True)
class DocumentMetadata:
    """Values of the ``/Info`` dictionary."""

    title: str | None = None
    author: str | None = None
    subject: str | None = None
    keywords: str | None = None
    creator: str | None = None
    producer: str | None = None
    created: str | None = None
    modified: str | None = None
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_info(cls, info: dict[str, str]) -> "DocumentMetadata":
        known = {
            "/Title": "title",
            "/Author": "author",
            "/Subject": "subject",
            "/Keywords": "keywords",
            "/Creator": "creator",
            "/Producer": "producer",
            "/CreationDate": "created",
            "/ModDate": "modified",
        }
        metadata = cls()
        for key, value in info.items():
            attribute = known.get(key)
            if attribute is None:
                metadata.extra[key.lstrip("/")] = value
            else:
                setattr(metadata, attribute, value)
        return metadata


@dataclass(slots=True)
class TextSpan:
    """Inline run of text sharing one set of formatting attributes."""

    text: str
    font_name: str | None = None
    font_size: float | None = None
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strikethrough: bool = False
    superscript: bool = False
    subscript: bool = False
    color: str | None = None


@dataclass(slots=True)
class ListHint:
    """List marker detected at the start of a paragraph."""

    kind: str  # "bullet" or "ordered"
    marker: str


@dataclass(slots=True)
class StructuredParagraph:
    """Block of spans; heading level and list hint are style attributes."""

    spans: list[TextSpan] = field(default_factory=list)
    heading_level: int | None = None
    list_hint: ListHint | None = None
    page_index: int = 0
    x: float = 0.0
    y: float = 0.0

    @property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)


@dataclass(slots=True)
class StructuredTableCell:
    paragraphs: list[StructuredParagraph] = field(default_factory=list)
    bbox: BoundingBox | None = None

    @property
    def text(self) -> str:
        return "\n".join(paragraph.text for paragraph in self.paragraphs)


@dataclass(slots=True)
class StructuredTable:
    """Grid of cells rebuilt from ruling lines."""

    rows: list[list[StructuredTableCell]] = field(default_factory=list)
    bbox: BoundingBox | None = None
    page_index: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)


@dataclass(slots=True)
class StructuredImage:
    """Image placed on a page; ``image_index`` points into ``StructuredDocument.images``."""

    image_index: int
    bbox: BoundingBox
    name: str | None = None
    page_index: int = 0


@dataclass(slots=True)
class ExtractedImage:
    """Re-encoded image payload."""

    data: bytes
    width: int
    height: int
    format: str  # "png", "jpg" or "jp2"


StructuredElement = Union[StructuredParagraph, StructuredTable, StructuredImage]


@dataclass(slots=True)
class OutlineItem:
    """Bookmark of the document outline.

    ``page_index`` is ``None`` when the destination cannot be tied to a page
    of this document; ``destination`` keeps the name of a named destination.
    """

    title: str
    page_index: int | None = None
    top: float | None = None
    destination: str | None = None
    is_open: bool = True
    bold: bool = False
    italic: bool = False
    children: list[OutlineItem] = field(default_factory=list)

    def flatten(self) -> list[OutlineItem]:
        items = [self]
        for child in self.children:
            items.extend(child.flatten())
        return items


@dataclass(slots=True)
class DocumentStats:
    """Stage timings in milliseconds."""

    parse_ms: float = 0.0
    pages_ms: float = 0.0
    total_ms: float = 0.0

    def per_page(self, pages: int) -> dict[str, float]:
        safe = max(1, pages)
        return {
            "parse_ms_per_page": self.parse_ms / safe,
            "pages_ms_per_page": self.pages_ms / safe,
        }


@dataclass(slots=True)
class StructuredDocument:
    """Reconstructed document: elements in reading order, then page order."""

    elements: list[StructuredElement] = field(default_factory=list)
    images: list[ExtractedImage] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    page_count: int = 0
    version: str = "1.4"
    page_width: float = 612.0
    page_height: float = 792.0
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    outlines: list[OutlineItem] = field(default_factory=list)
    page_labels: list[str] = field(default_factory=list)
    stats: DocumentStats = field(default_factory=DocumentStats)

    @property
    def paragraph_count(self) -> int:
        return sum(1 for element in self.elements if isinstance(element, StructuredParagraph))

    @property
    def table_count(self) -> int:
        return sum(1 for element in self.elements if isinstance(element, StructuredTable))

    @property
    def image_count(self) -> int:
        return sum(1 for element in self.elements if isinstance(element, StructuredImage))

    @property
    def text(self) -> str:
        return "\n".join(element.text for element in self.elements if isinstance(element, StructuredParagraph))
