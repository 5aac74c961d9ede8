"""pdfreconx: rebuild structured documents from PDF files."""

from .engine import DocumentReconstructor, reconstruct_document
from .exceptions import ParseError, PdfReconError
from .model import (
    DocumentMetadata,
    DocumentStats,
    ExtractedImage,
    ListHint,
    OutlineItem,
    StructuredDocument,
    StructuredElement,
    StructuredImage,
    StructuredParagraph,
    StructuredTable,
    StructuredTableCell,
    TextSpan,
)
from .options import LayoutOptions, ReconstructionOptions

__version__ = "0.1.0"

__all__ = [
    "DocumentMetadata",
    "DocumentReconstructor",
    "DocumentStats",
    "ExtractedImage",
    "LayoutOptions",
    "ListHint",
    "OutlineItem",
    "ParseError",
    "PdfReconError",
    "ReconstructionOptions",
    "StructuredDocument",
    "StructuredElement",
    "StructuredImage",
    "StructuredParagraph",
    "StructuredTable",
    "StructuredTableCell",
    "TextSpan",
    "__version__",
    "reconstruct_document",
]
