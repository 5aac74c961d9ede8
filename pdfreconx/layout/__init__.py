"""Layout reconstruction: decorations, ruled tables and paragraphs."""

from .decorations import apply_decorations
from .reconstructor import reconstruct, runs_to_paragraphs
from .tables import DetectedTable, detect_tables

__all__ = [
    "DetectedTable",
    "apply_decorations",
    "detect_tables",
    "reconstruct",
    "runs_to_paragraphs",
]
