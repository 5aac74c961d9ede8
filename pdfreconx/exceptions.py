"""Custom exceptions for the :mod:`pdfreconx` package."""

from __future__ import annotations


class PdfReconError(Exception):
    """Base class for every error raised by :mod:`pdfreconx`."""


class ParseError(PdfReconError):
    """Raised when the input buffer cannot be parsed into a document at all."""
