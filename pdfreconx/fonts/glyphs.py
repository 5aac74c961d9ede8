"""Glyph name to Unicode mapping using the Adobe Glyph List shipped with pypdf."""

from __future__ import annotations

import re

from pypdf._codecs import adobe_glyphs, charset_encoding

__all__ = ["encoding_table", "glyph_to_unicode"]

_UNI_NAME = re.compile(r"^uni((?:[0-9A-Fa-f]{4})+)$")
_U_NAME = re.compile(r"^u([0-9A-Fa-f]{4,6})$")


def _safe_chr(value: int) -> str | None:
    if value > 0x10FFFF:
        return None
    if 0xD800 <= value <= 0xDFFF:
        return "�"
    return chr(value)


def glyph_to_unicode(name: str) -> str | None:
    """Return the text for glyph *name*, or ``None`` when it is unknown."""

    if not name:
        return None
    bare = name[1:] if name.startswith("/") else name
    known = adobe_glyphs.get(f"/{bare}")
    if known is not None:
        return known
    if "." in bare:
        base = bare.split(".", 1)[0]
        return glyph_to_unicode(base) if base else None
    if "_" in bare:
        parts = [glyph_to_unicode(part) for part in bare.split("_")]
        if all(parts):
            return "".join(parts)  # type: ignore[arg-type]
        return None
    match = _UNI_NAME.match(bare)
    if match:
        digits = match.group(1)
        chars = [_safe_chr(int(digits[i : i + 4], 16)) for i in range(0, len(digits), 4)]
        if all(chars):
            return "".join(chars)  # type: ignore[arg-type]
        return None
    match = _U_NAME.match(bare)
    if match:
        return _safe_chr(int(match.group(1), 16))
    return None


def encoding_table(name: str | None) -> list[str] | None:
    """Return the 256 entry table for a predefined simple font encoding."""

    if not name:
        return None
    table = charset_encoding.get(name)
    if table is None:
        return None
    return list(table)
