"""Character code decoding for shown strings."""

from __future__ import annotations

from .glyphs import glyph_to_unicode
from .resolver import FontInfo

__all__ = ["decode_code", "decode_string", "split_codes"]


def split_codes(raw: bytes, font: FontInfo | None) -> list[int]:
    """Split *raw* into character codes: two bytes for composite fonts, else one."""

    if font is None or not font.composite:
        return list(raw)
    if len(raw) % 2:
        raw = raw + b"\x00"
    return [(raw[i] << 8) | raw[i + 1] for i in range(0, len(raw), 2)]


def decode_code(code: int, font: FontInfo | None) -> str:
    if font is not None:
        if font.to_unicode:
            mapped = font.to_unicode.get(code)
            if mapped is not None:
                return mapped
        name = font.differences.get(code)
        if name is not None:
            text = glyph_to_unicode(name)
            if text:
                return text
        if font.encoding is not None and not font.composite and code < 256:
            text = font.encoding[code]
            if text and text != "\x00":
                return text
    if 0xD800 <= code <= 0xDFFF or code > 0x10FFFF:
        return "�"
    return chr(code)


def decode_string(raw: bytes, font: FontInfo | None) -> tuple[str, list[int]]:
    """Return the text of *raw* together with its character codes."""

    codes = split_codes(raw, font)
    return "".join(decode_code(code, font) for code in codes), codes
