"""ToUnicode CMap parsing."""

from __future__ import annotations

import logging

from ..content.tokens import Token, TokenKind, tokenize
from .glyphs import glyph_to_unicode

__all__ = ["ToUnicodeMap", "parse_to_unicode"]

LOGGER = logging.getLogger("pdfreconx.cmap")

_MAX_RANGE = 0x10000


class ToUnicodeMap(dict):
    """Sparse ``code -> text`` table with the byte width of each source code."""

    def __init__(self) -> None:
        super().__init__()
        self.code_lengths: set[int] = set()

    def add(self, code: int, text: str, length: int) -> None:
        self[code] = text
        self.code_lengths.add(length)


def parse_to_unicode(data: bytes) -> ToUnicodeMap:
    """Read the ``bfchar`` and ``bfrange`` sections of a ToUnicode CMap."""

    mapping = ToUnicodeMap()
    operands: list[Token] = []
    section: str | None = None
    for token in tokenize(data):
        if not token.is_operator:
            operands.append(token)
            continue
        keyword = token.value
        if keyword in ("beginbfchar", "beginbfrange"):
            section = keyword[5:]
            operands = []
        elif keyword == "endbfchar" and section == "bfchar":
            _apply_bfchar(mapping, operands)
            section = None
            operands = []
        elif keyword == "endbfrange" and section == "bfrange":
            _apply_bfrange(mapping, operands)
            section = None
            operands = []
        elif section is None:
            operands = []
    return mapping


def _apply_bfchar(mapping: ToUnicodeMap, operands: list[Token]) -> None:
    for source, destination in zip(operands[0::2], operands[1::2]):
        if not source.is_string:
            continue
        text = _destination_text(destination)
        if text is None:
            continue
        mapping.add(int.from_bytes(source.value, "big"), text, len(source.value))


def _apply_bfrange(mapping: ToUnicodeMap, operands: list[Token]) -> None:
    for index in range(0, len(operands) - 2, 3):
        low, high, destination = operands[index : index + 3]
        if not (low.is_string and high.is_string):
            continue
        length = len(low.value)
        start = int.from_bytes(low.value, "big")
        end = int.from_bytes(high.value, "big")
        if end < start or end - start >= _MAX_RANGE:
            LOGGER.debug("Ignoring bfrange %X-%X", start, end)
            continue
        if destination.kind is TokenKind.ARRAY:
            for offset, item in enumerate(destination.value[: end - start + 1]):
                text = _destination_text(item)
                if text is not None:
                    mapping.add(start + offset, text, length)
            continue
        if not destination.is_string or not destination.value:
            continue
        base = destination.value
        width = len(base)
        value = int.from_bytes(base, "big")
        for offset in range(end - start + 1):
            target = value + offset
            if target.bit_length() > width * 8:
                break
            mapping.add(start + offset, _utf16(target.to_bytes(width, "big")), length)


def _destination_text(token: Token) -> str | None:
    if token.is_string:
        return _utf16(token.value)
    if token.kind is TokenKind.NAME:
        return glyph_to_unicode(token.value)
    return None


def _utf16(raw: bytes) -> str:
    if len(raw) == 1:
        return chr(raw[0])
    if len(raw) % 2:
        raw = raw + b"\x00"
    return raw.decode("utf-16-be", "replace")
