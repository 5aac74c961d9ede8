"""Low-level PDF syntax helpers.

The functions in this module turn raw bytes into plain Python values:

* dictionaries become ``dict`` keyed by names such as ``"/Type"``
* arrays become ``list``
* names become ``str`` values with a leading slash
* strings become ``bytes`` (escape sequences already resolved)
* numbers become ``int`` or ``float``
* ``true``/``false``/``null`` become ``True``/``False``/``None``
* indirect references become :class:`ObjectId`

They raise :class:`ValueError` on malformed input; callers decide whether the
failure is recoverable.
"""

from __future__ import annotations

import logging
import math
import re
import sys
from typing import NamedTuple

from pypdf._codecs import _pdfdoc_encoding

__all__ = [
    "ObjectId",
    "decode_text",
    "is_regular",
    "parse_value",
    "read_array",
    "read_dictionary",
    "read_hex_string",
    "read_keyword",
    "read_literal_string",
    "read_name",
    "skip_whitespace",
    "to_number",
    "unescape_literal",
]


class ObjectId(NamedTuple):
    """Identifier of an indirect object, also used for references."""

    number: int
    generation: int = 0

    def __str__(self) -> str:
        return f"{self.number} {self.generation} R"


WHITESPACE = b"\x00\t\n\r\f "
DELIMITERS = b"()<>[]{}/%"

LOGGER = logging.getLogger("pdfreconx.syntax")

_NUMBER = re.compile(rb"[+-]?(?:\d+\.?\d*|\.\d+)")
_NUMBER_START = frozenset(b"+-.0123456789")
_REFERENCE_TAIL = re.compile(
    rb"[\x00\t\n\r\f ]+(\d+)[\x00\t\n\r\f ]+R(?![^\x00\t\n\r\f ()<>\[\]{}/%])"
)
_ESCAPES = {
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("("): b"(",
    ord(")"): b")",
    ord("\\"): b"\\",
}
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


def is_regular(byte: int) -> bool:
    return byte not in WHITESPACE and byte not in DELIMITERS


def skip_whitespace(data: bytes, index: int) -> int:
    """Advance past whitespace and ``%`` comments."""

    length = len(data)
    while index < length:
        byte = data[index]
        if byte in WHITESPACE:
            index += 1
        elif byte == 0x25:
            while index < length and data[index] not in b"\r\n":
                index += 1
        else:
            break
    return index


def read_keyword(data: bytes, index: int) -> tuple[bytes, int]:
    start = index
    length = len(data)
    while index < length and is_regular(data[index]):
        index += 1
    return data[start:index], index


def to_number(token: bytes) -> int | float | None:
    """Return the integer or real in *token*, or ``None`` if it is not a PDF number.

    Only plain decimal notation is accepted: no exponents, no ``inf``/``nan``
    and nothing that overflows to a non-finite float.
    """

    if not _NUMBER.fullmatch(token):
        return None
    try:
        if b"." not in token:
            number = int(token)
            return number if abs(number) <= sys.float_info.max else None
        value = float(token)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def read_name(data: bytes, index: int) -> tuple[str, int]:
    if data[index : index + 1] != b"/":
        raise ValueError(f"Expected name at offset {index}")
    raw, end = read_keyword(data, index + 1)
    if b"#" in raw:
        decoded = bytearray()
        position = 0
        while position < len(raw):
            byte = raw[position]
            pair = raw[position + 1 : position + 3]
            if byte == 0x23 and len(pair) == 2 and all(b in _HEX_DIGITS for b in pair):
                decoded.append(int(pair, 16))
                position += 3
            else:
                decoded.append(byte)
                position += 1
        raw = bytes(decoded)
    return "/" + raw.decode("latin-1"), end


def unescape_literal(raw: bytes) -> bytes:
    """Resolve the backslash escapes of a literal string body."""

    out = bytearray()
    index = 0
    length = len(raw)
    while index < length:
        byte = raw[index]
        if byte != 0x5C:
            out.append(byte)
            index += 1
            continue
        index += 1
        if index >= length:
            break
        escaped = raw[index]
        if escaped in _ESCAPES:
            out += _ESCAPES[escaped]
            index += 1
        elif 0x30 <= escaped <= 0x37:
            end = index
            while end < length and end - index < 3 and 0x30 <= raw[end] <= 0x37:
                end += 1
            out.append(int(raw[index:end], 8) & 0xFF)
            index = end
        elif escaped == 0x0D:
            index += 1
            if index < length and raw[index] == 0x0A:
                index += 1
        elif escaped == 0x0A:
            index += 1
        else:
            out.append(escaped)
            index += 1
    return bytes(out)


def read_literal_string(data: bytes, index: int) -> tuple[bytes, int]:
    if data[index : index + 1] != b"(":
        raise ValueError(f"Expected literal string at offset {index}")
    depth = 1
    position = index + 1
    length = len(data)
    while position < length:
        byte = data[position]
        if byte == 0x5C:
            position += 2
            continue
        if byte == 0x28:
            depth += 1
        elif byte == 0x29:
            depth -= 1
            if depth == 0:
                return unescape_literal(data[index + 1 : position]), position + 1
        position += 1
    raise ValueError(f"Unterminated literal string at offset {index}")


def read_hex_string(data: bytes, index: int) -> tuple[bytes, int]:
    end = data.find(b">", index + 1)
    if end == -1:
        raise ValueError(f"Unterminated hex string at offset {index}")
    digits = bytes(b for b in data[index + 1 : end] if b in _HEX_DIGITS)
    if len(digits) % 2:
        digits += b"0"
    return bytes.fromhex(digits.decode("ascii")), end + 1


def read_array(data: bytes, index: int) -> tuple[list[object], int]:
    items: list[object] = []
    index += 1
    while True:
        index = skip_whitespace(data, index)
        if index >= len(data):
            raise ValueError("Unterminated array")
        if data[index] == 0x5D:
            return items, index + 1
        value, index = parse_value(data, index)
        items.append(value)


def read_dictionary(data: bytes, index: int) -> tuple[dict[str, object], int]:
    entries: dict[str, object] = {}
    index += 2
    while True:
        index = skip_whitespace(data, index)
        if index >= len(data):
            raise ValueError("Unterminated dictionary")
        if data.startswith(b">>", index):
            return entries, index + 2
        if data[index] != 0x2F:
            # Stray token in key position; consume it and carry on.
            _, index = parse_value(data, index)
            continue
        key, index = read_name(data, index)
        index = skip_whitespace(data, index)
        if data.startswith(b">>", index):
            entries[key] = None
            continue
        value, index = parse_value(data, index)
        entries[key] = value


def parse_value(data: bytes, index: int) -> tuple[object, int]:
    """Parse one PDF value starting at *index* and return it with the end offset."""

    index = skip_whitespace(data, index)
    if index >= len(data):
        raise ValueError("Unexpected end of data")
    byte = data[index]
    if byte == 0x3C:
        if data.startswith(b"<<", index):
            return read_dictionary(data, index)
        return read_hex_string(data, index)
    if byte == 0x28:
        return read_literal_string(data, index)
    if byte == 0x5B:
        return read_array(data, index)
    if byte == 0x2F:
        return read_name(data, index)
    token, end = read_keyword(data, index)
    if not token:
        raise ValueError(f"Unexpected byte {bytes([byte])!r} at offset {index}")
    if token == b"true":
        return True, end
    if token == b"false":
        return False, end
    if token == b"null":
        return None, end
    number = to_number(token)
    if number is None:
        if token[0] not in _NUMBER_START:
            raise ValueError(f"Unexpected token {token!r} at offset {index}")
        LOGGER.warning("Invalid number %r at offset %d; using 0 instead", token, index)
        return 0, end
    if isinstance(number, int) and number >= 0:
        match = _REFERENCE_TAIL.match(data, end)
        if match:
            return ObjectId(number, int(match.group(1))), match.end()
    return number, end


def decode_text(value: object) -> str:
    """Decode a PDF text string (UTF-16 with BOM, UTF-8 with BOM or PDFDocEncoding)."""

    if isinstance(value, str):
        return value[1:] if value.startswith("/") else value
    if not isinstance(value, (bytes, bytearray)):
        return "" if value is None else str(value)
    raw = bytes(value)
    if raw.startswith(b"\xfe\xff"):
        return raw[2:].decode("utf-16-be", "replace")
    if raw.startswith(b"\xff\xfe"):
        return raw[2:].decode("utf-16-le", "replace")
    if raw.startswith(b"\xef\xbb\xbf"):
        return raw[3:].decode("utf-8", "replace")
    return "".join(_pdfdoc_encoding[byte] for byte in raw)
