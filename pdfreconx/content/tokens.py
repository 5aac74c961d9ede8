"""Content stream tokenizer.

The tokenizer produces a flat list of :class:`Token` values: operands
followed by the operator that consumes them. It is also used to read
ToUnicode CMaps, whose keywords come out as ``OPERATOR`` tokens.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from ..core.syntax import (
    read_hex_string,
    read_keyword,
    read_literal_string,
    read_name,
    skip_whitespace,
    to_number,
)

__all__ = ["Token", "TokenKind", "iter_tokens", "tokenize"]

LOGGER = logging.getLogger("pdfreconx.tokens")

_INLINE_IMAGE_END = re.compile(rb"[\x00\t\n\r\f ]EI(?![^\x00\t\n\r\f ()<>\[\]{}/%])")


class TokenKind(Enum):
    NUMBER = "number"
    STRING = "string"
    HEX_STRING = "hex_string"
    NAME = "name"
    ARRAY = "array"
    DICTIONARY = "dictionary"
    BOOLEAN = "boolean"
    NULL = "null"
    OPERATOR = "operator"


@dataclass(slots=True, frozen=True)
class Token:
    """Single lexical unit of a content stream.

    ``value`` depends on ``kind``: ``float``/``int`` for numbers, ``bytes``
    for both string kinds, ``str`` for names (with the leading slash) and
    operators, ``list[Token]`` for arrays and ``dict[str, Token]`` for
    dictionaries.
    """

    kind: TokenKind
    value: Any

    @property
    def is_operator(self) -> bool:
        return self.kind is TokenKind.OPERATOR

    @property
    def is_string(self) -> bool:
        return self.kind is TokenKind.STRING or self.kind is TokenKind.HEX_STRING

    def as_number(self) -> float | None:
        if self.kind is TokenKind.NUMBER:
            return float(self.value)
        return None

    def to_python(self) -> Any:
        """Return the plain value, unwrapping nested arrays and dictionaries."""

        if self.kind is TokenKind.ARRAY:
            return [item.to_python() for item in self.value]
        if self.kind is TokenKind.DICTIONARY:
            return {key: item.to_python() for key, item in self.value.items()}
        return self.value


def tokenize(data: bytes) -> list[Token]:
    """Return every token of *data*; malformed trailing content is dropped."""

    return list(iter_tokens(data))


def iter_tokens(data: bytes) -> Iterator[Token]:
    index = 0
    length = len(data)
    while True:
        index = skip_whitespace(data, index)
        if index >= length:
            return
        try:
            token, index = _read_token(data, index)
        except ValueError as exc:
            LOGGER.debug("Stopping tokenization at offset %d: %s", index, exc)
            return
        if token is None:
            continue
        if token.kind is TokenKind.OPERATOR and token.value == "BI":
            try:
                parameters, index = _skip_inline_image(data, index)
            except ValueError as exc:
                LOGGER.debug("Unterminated inline image at offset %d: %s", index, exc)
                return
            yield Token(TokenKind.DICTIONARY, parameters)
        yield token


def _read_token(data: bytes, index: int) -> tuple[Token | None, int]:
    byte = data[index]
    if byte == 0x28:
        value, index = read_literal_string(data, index)
        return Token(TokenKind.STRING, value), index
    if byte == 0x3C:
        if data.startswith(b"<<", index):
            entries, index = _read_dictionary(data, index)
            return Token(TokenKind.DICTIONARY, entries), index
        value, index = read_hex_string(data, index)
        return Token(TokenKind.HEX_STRING, value), index
    if byte == 0x5B:
        items, index = _read_array(data, index)
        return Token(TokenKind.ARRAY, items), index
    if byte == 0x2F:
        name, index = read_name(data, index)
        return Token(TokenKind.NAME, name), index
    if byte in b"{}":
        return Token(TokenKind.OPERATOR, chr(byte)), index + 1
    if byte in b")>]":
        LOGGER.debug("Skipping stray delimiter %r at offset %d", chr(byte), index)
        return None, index + 1

    keyword, end = read_keyword(data, index)
    if keyword == b"true":
        return Token(TokenKind.BOOLEAN, True), end
    if keyword == b"false":
        return Token(TokenKind.BOOLEAN, False), end
    if keyword == b"null":
        return Token(TokenKind.NULL, None), end
    number = to_number(keyword)
    if number is not None:
        return Token(TokenKind.NUMBER, number), end
    return Token(TokenKind.OPERATOR, keyword.decode("latin-1")), end


def _read_array(data: bytes, index: int) -> tuple[list[Token], int]:
    items: list[Token] = []
    index += 1
    while True:
        index = skip_whitespace(data, index)
        if index >= len(data):
            raise ValueError("Unterminated array")
        if data[index] == 0x5D:
            return items, index + 1
        token, index = _read_token(data, index)
        if token is not None:
            items.append(token)


def _read_dictionary(data: bytes, index: int) -> tuple[dict[str, Token], int]:
    entries: dict[str, Token] = {}
    index += 2
    while True:
        index = skip_whitespace(data, index)
        if index >= len(data):
            raise ValueError("Unterminated dictionary")
        if data.startswith(b">>", index):
            return entries, index + 2
        token, index = _read_token(data, index)
        if token is None or token.kind is not TokenKind.NAME:
            continue
        index = skip_whitespace(data, index)
        if data.startswith(b">>", index):
            entries[token.value] = Token(TokenKind.NULL, None)
            continue
        value, index = _read_token(data, index)
        if value is not None:
            entries[token.value] = value


def _skip_inline_image(data: bytes, index: int) -> tuple[dict[str, Token], int]:
    parameters: dict[str, Token] = {}
    while True:
        index = skip_whitespace(data, index)
        if index >= len(data):
            raise ValueError("Inline image without ID")
        if data.startswith(b"ID", index) and not _is_regular_at(data, index + 2):
            break
        key, index = _read_token(data, index)
        if key is None or key.kind is not TokenKind.NAME:
            continue
        index = skip_whitespace(data, index)
        value, index = _read_token(data, index)
        if value is not None:
            parameters[key.value] = value
    match = _INLINE_IMAGE_END.search(data, index + 2)
    if match is None:
        raise ValueError("Inline image without EI")
    return parameters, match.end()


def _is_regular_at(data: bytes, index: int) -> bool:
    if index >= len(data):
        return False
    return data[index] not in b"\x00\t\n\r\f ()<>[]{}/%"
