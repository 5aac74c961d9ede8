"""Stream filter chain built on :mod:`pypdf.filters`."""

from __future__ import annotations

import logging
from typing import Sequence

from pypdf.filters import (
    ASCII85Decode,
    ASCIIHexDecode,
    FlateDecode,
    LZWDecode,
    RunLengthDecode,
)
from pypdf.generic import DictionaryObject, NameObject, NumberObject

from ..constants import IMAGE_CODEC_FILTERS, UNSUPPORTED_FILTERS

__all__ = ["apply_filters", "codec_filter", "is_decodable", "normalise_filter_name"]

LOGGER = logging.getLogger("pdfreconx.filters")

_ALIASES = {
    "/Fl": "/FlateDecode",
    "/AHx": "/ASCIIHexDecode",
    "/A85": "/ASCII85Decode",
    "/LZW": "/LZWDecode",
    "/RL": "/RunLengthDecode",
    "/DCT": "/DCTDecode",
    "/CCF": "/CCITTFaxDecode",
}

_DECODERS = {
    "/FlateDecode": FlateDecode,
    "/ASCIIHexDecode": ASCIIHexDecode,
    "/ASCII85Decode": ASCII85Decode,
    "/LZWDecode": LZWDecode,
    "/RunLengthDecode": RunLengthDecode,
}


def normalise_filter_name(name: object) -> str:
    text = str(name)
    if not text.startswith("/"):
        text = "/" + text
    return _ALIASES.get(text, text)


def codec_filter(filters: Sequence[str]) -> str | None:
    """Return the image codec filter that terminates *filters*, if any."""

    for name in filters:
        if normalise_filter_name(name) in IMAGE_CODEC_FILTERS:
            return normalise_filter_name(name)
    return None


def is_decodable(name: object) -> bool:
    """True when *name* is a filter this module can decode or pass through."""

    name = normalise_filter_name(name)
    return name in _DECODERS or name in IMAGE_CODEC_FILTERS


def apply_filters(
    data: bytes,
    filters: Sequence[str],
    parms: Sequence[dict[str, object] | None] = (),
    warnings: list[str] | None = None,
) -> bytes:
    """Decode *data* through *filters* in declared order.

    Image codecs stop the chain and leave their payload untouched. Unsupported
    or failing filters record a warning and return the bytes decoded so far.
    """

    for position, raw_name in enumerate(filters):
        name = normalise_filter_name(raw_name)
        if name in IMAGE_CODEC_FILTERS:
            break
        decoder = _DECODERS.get(name)
        if decoder is None:
            reason = "not supported" if name in UNSUPPORTED_FILTERS else "unknown"
            _note(warnings, f"Filter {name} is {reason}; keeping raw stream bytes")
            break
        decode_parms = parms[position] if position < len(parms) else None
        try:
            decoded = decoder.decode(data, _as_pypdf_parms(decode_parms))
        except Exception as exc:
            _note(warnings, f"Filter {name} failed: {exc}")
            break
        if isinstance(decoded, str):
            decoded = decoded.encode("latin-1")
        data = decoded
    return data


def _as_pypdf_parms(parms: dict[str, object] | None) -> DictionaryObject | None:
    if not isinstance(parms, dict):
        return None
    converted = DictionaryObject()
    for key, value in parms.items():
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, float)):
            converted[NameObject(key)] = NumberObject(int(value))
        elif isinstance(value, str) and value.startswith("/"):
            converted[NameObject(key)] = NameObject(value)
    return converted


def _note(warnings: list[str] | None, message: str) -> None:
    LOGGER.warning(message)
    if warnings is not None:
        warnings.append(message)
