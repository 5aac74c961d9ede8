"""Font and text encoding resolution."""

from .cmap import ToUnicodeMap, parse_to_unicode
from .decoding import decode_code, decode_string, split_codes
from .glyphs import encoding_table, glyph_to_unicode
from .resolver import FontInfo, FontResolver, resolve_fonts

__all__ = [
    "FontInfo",
    "FontResolver",
    "ToUnicodeMap",
    "decode_code",
    "decode_string",
    "encoding_table",
    "glyph_to_unicode",
    "parse_to_unicode",
    "resolve_fonts",
    "split_codes",
]
