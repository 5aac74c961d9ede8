"""Font resource resolution.

A :class:`FontResolver` turns the ``/Font`` entry of a resource dictionary
into :class:`FontInfo` records holding everything needed to decode and
measure shown strings: the encoding table, ``/Differences``, the parsed
ToUnicode map, glyph widths and style flags.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from typing import Any

from ..core.store import ObjectStore
from ..core.syntax import ObjectId
from .cmap import parse_to_unicode
from .glyphs import encoding_table

__all__ = ["FontInfo", "FontResolver", "resolve_fonts"]

LOGGER = logging.getLogger("pdfreconx.fonts")

_SUBSET_PREFIX = re.compile(r"^[A-Z]{6}\+")
_FLAG_ITALIC = 64
_FLAG_FORCE_BOLD = 262144
_DEFAULT_WIDTH = 500.0


@dataclass(slots=True)
class FontInfo:
    """Decoded view of one font resource."""

    resource_name: str
    base_name: str | None = None
    subtype: str | None = None
    bold: bool = False
    italic: bool = False
    encoding_name: str | None = None
    encoding: list[str] | None = None
    to_unicode: dict[int, str] | None = None
    differences: dict[int, str] = field(default_factory=dict)
    widths: dict[int, float] = field(default_factory=dict)
    missing_width: float | None = None
    embedded: bool = False
    composite: bool = False

    @property
    def code_length(self) -> int:
        return 2 if self.composite else 1

    def glyph_width(self, code: int) -> float:
        """Advance of *code* in thousandths of the font size."""

        width = self.widths.get(code)
        if width is not None:
            return width
        if self.missing_width:
            return self.missing_width
        return _DEFAULT_WIDTH


def strip_subset_prefix(name: str | None) -> str | None:
    if not name:
        return name
    bare = name[1:] if name.startswith("/") else name
    return _SUBSET_PREFIX.sub("", bare)


class FontResolver:
    """Resolve and cache fonts of a single :class:`ObjectStore`.

    Fonts referenced indirectly are cached by object id, so a font shared by
    many pages is parsed once. The cache is safe to use from worker threads.
    """

    def __init__(self, store: ObjectStore) -> None:
        self.store = store
        self._cache: dict[ObjectId, tuple[FontInfo, tuple[str, ...]]] = {}
        self._lock = threading.Lock()

    def resolve(self, resources: dict[str, Any] | None, warnings: list[str] | None = None) -> dict[str, FontInfo]:
        """Return ``resource name -> FontInfo`` for the ``/Font`` entry of *resources*."""

        fonts: dict[str, FontInfo] = {}
        if not isinstance(resources, dict):
            return fonts
        font_dict = self.store.resolve(resources.get("/Font"), warnings)
        if not isinstance(font_dict, dict):
            return fonts
        for name, value in font_dict.items():
            info = self.font(name, value, warnings)
            if info is not None:
                fonts[name] = info
        return fonts

    def font(self, name: str, value: Any, warnings: list[str] | None = None) -> FontInfo | None:
        if not isinstance(value, ObjectId):
            notes: list[str] = []
            info = self._build(name, value, notes)
            _report(notes, warnings)
            return info
        with self._lock:
            cached = self._cache.get(value)
            if cached is None:
                notes = []
                info = self._build(name, value, notes)
                cached = (info, tuple(notes))
                self._cache[value] = cached
        info, notes = cached
        _report(notes, warnings)
        if info is None:
            return None
        if info.resource_name != name:
            info = replace(info, resource_name=name)
        return info

    # -- Construction --------------------------------------------------------

    def _build(self, name: str, value: Any, notes: list[str]) -> FontInfo | None:
        store = self.store
        font = store.resolve(value, notes)
        if not isinstance(font, dict):
            notes.append(f"Font {name} is not a dictionary")
            return None
        subtype = store.resolve(font.get("/Subtype"))
        info = FontInfo(
            resource_name=name,
            base_name=strip_subset_prefix(_as_name(store.resolve(font.get("/BaseFont")))),
            subtype=subtype if isinstance(subtype, str) else None,
        )
        descriptor_source = font
        if info.subtype == "/Type0":
            info.composite = True
            descendant = self._descendant(font)
            if descendant is not None:
                descriptor_source = descendant
                base = strip_subset_prefix(_as_name(store.resolve(descendant.get("/BaseFont"))))
                info.base_name = base or info.base_name
                info.widths = self._cid_widths(descendant)
                default = store.resolve(descendant.get("/DW"))
                if isinstance(default, (int, float)):
                    info.missing_width = float(default)
            info.encoding_name = _as_name(store.resolve(font.get("/Encoding")))
        else:
            self._simple_encoding(info, font)
            info.widths = self._simple_widths(font, info.subtype)
        descriptor = store.resolve(descriptor_source.get("/FontDescriptor"))
        if isinstance(descriptor, dict):
            self._apply_descriptor(info, descriptor)
        self._apply_style(info)
        to_unicode = font.get("/ToUnicode")
        if isinstance(to_unicode, ObjectId):
            data = store.get_stream_content(to_unicode, notes)
            if data is None:
                notes.append(f"Font {name}: ToUnicode stream {to_unicode} is unavailable")
            else:
                try:
                    mapping = parse_to_unicode(data)
                except Exception as exc:
                    notes.append(f"Font {name}: ToUnicode CMap could not be parsed: {exc}")
                else:
                    info.to_unicode = dict(mapping) if mapping else None
        LOGGER.debug("Resolved font %s as %s (%s)", name, info.base_name, info.subtype)
        return info

    def _descendant(self, font: dict[str, Any]) -> dict[str, Any] | None:
        descendants = self.store.resolve(font.get("/DescendantFonts"))
        if isinstance(descendants, list) and descendants:
            first = self.store.resolve(descendants[0])
            if isinstance(first, dict):
                return first
        return None

    def _simple_encoding(self, info: FontInfo, font: dict[str, Any]) -> None:
        store = self.store
        encoding = store.resolve(font.get("/Encoding"))
        if isinstance(encoding, str):
            info.encoding_name = encoding
        elif isinstance(encoding, dict):
            base = store.resolve(encoding.get("/BaseEncoding"))
            if isinstance(base, str):
                info.encoding_name = base
            differences = store.resolve(encoding.get("/Differences"))
            if isinstance(differences, list):
                info.differences = _parse_differences([store.resolve(item) for item in differences])
        info.encoding = encoding_table(info.encoding_name)

    def _simple_widths(self, font: dict[str, Any], subtype: str | None) -> dict[int, float]:
        store = self.store
        first_char = store.resolve(font.get("/FirstChar"))
        widths = store.resolve(font.get("/Widths"))
        if not isinstance(first_char, int) or not isinstance(widths, list):
            return {}
        scale = 1.0
        if subtype == "/Type3":
            matrix = store.resolve(font.get("/FontMatrix"))
            if isinstance(matrix, list) and matrix and isinstance(store.resolve(matrix[0]), (int, float)):
                scale = float(store.resolve(matrix[0])) * 1000.0
        result: dict[int, float] = {}
        for offset, value in enumerate(widths):
            value = store.resolve(value)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                result[first_char + offset] = float(value) * scale
        return result

    def _cid_widths(self, descendant: dict[str, Any]) -> dict[int, float]:
        store = self.store
        entries = store.resolve(descendant.get("/W"))
        result: dict[int, float] = {}
        if not isinstance(entries, list):
            return result
        items = [store.resolve(item) for item in entries]
        index = 0
        while index < len(items):
            first = items[index]
            if not isinstance(first, int):
                break
            following = items[index + 1] if index + 1 < len(items) else None
            if isinstance(following, list):
                for offset, width in enumerate(following):
                    width = store.resolve(width)
                    if isinstance(width, (int, float)):
                        result[first + offset] = float(width)
                index += 2
                continue
            if index + 2 < len(items) and isinstance(following, int) and isinstance(items[index + 2], (int, float)):
                last = min(following, first + 0xFFFF)
                for code in range(first, last + 1):
                    result[code] = float(items[index + 2])
                index += 3
                continue
            break
        return result

    def _apply_descriptor(self, info: FontInfo, descriptor: dict[str, Any]) -> None:
        store = self.store
        info.embedded = any(key in descriptor for key in ("/FontFile", "/FontFile2", "/FontFile3"))
        weight = store.resolve(descriptor.get("/FontWeight"))
        if isinstance(weight, (int, float)) and weight >= 700:
            info.bold = True
        angle = store.resolve(descriptor.get("/ItalicAngle"))
        if isinstance(angle, (int, float)) and angle != 0:
            info.italic = True
        flags = store.resolve(descriptor.get("/Flags"))
        if isinstance(flags, int):
            if flags & _FLAG_FORCE_BOLD:
                info.bold = True
            if flags & _FLAG_ITALIC:
                info.italic = True
        if info.missing_width is None:
            missing = store.resolve(descriptor.get("/MissingWidth"))
            if isinstance(missing, (int, float)) and missing:
                info.missing_width = float(missing)

    @staticmethod
    def _apply_style(info: FontInfo) -> None:
        lowered = (info.base_name or "").lower()
        if "bold" in lowered:
            info.bold = True
        if "italic" in lowered or "oblique" in lowered:
            info.italic = True


def resolve_fonts(
    store: ObjectStore, resources: dict[str, Any] | None, warnings: list[str] | None = None
) -> dict[str, FontInfo]:
    """Resolve the fonts of *resources* without a shared cache."""

    return FontResolver(store).resolve(resources, warnings)


def _parse_differences(items: list[Any]) -> dict[int, str]:
    differences: dict[int, str] = {}
    code: int | None = None
    for item in items:
        if isinstance(item, int) and not isinstance(item, bool):
            code = item
        elif isinstance(item, str) and code is not None:
            differences[code] = item
            code += 1
    return differences


def _as_name(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return None


def _report(notes: tuple[str, ...] | list[str], warnings: list[str] | None) -> None:
    for note in notes:
        LOGGER.warning(note)
        if warnings is not None:
            warnings.append(note)
