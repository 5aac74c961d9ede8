"""Image colour spaces and re-encoding of image XObjects."""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Any, Iterator, Sequence

from .constants import IMAGE_CODEC_FILTERS
from .core.filters import codec_filter, is_decodable, normalise_filter_name
from .core.store import ObjectStore
from .core.syntax import ObjectId
from .primitives import ImagePlacement, ImageResource

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

__all__ = [
    "ColorSpace",
    "MaterializedImage",
    "PNG_SIGNATURE",
    "describe_color_space",
    "materialize",
]

LOGGER = logging.getLogger("pdfreconx.images")

_DEVICE_SPACES = {
    "/DeviceGray": ("gray", 1),
    "/G": ("gray", 1),
    "/CalGray": ("gray", 1),
    "/DeviceRGB": ("rgb", 3),
    "/RGB": ("rgb", 3),
    "/CalRGB": ("rgb", 3),
    "/DeviceCMYK": ("cmyk", 4),
    "/CMYK": ("cmyk", 4),
}
_ICC_FAMILIES = {1: "gray", 3: "rgb", 4: "cmyk"}
_BIT_SCALE = {1: 255, 2: 85, 4: 17}


@dataclass(slots=True)
class ColorSpace:
    """Colour space of an image, reduced to what re-encoding needs.

    ``family`` is ``gray``, ``rgb``, ``cmyk``, ``indexed`` or ``unsupported``.
    Indexed spaces carry their ``base`` space, ``hival`` and raw ``lookup``
    table. Separation spaces are read as gray with ``inverted`` set, since a
    tint of 1 means full ink.
    """

    family: str
    components: int
    name: str = ""
    base: "ColorSpace | None" = None
    hival: int = 0
    lookup: bytes = b""
    inverted: bool = False

    @property
    def supported(self) -> bool:
        return self.family != "unsupported"


@dataclass(slots=True)
class MaterializedImage:
    data: bytes
    extension: str
    width: int
    height: int


def describe_color_space(
    store: ObjectStore,
    value: Any,
    named: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
    _depth: int = 0,
) -> ColorSpace | None:
    """Describe the colour space *value*; ``None`` when it is absent.

    Names that are not device spaces are looked up in *named*, the
    ``/ColorSpace`` entry of the resource dictionary.
    """

    value = store.resolve(value, warnings)
    if value is None or _depth > 4:
        return None
    if isinstance(value, str):
        known = _DEVICE_SPACES.get(value)
        if known is not None:
            return ColorSpace(known[0], known[1], value)
        if named and value in named:
            return describe_color_space(store, named[value], None, warnings, _depth + 1)
        return ColorSpace("unsupported", 0, value)
    if not isinstance(value, list) or not value:
        return ColorSpace("unsupported", 0, repr(value))

    family = store.resolve(value[0])
    if not isinstance(family, str):
        return ColorSpace("unsupported", 0, repr(family))
    if family in _DEVICE_SPACES:
        known = _DEVICE_SPACES[family]
        return ColorSpace(known[0], known[1], family)
    if family == "/ICCBased" and len(value) > 1:
        components = 3
        profile = store.get_object(value[1], warnings) if isinstance(value[1], ObjectId) else None
        if profile is not None:
            count = store.resolve(profile.dictionary.get("/N"))
            if isinstance(count, int):
                components = count
        name = _ICC_FAMILIES.get(components)
        if name is None:
            return ColorSpace("unsupported", components, family)
        return ColorSpace(name, components, family)
    if family in ("/Indexed", "/I") and len(value) >= 4:
        base = describe_color_space(store, value[1], named, warnings, _depth + 1)
        hival = store.resolve(value[2])
        lookup = _lookup_bytes(store, value[3], warnings)
        if base is None or not base.supported or base.family == "indexed" or not isinstance(hival, int):
            return ColorSpace("unsupported", 1, family)
        return ColorSpace("indexed", 1, family, base=base, hival=hival, lookup=lookup)
    if family == "/Separation":
        return ColorSpace("gray", 1, family, inverted=True)
    return ColorSpace("unsupported", 0, family)


def materialize(placement: ImagePlacement, warnings: list[str] | None = None) -> MaterializedImage | None:
    """Turn an image placement into JPEG, JPEG 2000 or PNG bytes.

    Failures record a warning and return ``None`` so the page can continue.
    """

    resource = placement.resource
    label = f"Image {placement.name}"
    unsupported = [name for name in resource.filters if not is_decodable(name)]
    if unsupported:
        _note(warnings, f"{label}: filter {normalise_filter_name(unsupported[0])} is not supported; image skipped")
        return None
    codec = codec_filter(resource.filters) if placement.filter_name is None else placement.filter_name
    if codec is not None:
        extension = IMAGE_CODEC_FILTERS[normalise_filter_name(codec)]
        return MaterializedImage(placement.data, extension, resource.width, resource.height)
    try:
        return _materialize_samples(placement, label, warnings)
    except Exception as exc:
        _note(warnings, f"{label}: could not be decoded: {exc}")
        return None


def _materialize_samples(
    placement: ImagePlacement, label: str, warnings: list[str] | None
) -> MaterializedImage | None:
    resource = placement.resource
    width, height = resource.width, resource.height
    if width <= 0 or height <= 0:
        _note(warnings, f"{label}: invalid dimensions {width}x{height}")
        return None
    bits = 1 if resource.image_mask else resource.bits_per_component
    space = resource.color_space
    if resource.image_mask:
        space = ColorSpace("gray", 1, "/ImageMask")
    elif space is None:
        _note(warnings, f"{label}: missing colour space, assuming DeviceRGB")
        space = ColorSpace("rgb", 3, "/DeviceRGB")
        bits = 8
    if not space.supported:
        _note(warnings, f"{label}: colour space {space.name} is not supported")
        return None
    if bits not in (1, 2, 4, 8, 16):
        _note(warnings, f"{label}: unsupported bit depth {bits}")
        return None

    expected = _required_bytes(width, space.components, bits, height)
    data = placement.data
    if len(data) < expected:
        _note(warnings, f"{label}: Image data too small ({len(data)} < {expected} bytes)")
        return None
    samples = _unpack_samples(data[:expected], width, height, space.components, bits, scale=space.family != "indexed")

    if space.family == "gray":
        pixels = bytes(255 - value for value in samples) if space.inverted else samples
        components = 1
    elif space.family == "rgb":
        pixels, components = samples, 3
    elif space.family == "cmyk":
        pixels, components = bytes(_convert_cmyk_to_rgb(samples)), 3
    else:
        palette = _extract_palette(space)
        if palette is None:
            _note(warnings, f"{label}: indexed palette could not be read")
            return None
        pixels, components = bytes(_apply_palette(samples, palette)), 3

    alpha = _soft_mask_alpha(resource, label, warnings)
    if alpha is not None:
        if components == 1:
            pixels = bytes(_expand_gray(pixels))
        rgba = bytearray()
        for index in range(width * height):
            rgba.extend(pixels[index * 3 : index * 3 + 3])
            rgba.append(alpha[index])
        pixels, components = bytes(rgba), 4

    png = _encode_png(width, height, pixels, components=components)
    return MaterializedImage(png, "png", width, height)


def _soft_mask_alpha(resource: ImageResource, label: str, warnings: list[str] | None) -> bytes | None:
    if resource.soft_mask is None:
        return None
    if resource.soft_mask_size != (resource.width, resource.height):
        _note(warnings, f"{label}: soft mask size does not match the image; mask ignored")
        return None
    bits = resource.soft_mask_bits
    if bits not in (1, 2, 4, 8, 16):
        _note(warnings, f"{label}: unsupported soft mask depth {bits}")
        return None
    expected = _required_bytes(resource.width, 1, bits, resource.height)
    if len(resource.soft_mask) < expected:
        _note(warnings, f"{label}: soft mask data too small; mask ignored")
        return None
    return _unpack_samples(resource.soft_mask[:expected], resource.width, resource.height, 1, bits, scale=True)


def _required_bytes(width: int, components: int, bits: int, height: int) -> int:
    return (width * components * bits + 7) // 8 * height


def _unpack_samples(data: bytes, width: int, height: int, components: int, bits: int, *, scale: bool) -> bytes:
    """Return one byte per sample, dropping the padding at the end of each row."""

    if bits == 8:
        return data
    if bits == 16:
        return data[0::2]
    row_bytes = (width * components * bits + 7) // 8
    per_row = width * components
    mask = (1 << bits) - 1
    factor = _BIT_SCALE[bits] if scale else 1
    out = bytearray()
    for row in range(height):
        chunk = data[row * row_bytes : (row + 1) * row_bytes]
        for position in range(per_row):
            bit_offset = position * bits
            byte = chunk[bit_offset >> 3]
            shift = 8 - bits - (bit_offset & 7)
            out.append(((byte >> shift) & mask) * factor)
    return bytes(out)


def _lookup_bytes(store: ObjectStore, value: Any, warnings: list[str] | None) -> bytes:
    if isinstance(value, ObjectId):
        record = store.get_object(value, warnings)
        if record is not None and record.is_stream:
            return store.decode_stream(record, warnings)
        value = record.value if record is not None else None
    if isinstance(value, bytes):
        return value
    return b""


def _expand_gray(raw: bytes) -> Iterator[int]:
    for value in raw:
        yield value
        yield value
        yield value


def _convert_cmyk_to_rgb(raw: bytes) -> Iterator[int]:
    for index in range(0, len(raw) - 3, 4):
        c, m, y, k = raw[index : index + 4]
        yield 255 - min(255, c + k)
        yield 255 - min(255, m + k)
        yield 255 - min(255, y + k)


def _extract_palette(space: ColorSpace) -> list[tuple[int, int, int]] | None:
    base = space.base
    if base is None:
        return None
    step = base.components
    data = space.lookup
    palette: list[tuple[int, int, int]] = []
    for index in range(0, min(len(data), (space.hival + 1) * step) - step + 1, step):
        entry = data[index : index + step]
        if base.family == "rgb":
            palette.append((entry[0], entry[1], entry[2]))
        elif base.family == "cmyk":
            r, g, b = _convert_cmyk_to_rgb(entry)
            palette.append((r, g, b))
        else:
            value = 255 - entry[0] if base.inverted else entry[0]
            palette.append((value, value, value))
    if not palette:
        return None
    return palette


def _apply_palette(raw: bytes, palette: Sequence[tuple[int, int, int]]) -> Iterator[int]:
    limit = len(palette)
    for index in raw:
        entry = palette[index if index < limit else -1]
        yield from entry


def _encode_png(width: int, height: int, raw: bytes, *, components: int) -> bytes:
    if width <= 0 or height <= 0:
        raise ValueError("Invalid PNG dimensions")

    def chunk(tag: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", zlib.crc32(tag + data) & 0xFFFFFFFF)

    color_type = {1: 0, 3: 2, 4: 6}.get(components)
    if color_type is None:
        raise ValueError("Unsupported component count")

    rows = bytearray()
    row_stride = width * components
    for row in range(height):
        start = row * row_stride
        rows.append(0)
        rows.extend(raw[start : start + row_stride])

    header = chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, color_type, 0, 0, 0))
    return PNG_SIGNATURE + header + chunk(b"IDAT", zlib.compress(bytes(rows))) + chunk(b"IEND", b"")


def _note(warnings: list[str] | None, message: str) -> None:
    LOGGER.warning(message)
    if warnings is not None:
        warnings.append(message)
