from __future__ import annotations

import struct
import zlib

import pytest

from pdfreconx.core.store import ObjectStore
from pdfreconx.core.syntax import ObjectId
from pdfreconx.images import PNG_SIGNATURE, ColorSpace, describe_color_space, materialize
from pdfreconx.primitives import ImagePlacement, ImageResource

RGB = ColorSpace("rgb", 3, "/DeviceRGB")
GRAY = ColorSpace("gray", 1, "/DeviceGray")
CMYK = ColorSpace("cmyk", 4, "/DeviceCMYK")


def _placement(data: bytes, *, width: int, height: int, filter_name: str | None = None, **resource) -> ImagePlacement:
    resource.setdefault("color_space", RGB)
    return ImagePlacement(
        data=data,
        x=0.0,
        y=0.0,
        width=float(width),
        height=float(height),
        filter_name=filter_name,
        name="/Im1",
        resource=ImageResource(object_id=None, width=width, height=height, **resource),
    )


def _decode_png(png: bytes) -> tuple[tuple[int, int, int, int], bytes]:
    assert png.startswith(PNG_SIGNATURE)
    chunks: dict[bytes, bytes] = {}
    position = len(PNG_SIGNATURE)
    while position < len(png):
        (length,) = struct.unpack(">I", png[position : position + 4])
        tag = png[position + 4 : position + 8]
        chunks[tag] = png[position + 8 : position + 8 + length]
        position += 12 + length
    header = struct.unpack(">IIBB", chunks[b"IHDR"][:10])
    return header, zlib.decompress(chunks[b"IDAT"])


@pytest.fixture()
def store(page_pdf) -> ObjectStore:
    return ObjectStore.parse(page_pdf(b"", extra={6: (b"/N 1", b"profile")}))


def test_jpeg_payload_is_passed_through() -> None:
    payload = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"
    placement = _placement(payload, width=4, height=4, filters=["/DCTDecode"], filter_name="/DCTDecode")

    image = materialize(placement)

    assert image.data == payload
    assert image.extension == "jpg"
    assert (image.width, image.height) == (4, 4)


def test_jpeg_2000_extension() -> None:
    placement = _placement(b"jp2", width=1, height=1, filters=["/JPXDecode"])

    assert materialize(placement).extension == "jp2"


def test_rgb_samples_become_png() -> None:
    image = materialize(_placement(b"\xff\x00\x00\x00\xff\x00", width=2, height=1))

    assert image.extension == "png"
    header, rows = _decode_png(image.data)
    assert header == (2, 1, 8, 2)
    assert rows == b"\x00\xff\x00\x00\x00\xff\x00"


def test_short_sample_data_is_reported() -> None:
    warnings: list[str] = []

    assert materialize(_placement(b"\x00" * 6, width=2, height=2), warnings) is None
    assert warnings == ["Image /Im1: Image data too small (6 < 12 bytes)"]


def test_one_bit_gray_rows_are_unpacked() -> None:
    image = materialize(_placement(b"\xa0\x40", width=3, height=2, color_space=GRAY, bits_per_component=1))

    header, rows = _decode_png(image.data)
    assert header == (3, 2, 8, 0)
    assert rows == b"\x00\xff\x00\xff" + b"\x00\x00\xff\x00"


def test_cmyk_is_converted_to_rgb() -> None:
    image = materialize(_placement(b"\x00\xff\xff\x00", width=1, height=1, color_space=CMYK))

    assert _decode_png(image.data)[1] == b"\x00\xff\x00\x00"


def test_indexed_palette(store: ObjectStore) -> None:
    space = describe_color_space(store, ["/Indexed", "/DeviceRGB", 1, b"\xff\x00\x00\x00\x00\xff"])

    assert space.family == "indexed"
    assert space.hival == 1
    image = materialize(_placement(b"\x00\x01", width=2, height=1, color_space=space))
    assert _decode_png(image.data)[1] == b"\x00\xff\x00\x00\x00\x00\xff"


def test_soft_mask_adds_alpha_channel() -> None:
    placement = _placement(b"\xff\x00\x00", width=1, height=1, soft_mask=b"\x80", soft_mask_size=(1, 1))

    header, rows = _decode_png(materialize(placement).data)

    assert header == (1, 1, 8, 6)
    assert rows == b"\x00\xff\x00\x00\x80"


def test_mismatched_soft_mask_is_ignored() -> None:
    warnings: list[str] = []
    placement = _placement(b"\xff\x00\x00", width=1, height=1, soft_mask=b"\x80\x80", soft_mask_size=(2, 1))

    header, _ = _decode_png(materialize(placement, warnings).data)

    assert header[3] == 2
    assert warnings == ["Image /Im1: soft mask size does not match the image; mask ignored"]


def test_missing_colour_space_assumes_rgb() -> None:
    warnings: list[str] = []

    image = materialize(_placement(b"\x01\x02\x03", width=1, height=1, color_space=None), warnings)

    assert _decode_png(image.data)[1] == b"\x00\x01\x02\x03"
    assert warnings == ["Image /Im1: missing colour space, assuming DeviceRGB"]


def test_unsupported_filter_skips_image() -> None:
    warnings: list[str] = []

    assert materialize(_placement(b"", width=1, height=1, filters=["/JBIG2Decode"]), warnings) is None
    assert warnings == ["Image /Im1: filter /JBIG2Decode is not supported; image skipped"]


def test_image_mask_is_gray() -> None:
    image = materialize(_placement(b"\x80", width=1, height=1, color_space=None, image_mask=True))

    header, rows = _decode_png(image.data)
    assert header[3] == 0
    assert rows == b"\x00\xff"


def test_describe_colour_spaces(store: ObjectStore) -> None:
    assert describe_color_space(store, None) is None
    assert describe_color_space(store, "/DeviceCMYK").family == "cmyk"
    assert describe_color_space(store, "/CS0", {"/CS0": "/DeviceGray"}).family == "gray"
    icc = describe_color_space(store, ["/ICCBased", ObjectId(6)])
    assert (icc.family, icc.components) == ("gray", 1)
    separation = describe_color_space(store, ["/Separation", "/Black", "/DeviceCMYK", None])
    assert separation.family == "gray" and separation.inverted
    assert not describe_color_space(store, ["/Lab", {"/WhitePoint": [1, 1, 1]}]).supported
    assert not describe_color_space(store, "/Pattern").supported
