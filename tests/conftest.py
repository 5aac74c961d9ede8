from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping, Union
import sys

import pytest
from pypdf import PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# A plain object body, a ``(dictionary entries, data)`` stream or a
# ``(dictionary entries, data, declared length)`` stream with a bogus /Length.
RawObject = Union[bytes, tuple]

HELVETICA = b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"


def _serialise(number: int, value: RawObject) -> bytes:
    if isinstance(value, tuple):
        entries, data = value[0], value[1]
        length = value[2] if len(value) > 2 else len(data)
        return b"%d 0 obj\n<< %s /Length %d >>\nstream\n%s\nendstream\nendobj\n" % (number, entries, length, data)
    return b"%d 0 obj\n%s\nendobj\n" % (number, value)


def build_pdf(
    objects: Mapping[int, RawObject],
    *,
    root: int = 1,
    info: int | None = None,
    version: str = "1.7",
    xref: str = "table",
    compressed: Mapping[int, bytes] | None = None,
    startxref: int | None = None,
) -> bytes:
    """Assemble a PDF file from raw object bodies.

    ``xref="stream"`` writes a cross-reference stream instead of a table and
    allows *compressed* objects, which are stored in one object stream.
    """

    out = bytearray(b"%PDF-" + version.encode("ascii") + b"\n%\xe2\xe3\xcf\xd3\n")
    offsets: dict[int, int] = {}
    members: dict[int, tuple[int, int]] = {}
    for number in sorted(objects):
        offsets[number] = len(out)
        out += _serialise(number, objects[number])

    numbers = list(objects)
    if compressed:
        if xref != "stream":
            raise ValueError("compressed objects need a cross-reference stream")
        stream_number = max([*objects, *compressed]) + 1
        header_parts: list[bytes] = []
        body = bytearray()
        for index, number in enumerate(sorted(compressed)):
            header_parts.append(b"%d %d" % (number, len(body)))
            body += compressed[number] + b"\n"
            members[number] = (stream_number, index)
        header = b" ".join(header_parts) + b"\n"
        offsets[stream_number] = len(out)
        out += _serialise(
            stream_number,
            (b"/Type /ObjStm /N %d /First %d" % (len(compressed), len(header)), header + bytes(body)),
        )
        numbers += [*compressed, stream_number]

    size = max(numbers) + 1
    trailer = b"/Size %d /Root %d 0 R" % (size + (1 if xref == "stream" else 0), root)
    if info is not None:
        trailer += b" /Info %d 0 R" % info

    xref_offset = len(out)
    if xref == "table":
        out += b"xref\n0 %d\n0000000000 65535 f \n" % size
        for number in range(1, size):
            if number in offsets:
                out += b"%010d 00000 n \n" % offsets[number]
            else:
                out += b"0000000000 65535 f \n"
        out += b"trailer\n<< " + trailer + b" >>\n"
    else:
        xref_number = size
        offsets[xref_number] = xref_offset
        rows = bytearray()
        for number in range(size + 1):
            if number in members:
                stream_number, index = members[number]
                rows += bytes([2]) + stream_number.to_bytes(4, "big") + index.to_bytes(2, "big")
            elif number in offsets:
                rows += bytes([1]) + offsets[number].to_bytes(4, "big") + (0).to_bytes(2, "big")
            else:
                rows += bytes([0]) + (0).to_bytes(4, "big") + (0).to_bytes(2, "big")
        out += _serialise(xref_number, (b"/Type /XRef /W [1 4 2] " + trailer, bytes(rows)))

    out += b"startxref\n%d\n%%%%EOF\n" % (xref_offset if startxref is None else startxref)
    return bytes(out)


def build_page_pdf(
    content: bytes,
    *,
    resources: bytes = b"<< /Font << /F1 5 0 R >> >>",
    extra: Mapping[int, RawObject] | None = None,
    media_box: bytes = b"[0 0 612 792]",
    info: bytes | None = None,
) -> bytes:
    """Single page document: catalog 1, pages 2, page 3, content 4, Helvetica 5."""

    objects: dict[int, RawObject] = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: b"<< /Type /Pages /Kids [3 0 R] /Count 1 /MediaBox " + media_box + b" >>",
        3: b"<< /Type /Page /Parent 2 0 R /Resources " + resources + b" /Contents 4 0 R >>",
        4: (b"", content),
        5: HELVETICA,
    }
    objects.update(extra or {})
    info_number = None
    if info is not None:
        info_number = max(objects) + 1
        objects[info_number] = info
    return build_pdf(objects, info=info_number)


@pytest.fixture()
def pdf_builder() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture()
def page_pdf() -> Callable[..., bytes]:
    return build_page_pdf


@pytest.fixture()
def text_pdf() -> bytes:
    content = (
        b"BT /F1 24 Tf 72 720 Td (Annual Report) Tj ET\n"
        b"BT /F1 12 Tf 72 680 Td (First paragraph line) Tj ET\n"
        b"BT /F1 12 Tf 72 600 Td (Second paragraph) Tj ET\n"
    )
    return build_page_pdf(content, info=b"<< /Title (Report) /Author (Finance) >>")


@pytest.fixture()
def image_pdf() -> bytes:
    """Two pages: a JPEG on the first, a raw RGB pixel and a caption on the second."""

    image_header = b"/Type /XObject /Subtype /Image /ColorSpace /DeviceRGB /BitsPerComponent 8"
    objects: dict[int, RawObject] = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: b"<< /Type /Pages /Kids [3 0 R 4 0 R] /Count 2 /MediaBox [0 0 595 842]"
        b" /Resources << /Font << /F1 5 0 R >> /XObject << /Im1 6 0 R /Im2 7 0 R >> >> >>",
        3: b"<< /Type /Page /Parent 2 0 R /Contents 8 0 R >>",
        4: b"<< /Type /Page /Parent 2 0 R /Contents 9 0 R >>",
        5: HELVETICA,
        6: (image_header + b" /Width 2 /Height 2 /Filter /DCTDecode", b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"),
        7: (image_header + b" /Width 1 /Height 1", b"\x00\x80\xff"),
        8: (b"", b"q 20 0 0 20 72 700 cm /Im1 Do Q"),
        9: (b"", b"q 10 0 0 10 72 700 cm /Im2 Do Q BT /F1 12 Tf 72 680 Td (Figure 2) Tj ET"),
    }
    return build_pdf(objects)


@pytest.fixture()
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    writer = PdfWriter()
    for _ in range(3):
        writer.add_blank_page(width=200, height=200)
    writer.add_metadata({"/Producer": "pdfreconx-tests", "/Title": "Sample"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def text_pdf_path(tmp_path: Path, text_pdf: bytes) -> Path:
    pdf_path = tmp_path / "text.pdf"
    pdf_path.write_bytes(text_pdf)
    return pdf_path
