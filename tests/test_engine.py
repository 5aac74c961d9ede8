from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pytest
from pypdf import PdfWriter

from pdfreconx import (
    DocumentReconstructor,
    ParseError,
    ReconstructionOptions,
    StructuredImage,
    StructuredParagraph,
    reconstruct_document,
)

HELVETICA = b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"


def _multi_page_pdf(pdf_builder, contents: list[bytes]) -> bytes:
    kids = b" ".join(b"%d 0 R" % (10 + index) for index in range(len(contents)))
    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        2: b"<< /Type /Pages /Kids [%s] /Count %d /MediaBox [0 0 595 842] /Resources << /Font << /F1 5 0 R >> >> >>"
        % (kids, len(contents)),
        5: HELVETICA,
    }
    for index, content in enumerate(contents):
        objects[10 + index] = b"<< /Type /Page /Parent 2 0 R /Contents %d 0 R >>" % (30 + index)
        objects[30 + index] = (b"", content)
    return pdf_builder(objects)


def test_reconstruct_text_document(text_pdf: bytes) -> None:
    document = reconstruct_document(text_pdf)

    assert document.page_count == 1
    assert document.version == "1.7"
    assert (document.page_width, document.page_height) == (612.0, 792.0)
    assert document.metadata.title == "Report"
    assert document.metadata.author == "Finance"
    assert [element.text for element in document.elements] == [
        "Annual Report",
        "First paragraph line",
        "Second paragraph",
    ]
    assert document.elements[0].heading_level == 1
    assert document.elements[1].heading_level is None
    assert document.paragraph_count == 3
    assert document.warnings == []
    assert document.stats.total_ms >= document.stats.parse_ms


def test_empty_buffer_raises() -> None:
    with pytest.raises(ParseError):
        reconstruct_document(b"")


def test_unparseable_buffer_returns_warning() -> None:
    document = reconstruct_document(b"not a pdf at all")

    assert document.page_count == 0
    assert document.elements == []
    assert document.warnings[-1].startswith("Parse error: ")


def test_truncated_document_is_recovered(text_pdf: bytes) -> None:
    truncated = text_pdf[: text_pdf.index(b"xref")]

    document = reconstruct_document(truncated)

    assert document.page_count == 1
    assert document.paragraph_count == 3
    assert document.warnings


def test_page_selection_keeps_requested_order(pdf_builder) -> None:
    data = _multi_page_pdf(
        pdf_builder,
        [b"BT /F1 12 Tf 72 700 Td (page %d) Tj ET" % number for number in (1, 2, 3)],
    )

    document = reconstruct_document(data, ReconstructionOptions(page_numbers=[2, 0, 7]))

    assert document.page_count == 3
    assert [(element.page_index, element.text) for element in document.elements] == [(2, "page 3"), (0, "page 1")]
    assert document.warnings == ["Page index 7 out of bounds for document with 3 pages"]


def test_worker_pool_matches_sequential_output(pdf_builder) -> None:
    data = _multi_page_pdf(
        pdf_builder,
        [b"BT /F1 12 Tf 72 700 Td (page %d) Tj ET /Missing Do" % number for number in range(1, 6)],
    )

    sequential = DocumentReconstructor(ReconstructionOptions(max_workers=1)).reconstruct(data)
    threaded = DocumentReconstructor(ReconstructionOptions(max_workers=4)).reconstruct(data)

    assert [element.text for element in threaded.elements] == [element.text for element in sequential.elements]
    assert threaded.warnings == sequential.warnings
    assert threaded.warnings[0] == "Page 1: XObject /Missing is not defined"
    assert len(threaded.warnings) == 5


def test_images_are_indexed_across_pages(image_pdf: bytes) -> None:
    document = reconstruct_document(image_pdf)

    assert [image.format for image in document.images] == ["jpg", "png"]
    assert document.images[0].data == b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"
    assert (document.images[1].width, document.images[1].height) == (1, 1)
    placed = [element for element in document.elements if isinstance(element, StructuredImage)]
    assert [(element.page_index, element.image_index) for element in placed] == [(0, 0), (1, 1)]
    assert (placed[0].bbox.left, placed[0].bbox.bottom, placed[0].bbox.right, placed[0].bbox.top) == (
        72.0,
        700.0,
        92.0,
        720.0,
    )
    assert isinstance(document.elements[-1], StructuredParagraph)
    assert document.elements[-1].text == "Figure 2"
    assert document.page_width == 595.0


def test_image_extraction_can_be_disabled(image_pdf: bytes) -> None:
    document = reconstruct_document(image_pdf, ReconstructionOptions(extract_images=False))

    assert document.images == []
    assert document.image_count == 0
    assert document.text == "Figure 2"


def test_pypdf_written_document(sample_pdf: Path) -> None:
    document = reconstruct_document(sample_pdf.read_bytes())

    assert document.page_count == 3
    assert (document.page_width, document.page_height) == (200.0, 200.0)
    assert document.metadata.title == "Sample"
    assert document.metadata.producer == "pdfreconx-tests"
    assert document.elements == []


def test_corrupt_page_numbers_do_not_raise(page_pdf) -> None:
    resources = b"<< /Font << /F1 5 0 R >> >> /Rotate 1e400 /CropBox [0 0 1" + b"0" * 400 + b" 792]"

    document = reconstruct_document(page_pdf(b"BT /F1 12 Tf 72 700 Td (Hello) Tj ET", resources=resources))

    assert document.page_count == 1
    assert (document.page_width, document.page_height) == (612.0, 792.0)
    assert document.text == "Hello"


def test_bookmarks_and_page_labels() -> None:
    writer = PdfWriter()
    for _ in range(3):
        writer.add_blank_page(width=200, height=200)
    writer.add_outline_item("Preface", 0)
    body = writer.add_outline_item("Body", 1)
    writer.add_outline_item("Detail", 2, parent=body)
    writer.set_page_label(0, 1, style="/r")
    writer.set_page_label(2, 2, style="/D", start=1)
    buffer = BytesIO()
    writer.write(buffer)

    document = reconstruct_document(buffer.getvalue())

    assert [(item.title, item.page_index) for item in document.outlines] == [("Preface", 0), ("Body", 1)]
    assert [(item.title, item.page_index) for item in document.outlines[1].children] == [("Detail", 2)]
    assert document.page_labels == ["i", "ii", "1"]
    assert document.warnings == []
