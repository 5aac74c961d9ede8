from __future__ import annotations

import base64
import zlib

import pytest

from pdfreconx.core.store import ObjectStore
from pdfreconx.core.syntax import ObjectId
from pdfreconx.exceptions import ParseError

CATALOG = b"<< /Type /Catalog /Pages 2 0 R >>"
PAGES = b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>"
PAGE = b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 200 300] >>"


def _startxref(data: bytes) -> int:
    return int(data.rsplit(b"startxref", 1)[1].split()[0])


def test_parse_classic_cross_reference_table(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: b"<< /Title (Sample) /Author <FEFF0041> >>"}, info=4)

    store = ObjectStore.parse(data)

    assert store.xref_kind == "table"
    assert store.version == "1.7"
    assert store.root_ref == ObjectId(1, 0)
    assert store.startxref == _startxref(data)
    assert len(store) == 4
    assert store.metadata() == {"/Title": "Sample", "/Author": "A"}
    assert store.warnings == []


def test_parse_cross_reference_stream_with_object_stream(pdf_builder) -> None:
    data = pdf_builder(
        {3: PAGE},
        xref="stream",
        compressed={1: CATALOG, 2: PAGES},
    )

    store = ObjectStore.parse(data)

    assert store.xref_kind == "stream"
    assert store.resolve(ObjectId(2))["/Type"] == "/Pages"
    assert store.resolve(store.resolve(ObjectId(1))["/Pages"])["/Count"] == 1
    assert store.warnings == []


def test_incremental_update_overrides_older_objects(pdf_builder) -> None:
    base = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: b"<< /Title (Old) >>"}, info=4)
    offset = len(base)
    update = b"4 0 obj\n<< /Title (New) >>\nendobj\n"
    xref_offset = offset + len(update)
    update += (
        b"xref\n4 1\n%010d 00000 n \ntrailer\n<< /Size 5 /Root 1 0 R /Info 4 0 R /Prev %d >>\n"
        b"startxref\n%d\n%%%%EOF\n" % (offset, _startxref(base), xref_offset)
    )

    store = ObjectStore.parse(base + update)

    assert store.metadata()["/Title"] == "New"
    assert store.resolve(ObjectId(3))["/Type"] == "/Page"


def test_catalog_version_overrides_older_header(pdf_builder) -> None:
    data = pdf_builder({1: b"<< /Type /Catalog /Pages 2 0 R /Version /1.7 >>", 2: PAGES, 3: PAGE}, version="1.4")

    assert ObjectStore.parse(data).version == "1.7"


def test_broken_startxref_falls_back_to_scanning(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE}, startxref=999999)

    store = ObjectStore.parse(data)

    assert store.xref_kind == "scan"
    assert store.root_ref == ObjectId(1, 0)
    assert store.resolve(ObjectId(3))["/MediaBox"] == [0, 0, 200, 300]
    assert any("fallback object scanning" in warning for warning in store.warnings)


def test_truncated_file_is_recovered(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE})
    truncated = data[: data.index(b"xref")]

    store = ObjectStore.parse(truncated)

    assert store.xref_kind == "scan"
    assert store.resolve(ObjectId(2))["/Kids"] == [ObjectId(3, 0)]
    assert store.warnings


def test_missing_header_assumes_default_version(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE}).replace(b"%PDF-1.7", b"%XXX-1.7", 1)

    store = ObjectStore.parse(data)

    assert store.version == "1.4"
    assert "Missing %PDF- header; assuming version 1.4" in store.warnings


def test_wrong_stream_length_is_reported(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: (b"", b"BT ET", 500)})
    store = ObjectStore.parse(data)
    warnings: list[str] = []

    content = store.get_stream_content(ObjectId(4), warnings)

    assert content == b"BT ET"
    assert warnings == ["Stream length of object 4 0 R is wrong; located endstream instead"]


def test_cached_notes_are_replayed_to_every_caller(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: (b"", b"BT ET", 500)})
    store = ObjectStore.parse(data)
    first: list[str] = []
    second: list[str] = []

    store.get_object(ObjectId(4), first)
    store.get_object(ObjectId(4), second)

    assert first == second
    assert len(first) == 1


def test_flate_stream_is_decoded(pdf_builder) -> None:
    payload = b"BT /F1 12 Tf (Hi) Tj ET"
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: (b"/Filter /FlateDecode", zlib.compress(payload))})

    store = ObjectStore.parse(data)

    assert store.get_stream_content(ObjectId(4)) == payload


def test_hex_then_flate_chain_is_decoded_in_order(pdf_builder) -> None:
    payload = b"BT /F1 12 Tf (Chained) Tj ET"
    encoded = zlib.compress(payload).hex().upper().encode("ascii") + b">"
    data = pdf_builder(
        {1: CATALOG, 2: PAGES, 3: PAGE, 4: (b"/Filter [/ASCIIHexDecode /FlateDecode]", encoded)}
    )
    store = ObjectStore.parse(data)
    warnings: list[str] = []

    assert store.get_stream_content(ObjectId(4), warnings) == payload
    assert warnings == []


def test_ascii85_stream_is_decoded(pdf_builder) -> None:
    payload = b"BT /F1 12 Tf (Base 85) Tj ET"
    encoded = base64.a85encode(payload) + b"~>"
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: (b"/Filter /ASCII85Decode", encoded)})
    store = ObjectStore.parse(data)
    warnings: list[str] = []

    assert store.get_stream_content(ObjectId(4), warnings) == payload
    assert warnings == []


def test_unsupported_filter_keeps_raw_bytes(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: (b"/Filter /JBIG2Decode", b"\x00\x01")})
    store = ObjectStore.parse(data)
    warnings: list[str] = []

    assert store.get_stream_content(ObjectId(4), warnings) == b"\x00\x01"
    assert warnings == ["Object 4: Filter /JBIG2Decode is not supported; keeping raw stream bytes"]


def test_reference_cycle_resolves_to_none(pdf_builder) -> None:
    data = pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE, 4: b"5 0 R", 5: b"4 0 R"})
    store = ObjectStore.parse(data)
    warnings: list[str] = []

    assert store.resolve(ObjectId(4), warnings) is None
    assert warnings == ["Reference cycle detected at object 4 0 R"]


def test_missing_object_resolves_to_none(pdf_builder) -> None:
    store = ObjectStore.parse(pdf_builder({1: CATALOG, 2: PAGES, 3: PAGE}))

    assert store.get_object(ObjectId(42)) is None
    assert store.resolve(ObjectId(42)) is None


def test_empty_buffer_raises() -> None:
    with pytest.raises(ParseError):
        ObjectStore.parse(b"")


def test_buffer_without_objects_raises() -> None:
    with pytest.raises(ParseError):
        ObjectStore.parse(b"%PDF-1.4\nthis is not a document\n")
