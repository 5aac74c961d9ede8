from __future__ import annotations

from pdfreconx.core.navigation import format_page_label, resolve_outline, resolve_page_labels
from pdfreconx.core.pages import resolve_pages
from pdfreconx.core.store import ObjectStore


def _document(catalog_extra: bytes, extra: dict[int, bytes]) -> dict[int, bytes]:
    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R " + catalog_extra + b" >>",
        2: b"<< /Type /Pages /Kids [3 0 R 4 0 R 5 0 R] /Count 3 /MediaBox [0 0 612 792] >>",
        3: b"<< /Type /Page /Parent 2 0 R >>",
        4: b"<< /Type /Page /Parent 2 0 R >>",
        5: b"<< /Type /Page /Parent 2 0 R >>",
    }
    objects.update(extra)
    return objects


def _bookmarks() -> dict[int, bytes]:
    return _document(
        b"/Outlines 10 0 R /Dests << /App [5 0 R /Fit] >> /Names << /Dests 20 0 R >>",
        {
            10: b"<< /Type /Outlines /First 11 0 R /Last 13 0 R /Count 3 >>",
            11: b"<< /Title (Intro) /Parent 10 0 R /Next 12 0 R /Dest [3 0 R /XYZ 0 700 0] >>",
            12: b"<< /Title <FEFF0043006800610070> /Parent 10 0 R /Prev 11 0 R /Next 13 0 R"
            b" /First 14 0 R /Last 14 0 R /Count -1 /F 3 /A << /S /GoTo /D [4 0 R /FitH 500] >> >>",
            13: b"<< /Title (Appendix) /Parent 10 0 R /Prev 12 0 R /Dest /App >>",
            14: b"<< /Title (Section) /Parent 12 0 R /Dest (sec) >>",
            20: b"<< /Kids [21 0 R] >>",
            21: b"<< /Limits [(a) (sec)] /Names [(a) [3 0 R /Fit] (sec) [5 0 R /XYZ 0 300 0]] >>",
        },
    )


def test_outline_follows_first_and_next(pdf_builder) -> None:
    store = ObjectStore.parse(pdf_builder(_bookmarks()))
    warnings: list[str] = []

    outline = resolve_outline(store, resolve_pages(store), warnings)

    assert [item.title for item in outline] == ["Intro", "Chap", "Appendix"]
    assert [item.page_index for item in outline] == [0, 1, 2]
    assert [item.top for item in outline] == [700.0, 500.0, None]
    assert warnings == []


def test_outline_item_attributes(pdf_builder) -> None:
    store = ObjectStore.parse(pdf_builder(_bookmarks()))

    intro, chapter, appendix = resolve_outline(store, resolve_pages(store))

    assert intro.is_open and not intro.bold and not intro.italic
    assert not chapter.is_open and chapter.bold and chapter.italic
    assert appendix.destination == "App"
    (section,) = chapter.children
    assert (section.title, section.page_index, section.top, section.destination) == ("Section", 2, 300.0, "sec")
    assert [item.title for item in chapter.flatten()] == ["Chap", "Section"]


def test_outline_cycle_is_reported(pdf_builder) -> None:
    objects = _document(
        b"/Outlines 10 0 R",
        {
            10: b"<< /Type /Outlines /First 11 0 R >>",
            11: b"<< /Title (One) /Next 12 0 R /Dest [3 0 R /Fit] >>",
            12: b"<< /Title (Two) /Next 13 0 R /Dest [9 0 R /Fit] >>",
            13: b"<< /Next 11 0 R >>",
        },
    )
    store = ObjectStore.parse(pdf_builder(objects))
    warnings: list[str] = []

    outline = resolve_outline(store, resolve_pages(store), warnings)

    assert [(item.title, item.page_index) for item in outline] == [("One", 0), ("Two", None)]
    assert warnings == ["Outline cycle detected at object 11 0 R"]


def test_document_without_outline(pdf_builder) -> None:
    store = ObjectStore.parse(pdf_builder(_document(b"", {})))

    assert resolve_outline(store, resolve_pages(store)) == []


def test_page_labels_from_number_tree(pdf_builder) -> None:
    objects = _document(b"/PageLabels << /Nums [0 << /S /r >> 2 << /S /D /P (A-) /St 5 >>] >>", {})
    store = ObjectStore.parse(pdf_builder(objects))

    assert resolve_page_labels(store, 3) == ["i", "ii", "A-5"]


def test_page_labels_with_kids_and_leading_gap(pdf_builder) -> None:
    objects = _document(b"/PageLabels 10 0 R", {10: b"<< /Kids [11 0 R] >>", 11: b"<< /Nums [1 << /S /A >>] >>"})
    store = ObjectStore.parse(pdf_builder(objects))

    assert resolve_page_labels(store, 3) == ["1", "A", "B"]


def test_page_labels_default_to_page_numbers(pdf_builder) -> None:
    store = ObjectStore.parse(pdf_builder(_document(b"", {})))

    assert resolve_page_labels(store, 3) == ["1", "2", "3"]


def test_format_page_label() -> None:
    assert format_page_label("/R", "", 1, 1993) == "MCMXCIV"
    assert format_page_label("/a", "", 1, 0) == "a"
    assert format_page_label("/A", "", 1, 27) == "BB"
    assert format_page_label("/D", "p", 3, 0) == "p3"
    assert format_page_label(None, "Cover", 1, 0) == "Cover"
    assert format_page_label("/R", "", 20000, 0) == "20000"
