from __future__ import annotations

import pytest

from pdfreconx.core.syntax import (
    ObjectId,
    decode_text,
    parse_value,
    read_hex_string,
    read_literal_string,
    read_name,
    to_number,
)


def test_parse_dictionary_with_references() -> None:
    data = b"<< /Type /Page /Parent 2 0 R /Kids [3 0 R 4 0 R] /Rotate 90 >>"
    value, end = parse_value(data, 0)

    assert end == len(data)
    assert value == {
        "/Type": "/Page",
        "/Parent": ObjectId(2, 0),
        "/Kids": [ObjectId(3, 0), ObjectId(4, 0)],
        "/Rotate": 90,
    }
    assert str(value["/Parent"]) == "2 0 R"


def test_parse_numbers_and_keywords() -> None:
    value, _ = parse_value(b"[1 -2 3.5 .5 +7 true false null]", 0)

    assert value == [1, -2, 3.5, 0.5, 7, True, False, None]


def test_integers_without_r_are_not_references() -> None:
    value, _ = parse_value(b"[0 0 612 792]", 0)

    assert value == [0, 0, 612, 792]
    assert not any(isinstance(item, ObjectId) for item in value)


def test_literal_string_escapes_and_nesting() -> None:
    value, end = read_literal_string(b"(a\\(b\\)c (nested) \\101\\nend) tail", 0)

    assert value == b"a(b)c (nested) A\nend"
    assert end == 28


def test_hex_string_ignores_whitespace_and_pads_odd_digits() -> None:
    assert read_hex_string(b"<48 65 6C6C 6F>", 0)[0] == b"Hello"
    assert read_hex_string(b"<414>", 0)[0] == b"A@"


def test_name_hex_escapes() -> None:
    name, end = read_name(b"/A#20B next", 0)

    assert name == "/A B"
    assert end == 6


def test_to_number_rejects_words() -> None:
    assert to_number(b"42") == 42
    assert to_number(b"-0.25") == -0.25
    assert to_number(b"inf") is None
    assert to_number(b"nan") is None
    assert to_number(b"Tj") is None


def test_to_number_follows_pdf_number_grammar() -> None:
    assert to_number(b"4.") == 4.0
    assert to_number(b"-.002") == -0.002
    assert to_number(b"+17") == 17
    assert to_number(b"1e400") is None
    assert to_number(b"1_000") is None
    assert to_number(b"1" + b"0" * 400) is None
    assert to_number(b"1" + b"0" * 400 + b".5") is None


def test_malformed_number_parses_as_zero() -> None:
    value, end = parse_value(b"<< /Rotate 1e400 /Count 3 >>", 0)

    assert value == {"/Rotate": 0, "/Count": 3}
    assert end == 28


def test_unterminated_values_raise() -> None:
    with pytest.raises(ValueError):
        parse_value(b"[1 2", 0)
    with pytest.raises(ValueError):
        parse_value(b"<< /Key (open", 0)


def test_decode_text_variants() -> None:
    assert decode_text(b"\xfe\xff\x00H\x00i") == "Hi"
    assert decode_text(b"\xef\xbb\xbfCaf\xc3\xa9") == "Café"
    assert decode_text(b"Caf\xe9") == "Café"
    assert decode_text("/Name") == "Name"
    assert decode_text(None) == ""
