from __future__ import annotations

from pdfreconx.content import Token, TokenKind, tokenize


def _kinds(tokens: list[Token]) -> list[TokenKind]:
    return [token.kind for token in tokens]


def test_operands_precede_their_operator() -> None:
    tokens = tokenize(b"BT /F1 12 Tf 72 720 Td (Hello) Tj ET")

    assert [token.value for token in tokens if token.is_operator] == ["BT", "Tf", "Td", "Tj", "ET"]
    assert tokens[1] == Token(TokenKind.NAME, "/F1")
    assert tokens[2].as_number() == 12.0
    assert tokens[7] == Token(TokenKind.STRING, b"Hello")


def test_arrays_and_hex_strings() -> None:
    tokens = tokenize(b"[(A) -120 <0042>] TJ")

    array = tokens[0]
    assert array.kind is TokenKind.ARRAY
    assert _kinds(array.value) == [TokenKind.STRING, TokenKind.NUMBER, TokenKind.HEX_STRING]
    assert array.to_python() == [b"A", -120, b"\x00B"]
    assert tokens[1].value == "TJ"


def test_quote_operators_and_comments() -> None:
    tokens = tokenize(b"% comment\n1 2 (x) \" (y) '")

    assert [token.value for token in tokens if token.is_operator] == ['"', "'"]
    assert tokens[0].as_number() == 1.0


def test_marked_content_dictionary() -> None:
    tokens = tokenize(b"/Span << /ActualText (fi) /MCID 3 >> BDC EMC")

    assert tokens[1].kind is TokenKind.DICTIONARY
    assert tokens[1].to_python() == {"/ActualText": b"fi", "/MCID": 3}
    assert tokens[2].value == "BDC"


def test_inline_image_is_skipped_as_one_operand() -> None:
    tokens = tokenize(b"q BI /W 2 /H 1 /BPC 8 /CS /G ID \x00\xff EI Q")

    assert [token.value for token in tokens if token.is_operator] == ["q", "BI", "Q"]
    parameters = tokens[1]
    assert parameters.kind is TokenKind.DICTIONARY
    assert parameters.to_python() == {"/W": 2, "/H": 1, "/BPC": 8, "/CS": "/G"}


def test_malformed_tail_is_dropped() -> None:
    tokens = tokenize(b"1 0 0 1 0 0 cm (unterminated")

    assert [token.value for token in tokens if token.is_operator] == ["cm"]
