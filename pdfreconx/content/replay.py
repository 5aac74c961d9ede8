"""Content stream replay.

:func:`replay` runs the operators of a tokenized content stream against a
:class:`GraphicsState` and collects the positioned primitives that layout
reconstruction works from: text runs, straight line segments and image
placements. Operators are dispatched through a handler table keyed by the
operator keyword; :data:`OPERATOR_ARITY` lists the operand count each one
consumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..constants import IDENTITY_MATRIX, MAX_FORM_DEPTH, Matrix
from ..core.filters import codec_filter, is_decodable, normalise_filter_name
from ..core.store import ObjectRecord, ObjectStore
from ..core.syntax import ObjectId
from ..fonts.decoding import decode_string
from ..fonts.resolver import FontInfo, FontResolver
from ..images import describe_color_space
from ..primitives import ImagePlacement, ImageResource, LineSegment, PositionedTextRun
from .state import (
    GraphicsState,
    cmyk_color,
    generic_color,
    gray_color,
    matrix_apply,
    matrix_multiply,
    matrix_rotation,
    matrix_scale,
    rgb_color,
    translation,
)
from .tokens import Token, TokenKind, tokenize

__all__ = [
    "HANDLED_OPERATORS",
    "IGNORED_OPERATORS",
    "OPERATOR_ARITY",
    "ReplayContext",
    "ReplayResult",
    "replay",
]

LOGGER = logging.getLogger("pdfreconx.replay")

# ``None`` marks operators taking a variable number of operands.
OPERATOR_ARITY: dict[str, int | None] = {
    # General graphics state
    "w": 1, "J": 1, "j": 1, "M": 1, "d": 2, "ri": 1, "i": 1, "gs": 1,
    # Special graphics state
    "q": 0, "Q": 0, "cm": 6,
    # Path construction
    "m": 2, "l": 2, "c": 6, "v": 4, "y": 4, "h": 0, "re": 4,
    # Path painting
    "S": 0, "s": 0, "f": 0, "F": 0, "f*": 0, "B": 0, "B*": 0, "b": 0, "b*": 0, "n": 0,
    # Clipping
    "W": 0, "W*": 0,
    # Text objects and state
    "BT": 0, "ET": 0,
    "Tc": 1, "Tw": 1, "Tz": 1, "TL": 1, "Tf": 2, "Tr": 1, "Ts": 1,
    # Text positioning
    "Td": 2, "TD": 2, "Tm": 6, "T*": 0,
    # Text showing
    "Tj": 1, "TJ": 1, "'": 1, '"': 3,
    # Type 3 glyphs
    "d0": 2, "d1": 6,
    # Colour
    "CS": 1, "cs": 1,
    "SC": None, "SCN": None, "sc": None, "scn": None,
    "G": 1, "g": 1, "RG": 3, "rg": 3, "K": 4, "k": 4,
    # Shading, XObjects and inline images
    "sh": 1, "Do": 1, "BI": 1,
    # Marked content and compatibility
    "MP": 1, "DP": 2, "BMC": 1, "BDC": 2, "EMC": 0, "BX": 0, "EX": 0,
}  # fmt: skip

IGNORED_OPERATORS = frozenset(
    {
        "J", "j", "M", "d", "ri", "i", "gs",
        "W", "W*",
        "Tr", "d0", "d1",
        "CS", "cs",
        "sh", "BI",
        "MP", "DP", "BMC", "BDC", "EMC", "BX", "EX",
    }
)  # fmt: skip

_HANDLERS: dict[str, str] = {
    "q": "_op_save",
    "Q": "_op_restore",
    "cm": "_op_concat",
    "w": "_op_line_width",
    "BT": "_op_begin_text",
    "ET": "_op_end_text",
    "Td": "_op_move_text",
    "TD": "_op_move_text_set_leading",
    "Tm": "_op_text_matrix",
    "T*": "_op_next_line",
    "Tf": "_op_font",
    "Tc": "_op_character_spacing",
    "Tw": "_op_word_spacing",
    "Ts": "_op_rise",
    "TL": "_op_leading",
    "Tz": "_op_horizontal_scaling",
    "Tj": "_op_show",
    "TJ": "_op_show_array",
    "'": "_op_next_line_show",
    '"': "_op_spacing_next_line_show",
    "m": "_op_move_to",
    "l": "_op_line_to",
    "c": "_op_curve",
    "v": "_op_curve",
    "y": "_op_curve",
    "h": "_op_close",
    "re": "_op_rectangle",
    "S": "_op_paint",
    "f": "_op_paint",
    "F": "_op_paint",
    "f*": "_op_paint",
    "B": "_op_paint",
    "B*": "_op_paint",
    "s": "_op_close_paint",
    "b": "_op_close_paint",
    "b*": "_op_close_paint",
    "n": "_op_discard_path",
    "rg": "_op_fill_rgb",
    "g": "_op_fill_gray",
    "k": "_op_fill_cmyk",
    "RG": "_op_stroke_rgb",
    "G": "_op_stroke_gray",
    "K": "_op_stroke_cmyk",
    "sc": "_op_fill_generic",
    "scn": "_op_fill_generic",
    "SC": "_op_stroke_generic",
    "SCN": "_op_stroke_generic",
    "Do": "_op_xobject",
}

HANDLED_OPERATORS = frozenset(_HANDLERS)

_DEFAULT_GLYPH_WIDTH = 500.0
_DEGENERATE = 1e-9

Point = tuple[float, float]


@dataclass(slots=True)
class ReplayContext:
    """Inputs shared by one page replay."""

    store: ObjectStore
    resources: dict[str, Any]
    fonts: FontResolver | None = None
    warnings: list[str] = field(default_factory=list)
    max_form_depth: int = MAX_FORM_DEPTH
    extract_images: bool = True
    page_index: int = 0


@dataclass(slots=True)
class ReplayResult:
    texts: list[PositionedTextRun] = field(default_factory=list)
    lines: list[LineSegment] = field(default_factory=list)
    images: list[ImagePlacement] = field(default_factory=list)


def replay(tokens: Sequence[Token], context: ReplayContext) -> ReplayResult:
    """Replay *tokens* and return the primitives they draw."""

    return _Replayer(context).run(tokens)


class _Replayer:
    def __init__(self, context: ReplayContext) -> None:
        self.context = context
        self.store = context.store
        self.fonts = context.fonts if context.fonts is not None else FontResolver(context.store)
        self.result = ReplayResult()
        self.state = GraphicsState()
        self.stack: list[GraphicsState] = []
        self.resources: dict[str, Any] = context.resources if isinstance(context.resources, dict) else {}
        self._font_tables: dict[int, dict[str, FontInfo]] = {}
        self._missing_fonts: set[str] = set()
        self._active_forms: list[int] = []
        self._pending: list[LineSegment] = []
        self._current: Point | None = None
        self._subpath_start: Point | None = None
        self._sequence = 0

    # -- Driver --------------------------------------------------------------

    def run(self, tokens: Sequence[Token]) -> ReplayResult:
        self._execute(tokens)
        self._flush_path()
        LOGGER.debug(
            "Replayed page %d: %d text runs, %d segments, %d images",
            self.context.page_index + 1,
            len(self.result.texts),
            len(self.result.lines),
            len(self.result.images),
        )
        return self.result

    def _execute(self, tokens: Sequence[Token]) -> None:
        operands: list[Token] = []
        for token in tokens:
            if not token.is_operator:
                operands.append(token)
                continue
            operator = token.value
            arity = OPERATOR_ARITY.get(operator, -1)
            if arity == -1:
                LOGGER.debug("Ignoring unknown operator %r", operator)
            elif arity is not None and len(operands) < arity:
                LOGGER.debug("Operator %r expects %d operands, got %d", operator, arity, len(operands))
            else:
                handler = _HANDLERS.get(operator)
                if handler is not None:
                    args = operands if arity is None else operands[len(operands) - arity :]
                    getattr(self, handler)(args)
            operands = []

    def _warn(self, message: str) -> None:
        message = f"Page {self.context.page_index + 1}: {message}"
        LOGGER.warning(message)
        self.context.warnings.append(message)

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    # -- Graphics state ------------------------------------------------------

    def _op_save(self, operands: list[Token]) -> None:
        self.stack.append(self.state.copy())

    def _op_restore(self, operands: list[Token]) -> None:
        if self.stack:
            self.state = self.stack.pop()

    def _op_concat(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.ctm = matrix_multiply(self.state.ctm, _as_matrix(values))

    def _op_line_width(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.line_width = values[0]

    # -- Text objects and positioning ---------------------------------------

    def _op_begin_text(self, operands: list[Token]) -> None:
        self.state.text_matrix = IDENTITY_MATRIX
        self.state.line_matrix = IDENTITY_MATRIX

    def _op_end_text(self, operands: list[Token]) -> None:
        pass

    def _move_line(self, tx: float, ty: float) -> None:
        state = self.state
        state.line_matrix = matrix_multiply(state.line_matrix, translation(tx, ty))
        state.text_matrix = state.line_matrix

    def _op_move_text(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self._move_line(values[0], values[1])

    def _op_move_text_set_leading(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.leading = -values[1]
            self._move_line(values[0], values[1])

    def _op_text_matrix(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.text_matrix = _as_matrix(values)
            self.state.line_matrix = self.state.text_matrix

    def _op_next_line(self, operands: list[Token]) -> None:
        self._move_line(0.0, -self.state.effective_leading)

    # -- Text state ----------------------------------------------------------

    def _op_font(self, operands: list[Token]) -> None:
        name, size = operands
        if name.kind is TokenKind.NAME:
            self.state.font_resource = name.value
        number = size.as_number()
        if number is not None:
            self.state.font_size = number

    def _op_character_spacing(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.character_spacing = values[0]

    def _op_word_spacing(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.word_spacing = values[0]

    def _op_rise(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.text_rise = values[0]

    def _op_leading(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.leading = values[0]

    def _op_horizontal_scaling(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self.state.horizontal_scaling = values[0]

    # -- Text showing --------------------------------------------------------

    def _op_show(self, operands: list[Token]) -> None:
        if operands[0].is_string:
            self._show_string(operands[0].value)

    def _op_show_array(self, operands: list[Token]) -> None:
        array = operands[0]
        if array.kind is not TokenKind.ARRAY:
            return
        state = self.state
        for item in array.value:
            if item.is_string:
                self._show_string(item.value)
                continue
            number = item.as_number()
            if number is not None:
                shift = -number / 1000.0 * state.font_size * state.horizontal_scaling / 100.0
                state.text_matrix = matrix_multiply(state.text_matrix, translation(shift, 0.0))

    def _op_next_line_show(self, operands: list[Token]) -> None:
        self._op_next_line([])
        self._op_show(operands)

    def _op_spacing_next_line_show(self, operands: list[Token]) -> None:
        values = _numbers(operands[:2])
        if values is not None:
            self.state.word_spacing, self.state.character_spacing = values
        self._op_next_line_show(operands[2:])

    def _show_string(self, raw: bytes) -> None:
        state = self.state
        font = self._current_font()
        text, codes = decode_string(raw, font)
        size = state.font_size
        single_byte = font is None or not font.composite
        advance = 0.0
        for code in codes:
            width = font.glyph_width(code) if font is not None else _DEFAULT_GLYPH_WIDTH
            advance += width / 1000.0 * size + state.character_spacing
            if single_byte and code == 32:
                advance += state.word_spacing
        advance *= state.horizontal_scaling / 100.0

        if text:
            matrix = matrix_multiply(state.ctm, state.text_matrix)
            scale = matrix_scale(matrix)
            self.result.texts.append(
                PositionedTextRun(
                    text=text,
                    x=matrix[4],
                    y=matrix[5],
                    width=advance * scale,
                    font_size=abs(size) * scale,
                    font_resource=state.font_resource,
                    font_name=font.base_name if font is not None else None,
                    fill_color=state.fill_color,
                    bold=font.bold if font is not None else False,
                    italic=font.italic if font is not None else False,
                    rise=state.text_rise,
                    rotation=matrix_rotation(matrix),
                    sequence=self._next_sequence(),
                )
            )
        state.text_matrix = matrix_multiply(state.text_matrix, translation(advance, 0.0))

    def _current_font(self) -> FontInfo | None:
        name = self.state.font_resource
        if name is None:
            return None
        table = self._font_tables.get(id(self.resources))
        if table is None:
            table = self.fonts.resolve(self.resources, self.context.warnings)
            self._font_tables[id(self.resources)] = table
        font = table.get(name)
        if font is None and name not in self._missing_fonts:
            self._missing_fonts.add(name)
            self._warn(f"font {name} is not defined in the page resources")
        return font

    # -- Paths ---------------------------------------------------------------

    def _point(self, x: float, y: float) -> Point:
        return matrix_apply(self.state.ctm, x, y)

    def _add_segment(self, start: Point, end: Point) -> None:
        if abs(start[0] - end[0]) < _DEGENERATE and abs(start[1] - end[1]) < _DEGENERATE:
            return
        self._pending.append(
            LineSegment(
                start[0],
                start[1],
                end[0],
                end[1],
                line_width=self.state.line_width * matrix_scale(self.state.ctm),
                stroke_color=self.state.stroke_color,
            )
        )

    def _op_move_to(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self._current = self._point(values[0], values[1])
            self._subpath_start = self._current

    def _op_line_to(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is None:
            return
        point = self._point(values[0], values[1])
        if self._current is not None:
            self._add_segment(self._current, point)
        else:
            self._subpath_start = point
        self._current = point

    def _op_curve(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is not None:
            self._current = self._point(values[-2], values[-1])
            if self._subpath_start is None:
                self._subpath_start = self._current

    def _op_close(self, operands: list[Token]) -> None:
        if self._current is not None and self._subpath_start is not None:
            self._add_segment(self._current, self._subpath_start)
            self._current = self._subpath_start

    def _op_rectangle(self, operands: list[Token]) -> None:
        values = _numbers(operands)
        if values is None:
            return
        x, y, width, height = values
        corners = [
            self._point(x, y),
            self._point(x + width, y),
            self._point(x + width, y + height),
            self._point(x, y + height),
        ]
        for index, corner in enumerate(corners):
            self._add_segment(corner, corners[(index + 1) % 4])
        self._current = corners[0]
        self._subpath_start = corners[0]

    def _op_paint(self, operands: list[Token]) -> None:
        self._flush_path()

    def _op_close_paint(self, operands: list[Token]) -> None:
        self._op_close(operands)
        self._flush_path()

    def _op_discard_path(self, operands: list[Token]) -> None:
        self._pending = []
        self._current = None
        self._subpath_start = None

    def _flush_path(self) -> None:
        self.result.lines.extend(self._pending)
        self._op_discard_path([])

    # -- Colour --------------------------------------------------------------

    def _op_fill_rgb(self, operands: list[Token]) -> None:
        self.state.fill_color = rgb_color(_raw_numbers(operands))

    def _op_fill_gray(self, operands: list[Token]) -> None:
        self.state.fill_color = gray_color(_raw_numbers(operands))

    def _op_fill_cmyk(self, operands: list[Token]) -> None:
        self.state.fill_color = cmyk_color(_raw_numbers(operands))

    def _op_stroke_rgb(self, operands: list[Token]) -> None:
        self.state.stroke_color = rgb_color(_raw_numbers(operands))

    def _op_stroke_gray(self, operands: list[Token]) -> None:
        self.state.stroke_color = gray_color(_raw_numbers(operands))

    def _op_stroke_cmyk(self, operands: list[Token]) -> None:
        self.state.stroke_color = cmyk_color(_raw_numbers(operands))

    def _op_fill_generic(self, operands: list[Token]) -> None:
        color = generic_color(_raw_numbers(operands))
        if color is not None:
            self.state.fill_color = color

    def _op_stroke_generic(self, operands: list[Token]) -> None:
        color = generic_color(_raw_numbers(operands))
        if color is not None:
            self.state.stroke_color = color

    # -- XObjects ------------------------------------------------------------

    def _op_xobject(self, operands: list[Token]) -> None:
        name_token = operands[0]
        if name_token.kind is not TokenKind.NAME:
            return
        name = name_token.value
        store = self.store
        xobjects = store.resolve(self.resources.get("/XObject"), self.context.warnings)
        ref = xobjects.get(name) if isinstance(xobjects, dict) else None
        record = store.get_object(ref, self.context.warnings) if isinstance(ref, ObjectId) else None
        if record is None or not record.is_stream:
            self._warn(f"XObject {name} is not defined")
            return
        subtype = store.resolve(record.dictionary.get("/Subtype"))
        if subtype == "/Image":
            if self.context.extract_images:
                self._place_image(name, record)
        elif subtype == "/Form":
            self._replay_form(name, record)
        else:
            LOGGER.debug("Ignoring XObject %s with subtype %s", name, subtype)

    def _place_image(self, name: str, record: ObjectRecord) -> None:
        store = self.store
        warnings = self.context.warnings
        dictionary = record.dictionary
        filters = [normalise_filter_name(item) for item in store.stream_filters(dictionary)[0]]
        image_mask = store.resolve(dictionary.get("/ImageMask")) is True
        color_space = None
        if not image_mask:
            named = store.resolve(self.resources.get("/ColorSpace"))
            color_space = describe_color_space(
                store, dictionary.get("/ColorSpace"), named if isinstance(named, dict) else None, warnings
            )
        resource = ImageResource(
            object_id=record.object_id,
            width=_int_value(store.resolve(dictionary.get("/Width"))),
            height=_int_value(store.resolve(dictionary.get("/Height"))),
            color_space=color_space,
            bits_per_component=_int_value(store.resolve(dictionary.get("/BitsPerComponent")), 8),
            filters=filters,
            image_mask=image_mask,
        )
        self._attach_soft_mask(resource, dictionary.get("/SMask"))
        data = store.decode_stream(record, warnings) if all(is_decodable(item) for item in filters) else b""

        ctm = self.state.ctm
        corners = [matrix_apply(ctm, x, y) for x, y in ((0, 0), (1, 0), (0, 1), (1, 1))]
        xs = [point[0] for point in corners]
        ys = [point[1] for point in corners]
        self.result.images.append(
            ImagePlacement(
                data=data,
                x=min(xs),
                y=min(ys),
                width=max(xs) - min(xs),
                height=max(ys) - min(ys),
                filter_name=codec_filter(filters),
                name=name,
                resource=resource,
                sequence=self._next_sequence(),
            )
        )

    def _attach_soft_mask(self, resource: ImageResource, ref: Any) -> None:
        if not isinstance(ref, ObjectId):
            return
        store = self.store
        record = store.get_object(ref, self.context.warnings)
        if record is None or not record.is_stream:
            return
        filters = store.stream_filters(record.dictionary)[0]
        if codec_filter(filters) is not None or not all(is_decodable(item) for item in filters):
            LOGGER.debug("Soft mask %s uses an image codec; ignoring it", ref)
            return
        dictionary = record.dictionary
        resource.soft_mask = store.decode_stream(record, self.context.warnings)
        resource.soft_mask_bits = _int_value(store.resolve(dictionary.get("/BitsPerComponent")), 8)
        resource.soft_mask_size = (
            _int_value(store.resolve(dictionary.get("/Width"))),
            _int_value(store.resolve(dictionary.get("/Height"))),
        )

    def _replay_form(self, name: str, record: ObjectRecord) -> None:
        number = record.object_id.number
        if number in self._active_forms:
            self._warn(f"Form XObject {name} draws itself; skipped")
            return
        if len(self._active_forms) >= self.context.max_form_depth:
            self._warn(f"Form XObject {name} exceeds the nesting limit of {self.context.max_form_depth}; skipped")
            return
        store = self.store
        dictionary = record.dictionary
        tokens = tokenize(store.decode_stream(record, self.context.warnings))
        matrix = store.resolve(dictionary.get("/Matrix"))
        values = [store.resolve(item) for item in matrix] if isinstance(matrix, list) else []
        form_matrix = _as_matrix(values) if len(values) == 6 and all(_is_number(v) for v in values) else IDENTITY_MATRIX
        resources = store.resolve(dictionary.get("/Resources"), self.context.warnings)

        saved_state = self.state.copy()
        saved_depth = len(self.stack)
        saved_resources = self.resources
        self.state.ctm = matrix_multiply(self.state.ctm, form_matrix)
        if isinstance(resources, dict):
            self.resources = resources
        self._active_forms.append(number)
        try:
            self._execute(tokens)
        finally:
            self._active_forms.pop()
            self.resources = saved_resources
            del self.stack[saved_depth:]
            self.state = saved_state


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _numbers(operands: Sequence[Token]) -> list[float] | None:
    values: list[float] = []
    for operand in operands:
        number = operand.as_number()
        if number is None:
            return None
        values.append(number)
    return values


def _raw_numbers(operands: Sequence[Token]) -> list[float]:
    return [number for number in (operand.as_number() for operand in operands) if number is not None]


def _as_matrix(values: Sequence[float]) -> Matrix:
    return (
        float(values[0]),
        float(values[1]),
        float(values[2]),
        float(values[3]),
        float(values[4]),
        float(values[5]),
    )


def _int_value(value: Any, default: int = 0) -> int:
    if _is_number(value):
        return int(value)
    return default
