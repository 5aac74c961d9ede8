"""Graphics state snapshot and affine matrix helpers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from math import atan2, degrees, hypot
from typing import Sequence

from ..constants import DEFAULT_FONT_SIZE, IDENTITY_MATRIX, Matrix

__all__ = [
    "GraphicsState",
    "cmyk_color",
    "generic_color",
    "gray_color",
    "matrix_apply",
    "matrix_multiply",
    "matrix_rotation",
    "matrix_scale",
    "rgb_color",
    "translation",
]


@dataclass(slots=True)
class GraphicsState:
    """Graphics and text state of a content stream at one point in time."""

    ctm: Matrix = IDENTITY_MATRIX
    text_matrix: Matrix = IDENTITY_MATRIX
    line_matrix: Matrix = IDENTITY_MATRIX
    font_resource: str | None = None
    font_size: float = DEFAULT_FONT_SIZE
    character_spacing: float = 0.0
    word_spacing: float = 0.0
    horizontal_scaling: float = 100.0
    leading: float | None = None
    text_rise: float = 0.0
    fill_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    stroke_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    line_width: float = 1.0

    def copy(self) -> "GraphicsState":
        return replace(self)

    @property
    def effective_leading(self) -> float:
        """Explicit leading, or 1.2 times the font size when none was set."""

        if self.leading is None:
            return self.font_size * 1.2
        return self.leading


def matrix_multiply(lhs: Matrix, rhs: Matrix) -> Matrix:
    """Compose two affine matrices; *rhs* is applied first, then *lhs*."""

    a1, b1, c1, d1, e1, f1 = lhs
    a2, b2, c2, d2, e2, f2 = rhs
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def matrix_apply(matrix: Matrix, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, e, f = matrix
    return a * x + c * y + e, b * x + d * y + f


def translation(tx: float, ty: float) -> Matrix:
    return (1.0, 0.0, 0.0, 1.0, tx, ty)


def matrix_scale(matrix: Matrix) -> float:
    """Length of the transformed x unit vector, falling back to the y vector."""

    a, b, c, d, _e, _f = matrix
    scale = hypot(a, b)
    if scale == 0:
        scale = hypot(c, d)
    return scale


def matrix_rotation(matrix: Matrix) -> float:
    a, b = matrix[0], matrix[1]
    if a == 0 and b == 0:
        return 0.0
    return degrees(atan2(b, a))


def _to_float(value: object) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0


def _normalise(components: list[float]) -> list[float]:
    max_value = max(components or [0.0])
    if max_value > 1.0:
        scale = 255.0 if max_value > 10.0 else max_value
        if scale:
            components = [component / scale for component in components]
    return [max(0.0, min(component, 1.0)) for component in components]


def rgb_color(values: Sequence[object]) -> tuple[float, float, float]:
    comps = _normalise([_to_float(v) for v in values[:3]])
    comps += [0.0] * (3 - len(comps))
    return (comps[0], comps[1], comps[2])


def gray_color(values: Sequence[object]) -> tuple[float, float, float]:
    if not values:
        return (0.0, 0.0, 0.0)
    value = _normalise([_to_float(values[0])])[0]
    return (value, value, value)


def cmyk_color(values: Sequence[object]) -> tuple[float, float, float]:
    comps = _normalise([_to_float(v) for v in values[:4]])
    c, m, y, k = comps + [0.0] * (4 - len(comps))
    return (1.0 - min(1.0, c + k), 1.0 - min(1.0, m + k), 1.0 - min(1.0, y + k))


def generic_color(values: Sequence[object]) -> tuple[float, float, float] | None:
    count = len(values)
    if count == 1:
        return gray_color(values)
    if count == 3:
        return rgb_color(values)
    if count >= 4:
        return cmyk_color(values)
    return None
