"""Table detection from ruling lines.

Horizontal and vertical segments that touch each other are grouped into
connected grids. Each grid's row and column edges are clustered into a cell
lattice and text runs are assigned to the cell containing their origin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..options import LayoutOptions
from ..primitives import BoundingBox, LineSegment, PositionedTextRun

__all__ = ["DetectedTable", "detect_tables"]

LOGGER = logging.getLogger("pdfreconx.tables")


@dataclass(slots=True)
class DetectedTable:
    """Cell lattice of one ruled grid.

    ``row_edges`` run top to bottom and ``column_edges`` left to right, so
    ``cells[r][c]`` lies between ``row_edges[r]`` and ``row_edges[r + 1]``.
    """

    row_edges: list[float]
    column_edges: list[float]
    cells: list[list[list[PositionedTextRun]]] = field(default_factory=list)
    segments: list[LineSegment] = field(default_factory=list)

    @property
    def bbox(self) -> BoundingBox:
        return BoundingBox(self.column_edges[0], self.row_edges[-1], self.column_edges[-1], self.row_edges[0])

    @property
    def row_count(self) -> int:
        return len(self.row_edges) - 1

    @property
    def column_count(self) -> int:
        return len(self.column_edges) - 1


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))

    def find(self, item: int) -> int:
        while self.parent[item] != item:
            self.parent[item] = self.parent[self.parent[item]]
            item = self.parent[item]
        return item

    def union(self, first: int, second: int) -> None:
        root_first, root_second = self.find(first), self.find(second)
        if root_first != root_second:
            self.parent[root_second] = root_first


def detect_tables(
    runs: Sequence[PositionedTextRun],
    segments: Sequence[LineSegment],
    options: LayoutOptions | None = None,
) -> tuple[list[DetectedTable], list[PositionedTextRun], list[LineSegment]]:
    """Return the detected tables, the runs left outside them and the unused segments."""

    options = options or LayoutOptions()
    horizontals = [segment for segment in segments if segment.is_horizontal]
    verticals = [segment for segment in segments if segment.is_vertical]
    if len(horizontals) < 2 or len(verticals) < 2:
        return [], list(runs), list(segments)

    tolerance = options.grid_snap_tolerance
    grid = horizontals + verticals
    groups = _DisjointSet(len(grid))
    for h_index, horizontal in enumerate(horizontals):
        for v_offset, vertical in enumerate(verticals):
            if _intersects(horizontal, vertical, tolerance):
                groups.union(h_index, len(horizontals) + v_offset)

    members: dict[int, list[int]] = {}
    for index in range(len(grid)):
        members.setdefault(groups.find(index), []).append(index)

    tables: list[DetectedTable] = []
    consumed: set[int] = set()
    free_runs = list(runs)
    for indices in sorted(members.values(), key=min):
        group = [grid[index] for index in indices]
        table = _build_grid(group, options)
        if table is None:
            continue
        free_runs = _assign_runs(table, free_runs, options.cell_tolerance)
        tables.append(table)
        consumed.update(id(segment) for segment in group)
        LOGGER.debug("Detected %dx%d table at %s", table.row_count, table.column_count, table.bbox)

    tables.sort(key=lambda table: (-table.row_edges[0], table.column_edges[0]))
    free_segments = [segment for segment in segments if id(segment) not in consumed]
    return tables, free_runs, free_segments


def _intersects(horizontal: LineSegment, vertical: LineSegment, tolerance: float) -> bool:
    h_left, h_right = sorted((horizontal.x1, horizontal.x2))
    v_bottom, v_top = sorted((vertical.y1, vertical.y2))
    h_y = (horizontal.y1 + horizontal.y2) / 2
    v_x = (vertical.x1 + vertical.x2) / 2
    return (
        h_left - tolerance <= v_x <= h_right + tolerance
        and v_bottom - tolerance <= h_y <= v_top + tolerance
    )


def _build_grid(group: Sequence[LineSegment], options: LayoutOptions) -> DetectedTable | None:
    ys = [(segment.y1 + segment.y2) / 2 for segment in group if segment.is_horizontal]
    xs = [(segment.x1 + segment.x2) / 2 for segment in group if segment.is_vertical]
    row_edges = _merge_close(
        _cluster_positions(ys, tolerance=options.grid_snap_tolerance, reverse=True), options.min_cell_size
    )
    column_edges = _merge_close(
        _cluster_positions(xs, tolerance=options.grid_snap_tolerance, reverse=False), options.min_cell_size
    )
    if len(row_edges) < 2 or len(column_edges) < 2:
        return None
    if len(row_edges) - 1 < options.min_table_rows or len(column_edges) - 1 < options.min_table_columns:
        return None
    cells = [[[] for _ in range(len(column_edges) - 1)] for _ in range(len(row_edges) - 1)]
    return DetectedTable(row_edges, column_edges, cells, list(group))


def _cluster_positions(values: Sequence[float], *, tolerance: float, reverse: bool) -> list[float]:
    if not values:
        return []
    sorted_values = sorted(values, reverse=reverse)
    clusters: list[list[float]] = [[sorted_values[0]]]
    for value in sorted_values[1:]:
        if abs(clusters[-1][-1] - value) <= tolerance:
            clusters[-1].append(value)
        else:
            clusters.append([value])
    return [sum(cluster) / len(cluster) for cluster in clusters]


def _merge_close(edges: list[float], minimum: float) -> list[float]:
    merged: list[float] = []
    for edge in edges:
        if merged and abs(edge - merged[-1]) < minimum:
            merged[-1] = (merged[-1] + edge) / 2
        else:
            merged.append(edge)
    return merged


def _index_for_coordinate(value: float, edges: Sequence[float], *, descending: bool, tolerance: float) -> int | None:
    for index in range(len(edges) - 1):
        low, high = (edges[index + 1], edges[index]) if descending else (edges[index], edges[index + 1])
        if low - tolerance <= value <= high + tolerance:
            return index
    return None


def _assign_runs(
    table: DetectedTable, runs: list[PositionedTextRun], tolerance: float
) -> list[PositionedTextRun]:
    remaining: list[PositionedTextRun] = []
    bbox = table.bbox
    for run in runs:
        if not bbox.contains(run.x, run.y, tolerance):
            remaining.append(run)
            continue
        row = _index_for_coordinate(run.y, table.row_edges, descending=True, tolerance=tolerance)
        column = _index_for_coordinate(run.x, table.column_edges, descending=False, tolerance=tolerance)
        if row is None or column is None:
            remaining.append(run)
            continue
        table.cells[row][column].append(run)
    return remaining
