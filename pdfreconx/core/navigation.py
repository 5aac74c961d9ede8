"""Document outline (bookmarks) and page labels."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from ..model import OutlineItem
from .pages import PageHandle
from .store import ObjectStore
from .syntax import ObjectId, decode_text

__all__ = ["format_page_label", "resolve_outline", "resolve_page_labels"]

LOGGER = logging.getLogger("pdfreconx.navigation")

_MAX_DEPTH = 64
_MAX_STYLED_LABEL = 10_000
_ROMAN = (
    (1000, "M"),
    (900, "CM"),
    (500, "D"),
    (400, "CD"),
    (100, "C"),
    (90, "XC"),
    (50, "L"),
    (40, "XL"),
    (10, "X"),
    (9, "IX"),
    (5, "V"),
    (4, "IV"),
    (1, "I"),
)
# Index of the "top" coordinate in an explicit destination array, by fit type.
_TOP_POSITION = {"/XYZ": 3, "/FitH": 2, "/FitBH": 2, "/FitR": 5}


def resolve_outline(
    store: ObjectStore, pages: Sequence[PageHandle], warnings: list[str] | None = None
) -> list[OutlineItem]:
    """Return the bookmark tree of the document, following ``/First`` and ``/Next``."""

    catalog = _catalog(store, warnings)
    outlines = store.resolve(catalog.get("/Outlines"), warnings)
    if not isinstance(outlines, dict):
        return []
    page_numbers = {page.object_id.number: page.index for page in pages if page.object_id is not None}
    walker = _OutlineWalker(store, catalog, page_numbers, warnings)
    items = walker.level(outlines.get("/First"), 0)
    LOGGER.debug("Outline holds %d top-level item(s)", len(items))
    return items


def resolve_page_labels(store: ObjectStore, page_count: int, warnings: list[str] | None = None) -> list[str]:
    """Return one display label per page, from the catalog's ``/PageLabels`` number tree.

    Pages without a labelling range, and documents without page labels, use
    their 1-based page number.
    """

    catalog = _catalog(store, warnings)
    ranges: dict[int, dict[str, Any]] = {}
    _collect_numbers(store, catalog.get("/PageLabels"), ranges, set(), 0, warnings)

    labels: list[str] = []
    current: dict[str, Any] | None = None
    range_start = 0
    for index in range(page_count):
        if index in ranges:
            current = ranges[index]
            range_start = index
        if current is None:
            labels.append(str(index + 1))
            continue
        style = store.resolve(current.get("/S"), warnings)
        prefix = store.resolve(current.get("/P"), warnings)
        start = store.resolve(current.get("/St"), warnings)
        labels.append(
            format_page_label(
                style if isinstance(style, str) else None,
                decode_text(prefix) if isinstance(prefix, bytes) else "",
                start if isinstance(start, int) and not isinstance(start, bool) and start >= 1 else 1,
                index - range_start,
            )
        )
    return labels


def format_page_label(style: str | None, prefix: str, start: int, offset: int) -> str:
    """Format the label of the page *offset* pages into a labelling range.

    *style* is ``/D`` (decimal), ``/R``/``/r`` (roman) or ``/A``/``/a``
    (letters: A to Z, then AA to ZZ and so on). Without a style only the
    prefix is used.
    """

    value = start + offset
    if style is None:
        return prefix
    if style in ("/R", "/r", "/A", "/a") and value <= _MAX_STYLED_LABEL:
        if style in ("/R", "/r"):
            text = _roman(value)
        else:
            text = chr(ord("A") + (value - 1) % 26) * ((value - 1) // 26 + 1)
        return prefix + (text.lower() if style.islower() else text)
    return f"{prefix}{value}"


class _OutlineWalker:
    def __init__(
        self,
        store: ObjectStore,
        catalog: dict[str, Any],
        page_numbers: dict[int, int],
        warnings: list[str] | None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.page_numbers = page_numbers
        self.warnings = warnings
        self.visited: set[int] = set()

    def level(self, first: Any, depth: int) -> list[OutlineItem]:
        items: list[OutlineItem] = []
        if depth >= _MAX_DEPTH:
            _note(self.warnings, self.store, f"Outline deeper than {_MAX_DEPTH} levels; entries skipped")
            return items
        ref = first
        while ref is not None:
            if isinstance(ref, ObjectId):
                if ref.number in self.visited:
                    _note(self.warnings, self.store, f"Outline cycle detected at object {ref}")
                    break
                self.visited.add(ref.number)
            node = self.store.resolve(ref, self.warnings)
            if not isinstance(node, dict):
                break
            item = self.item(node, depth)
            if item is not None:
                items.append(item)
            ref = node.get("/Next")
        return items

    def item(self, node: dict[str, Any], depth: int) -> OutlineItem | None:
        title = self.store.resolve(node.get("/Title"), self.warnings)
        if not isinstance(title, (bytes, str)):
            return None
        destination = node.get("/Dest")
        if destination is None:
            action = self.store.resolve(node.get("/A"), self.warnings)
            if isinstance(action, dict):
                destination = action.get("/D")
        page_index, top, name = self.destination(destination)

        count = self.store.resolve(node.get("/Count"), self.warnings)
        flags = self.store.resolve(node.get("/F"), self.warnings)
        flags = flags if isinstance(flags, int) and not isinstance(flags, bool) else 0
        return OutlineItem(
            title=decode_text(title).strip() or "Untitled",
            page_index=page_index,
            top=top,
            destination=name,
            is_open=not (isinstance(count, (int, float)) and count < 0),
            bold=bool(flags & 2),
            italic=bool(flags & 1),
            children=self.level(node.get("/First"), depth + 1),
        )

    def destination(self, value: Any) -> tuple[int | None, float | None, str | None]:
        name: str | None = None
        resolved = self.store.resolve(value, self.warnings)
        if isinstance(resolved, (str, bytes)):
            name = decode_text(resolved)
            resolved = self.named(resolved)
        if isinstance(resolved, dict):
            resolved = self.store.resolve(resolved.get("/D"), self.warnings)
        if not isinstance(resolved, list) or not resolved:
            return None, None, name

        target = resolved[0]
        page_index: int | None = None
        if isinstance(target, ObjectId):
            page_index = self.page_numbers.get(target.number)
        elif isinstance(target, int) and not isinstance(target, bool) and target >= 0:
            page_index = target

        top: float | None = None
        fit = resolved[1] if len(resolved) > 1 else None
        position = _TOP_POSITION.get(fit) if isinstance(fit, str) else None
        if position is not None and position < len(resolved):
            candidate = self.store.resolve(resolved[position], self.warnings)
            if isinstance(candidate, (int, float)) and not isinstance(candidate, bool):
                top = float(candidate)
        return page_index, top, name

    def named(self, key: str | bytes) -> Any:
        if isinstance(key, str):
            dests = self.store.resolve(self.catalog.get("/Dests"), self.warnings)
            if isinstance(dests, dict) and key in dests:
                return self.store.resolve(dests[key], self.warnings)
            key = key[1:].encode("latin-1", "replace")
        names = self.store.resolve(self.catalog.get("/Names"), self.warnings)
        if not isinstance(names, dict):
            return None
        return _lookup_name(self.store, names.get("/Dests"), key, set(), 0, self.warnings)


def _lookup_name(
    store: ObjectStore, node_ref: Any, key: bytes, visited: set[int], depth: int, warnings: list[str] | None
) -> Any:
    if isinstance(node_ref, ObjectId):
        if node_ref.number in visited:
            _note(warnings, store, f"Name tree cycle detected at object {node_ref}")
            return None
        visited.add(node_ref.number)
    node = store.resolve(node_ref, warnings)
    if not isinstance(node, dict) or depth >= _MAX_DEPTH:
        return None
    names = store.resolve(node.get("/Names"), warnings)
    if isinstance(names, list):
        for position in range(0, len(names) - 1, 2):
            if store.resolve(names[position], warnings) == key:
                return store.resolve(names[position + 1], warnings)
    kids = store.resolve(node.get("/Kids"), warnings)
    if isinstance(kids, list):
        for kid in kids:
            found = _lookup_name(store, kid, key, visited, depth + 1, warnings)
            if found is not None:
                return found
    return None


def _collect_numbers(
    store: ObjectStore,
    node_ref: Any,
    result: dict[int, dict[str, Any]],
    visited: set[int],
    depth: int,
    warnings: list[str] | None,
) -> None:
    if isinstance(node_ref, ObjectId):
        if node_ref.number in visited:
            _note(warnings, store, f"Page label tree cycle detected at object {node_ref}")
            return
        visited.add(node_ref.number)
    node = store.resolve(node_ref, warnings)
    if not isinstance(node, dict) or depth >= _MAX_DEPTH:
        return
    kids = store.resolve(node.get("/Kids"), warnings)
    if isinstance(kids, list):
        for kid in kids:
            _collect_numbers(store, kid, result, visited, depth + 1, warnings)
    numbers = store.resolve(node.get("/Nums"), warnings)
    if isinstance(numbers, list):
        for position in range(0, len(numbers) - 1, 2):
            key = numbers[position]
            value = store.resolve(numbers[position + 1], warnings)
            if isinstance(key, int) and not isinstance(key, bool) and key >= 0 and isinstance(value, dict):
                result[key] = value


def _roman(value: int) -> str:
    parts: list[str] = []
    for amount, numeral in _ROMAN:
        count, value = divmod(value, amount)
        parts.append(numeral * count)
    return "".join(parts)


def _catalog(store: ObjectStore, warnings: list[str] | None) -> dict[str, Any]:
    catalog = store.resolve(store.root_ref, warnings) if store.root_ref else None
    return catalog if isinstance(catalog, dict) else {}


def _note(warnings: list[str] | None, store: ObjectStore, message: str) -> None:
    LOGGER.warning(message)
    (store.warnings if warnings is None else warnings).append(message)
