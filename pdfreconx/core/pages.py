"""Page tree traversal with attribute inheritance."""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Any, Iterator

from ..constants import DEFAULT_MEDIA_BOX
from .store import ObjectStore
from .syntax import ObjectId

__all__ = ["PageHandle", "page_at", "page_contents", "resolve_pages"]

LOGGER = logging.getLogger("pdfreconx.pages")

_INHERITABLE = ("/MediaBox", "/CropBox", "/Resources", "/Rotate")
_MAX_TREE_DEPTH = 64

Box = tuple[float, float, float, float]


@dataclass(slots=True)
class PageHandle:
    """Leaf page of the page tree with its inherited attributes resolved."""

    index: int
    object_id: ObjectId | None
    media_box: Box = DEFAULT_MEDIA_BOX
    crop_box: Box = DEFAULT_MEDIA_BOX
    resources: dict[str, Any] = field(default_factory=dict)
    rotation: int = 0
    contents: list[ObjectId] = field(default_factory=list)

    @property
    def width(self) -> float:
        return self.crop_box[2] - self.crop_box[0]

    @property
    def height(self) -> float:
        return self.crop_box[3] - self.crop_box[1]


def resolve_pages(store: ObjectStore, warnings: list[str] | None = None) -> list[PageHandle]:
    """Return every leaf page reachable from the document root, in order."""

    return [page for _, page in _iter_pages(store, warnings)]


def page_at(store: ObjectStore, index: int, warnings: list[str] | None = None) -> PageHandle | None:
    """Return the page at *index*, skipping whole subtrees using ``/Count``."""

    if index < 0:
        return None
    for position, page in _iter_pages(store, warnings, target=index):
        if position == index:
            return page
        if position > index:
            break
    return None


def page_contents(store: ObjectStore, page: PageHandle, warnings: list[str] | None = None) -> bytes:
    """Concatenate the decoded content streams of *page*."""

    chunks: list[bytes] = []
    for ref in page.contents:
        data = store.get_stream_content(ref, warnings)
        if data is None:
            _note(warnings, store, f"Page {page.index + 1}: content stream {ref} is unavailable")
            continue
        chunks.append(data)
    return b"\n".join(chunks)


def _iter_pages(
    store: ObjectStore,
    warnings: list[str] | None,
    target: int | None = None,
) -> Iterator[tuple[int, PageHandle]]:
    root = store.resolve(store.root_ref, warnings) if store.root_ref else None
    if not isinstance(root, dict):
        _note(warnings, store, "Document catalog is missing")
        return
    pages_ref = root.get("/Pages")
    if pages_ref is None:
        _note(warnings, store, "Document catalog has no /Pages entry")
        return

    emitted = 0
    visited: set[int] = set()
    stack: list[tuple[Any, dict[str, Any], int]] = [(pages_ref, {}, 0)]
    while stack:
        node_ref, inherited, depth = stack.pop()
        if isinstance(node_ref, ObjectId):
            if node_ref.number in visited:
                _note(warnings, store, f"Page tree cycle detected at object {node_ref}")
                continue
            visited.add(node_ref.number)
        node = store.resolve(node_ref, warnings)
        if not isinstance(node, dict):
            _note(warnings, store, f"Page tree references missing object {node_ref}")
            continue

        attributes = dict(inherited)
        for key in _INHERITABLE:
            if key in node:
                attributes[key] = node[key]

        kids = store.resolve(node.get("/Kids"), warnings)
        if isinstance(kids, list):
            if depth >= _MAX_TREE_DEPTH:
                _note(warnings, store, f"Page tree deeper than {_MAX_TREE_DEPTH} levels; subtree skipped")
                continue
            count = store.resolve(node.get("/Count"), warnings)
            if target is not None and isinstance(count, int) and count >= 0 and emitted + count <= target:
                emitted += count
                continue
            for kid in reversed(kids):
                stack.append((kid, attributes, depth + 1))
            continue

        object_id = node_ref if isinstance(node_ref, ObjectId) else None
        yield emitted, _build_page(store, emitted, object_id, node, attributes, warnings)
        emitted += 1


def _build_page(
    store: ObjectStore,
    index: int,
    object_id: ObjectId | None,
    node: dict[str, Any],
    attributes: dict[str, Any],
    warnings: list[str] | None,
) -> PageHandle:
    media_box = _as_box(store, attributes.get("/MediaBox")) or DEFAULT_MEDIA_BOX
    crop_box = _as_box(store, attributes.get("/CropBox"))
    if crop_box is not None:
        crop_box = (
            max(crop_box[0], media_box[0]),
            max(crop_box[1], media_box[1]),
            min(crop_box[2], media_box[2]),
            min(crop_box[3], media_box[3]),
        )
        if crop_box[2] <= crop_box[0] or crop_box[3] <= crop_box[1]:
            crop_box = None

    resources = store.resolve(attributes.get("/Resources"), warnings)
    rotation = store.resolve(attributes.get("/Rotate"), warnings)
    rotation = int(rotation) % 360 if _is_number(rotation) else 0

    contents: list[ObjectId] = []
    raw_contents = node.get("/Contents")
    if isinstance(raw_contents, ObjectId):
        record = store.get_object(raw_contents, warnings)
        if record is not None and record.is_stream:
            contents.append(raw_contents)
        elif record is not None and isinstance(record.value, list):
            raw_contents = record.value
    if isinstance(raw_contents, list):
        contents.extend(item for item in raw_contents if isinstance(item, ObjectId))

    return PageHandle(
        index=index,
        object_id=object_id,
        media_box=media_box,
        crop_box=crop_box or media_box,
        resources=resources if isinstance(resources, dict) else {},
        rotation=rotation - rotation % 90,
        contents=contents,
    )


def _as_box(store: ObjectStore, value: Any) -> Box | None:
    values = store.resolve(value)
    if not isinstance(values, list) or len(values) < 4:
        return None
    numbers = [store.resolve(item) for item in values[:4]]
    if not all(_is_number(item) for item in numbers):
        return None
    left, bottom, right, top = (float(item) for item in numbers)
    if left == right or bottom == top:
        return None
    return (min(left, right), min(bottom, top), max(left, right), max(bottom, top))


def _note(warnings: list[str] | None, store: ObjectStore, message: str) -> None:
    LOGGER.warning(message)
    (store.warnings if warnings is None else warnings).append(message)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        return abs(value) <= sys.float_info.max
    return math.isfinite(value)
