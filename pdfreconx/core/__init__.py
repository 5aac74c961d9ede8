"""Object store and page tree access for raw PDF buffers."""

from .pages import PageHandle, page_at, page_contents, resolve_pages
from .store import ObjectRecord, ObjectStore
from .syntax import ObjectId

__all__ = [
    "ObjectId",
    "ObjectRecord",
    "ObjectStore",
    "PageHandle",
    "page_at",
    "page_contents",
    "resolve_pages",
]
