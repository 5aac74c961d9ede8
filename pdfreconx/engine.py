"""Document reconstruction pipeline.

:class:`DocumentReconstructor` parses a PDF buffer into an
:class:`~pdfreconx.core.store.ObjectStore`, walks the page tree, replays each
page's content stream and rebuilds the page layout. Pages are processed on a
thread pool and merged back in page order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from time import perf_counter
from typing import Sequence

from .constants import DEFAULT_PDF_VERSION
from .content.replay import ReplayContext, replay
from .content.tokens import tokenize
from .core.navigation import resolve_outline, resolve_page_labels
from .core.pages import PageHandle, page_contents, resolve_pages
from .core.store import ObjectStore
from .exceptions import ParseError
from .fonts.resolver import FontResolver
from .images import materialize
from .layout.reconstructor import reconstruct
from .model import (
    DocumentMetadata,
    DocumentStats,
    ExtractedImage,
    StructuredDocument,
    StructuredElement,
    StructuredImage,
)
from .options import ReconstructionOptions

__all__ = ["DocumentReconstructor", "reconstruct_document"]

LOGGER = logging.getLogger("pdfreconx.engine")


@dataclass(slots=True)
class _PageResult:
    elements: list[StructuredElement] = field(default_factory=list)
    images: list[ExtractedImage] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class DocumentReconstructor:
    """Rebuild a :class:`StructuredDocument` from PDF bytes."""

    def __init__(self, options: ReconstructionOptions | None = None) -> None:
        self.options = options or ReconstructionOptions()

    def reconstruct(self, data: bytes) -> StructuredDocument:
        """Reconstruct *data*.

        Only an empty buffer raises :class:`ParseError`; every other structural
        problem is reported through ``StructuredDocument.warnings``.
        """

        if not data:
            raise ParseError("Empty PDF buffer")
        LOGGER.info("Starting reconstruction of %d byte PDF", len(data))
        stats = DocumentStats()
        total_start = perf_counter()

        parse_start = perf_counter()
        try:
            store = ObjectStore.parse(data)
        except Exception as exc:
            LOGGER.warning("Parse error: %s", exc)
            stats.parse_ms = stats.total_ms = (perf_counter() - parse_start) * 1000.0
            return StructuredDocument(warnings=[f"Parse error: {exc}"], stats=stats)
        page_tree_warnings: list[str] = []
        pages = resolve_pages(store, page_tree_warnings)
        stats.parse_ms = (perf_counter() - parse_start) * 1000.0
        LOGGER.info("Parsed PDF %s with %d page(s) in %.1f ms", store.version, len(pages), stats.parse_ms)

        document = StructuredDocument(
            page_count=len(pages),
            version=store.version or DEFAULT_PDF_VERSION,
            metadata=DocumentMetadata.from_info(store.metadata()),
            outlines=resolve_outline(store, pages, page_tree_warnings),
            page_labels=resolve_page_labels(store, len(pages), page_tree_warnings),
            stats=stats,
        )
        if pages:
            document.page_width = pages[0].width
            document.page_height = pages[0].height

        selection_warnings: list[str] = []
        selected = self._select_pages(pages, self.options.page_numbers, selection_warnings)

        pages_start = perf_counter()
        fonts = FontResolver(store)
        results = self._process_pages(store, fonts, selected)
        stats.pages_ms = (perf_counter() - pages_start) * 1000.0

        warnings = list(store.warnings) + page_tree_warnings + selection_warnings
        for result in results:
            offset = len(document.images)
            for element in result.elements:
                if isinstance(element, StructuredImage):
                    element.image_index += offset
                document.elements.append(element)
            document.images.extend(result.images)
            warnings.extend(result.warnings)
        document.warnings = list(dict.fromkeys(warnings))

        stats.total_ms = (perf_counter() - total_start) * 1000.0
        LOGGER.info(
            "Finished reconstruction (pages=%d, paragraphs=%d, tables=%d, images=%d, warnings=%d) in %.1f ms",
            len(selected),
            document.paragraph_count,
            document.table_count,
            document.image_count,
            len(document.warnings),
            stats.total_ms,
        )
        return document

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _select_pages(
        pages: list[PageHandle], requested: Sequence[int] | None, warnings: list[str]
    ) -> list[PageHandle]:
        if requested is None:
            return pages
        selected: list[PageHandle] = []
        for index in requested:
            if 0 <= index < len(pages):
                selected.append(pages[index])
            else:
                message = f"Page index {index} out of bounds for document with {len(pages)} pages"
                LOGGER.warning(message)
                warnings.append(message)
        return selected

    def _process_pages(
        self, store: ObjectStore, fonts: FontResolver, pages: list[PageHandle]
    ) -> list[_PageResult]:
        if not pages:
            return []
        workers = self.options.max_workers
        if workers == 1 or len(pages) == 1:
            return [self._process_page(store, fonts, page) for page in pages]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(lambda page: self._process_page(store, fonts, page), pages))

    def _process_page(self, store: ObjectStore, fonts: FontResolver, page: PageHandle) -> _PageResult:
        result = _PageResult()
        page_start = perf_counter()
        try:
            content = page_contents(store, page, result.warnings)
            context = ReplayContext(
                store=store,
                resources=page.resources,
                fonts=fonts,
                warnings=result.warnings,
                max_form_depth=self.options.max_form_depth,
                extract_images=self.options.extract_images,
                page_index=page.index,
            )
            primitives = replay(tokenize(content), context)
            placements = []
            for placement in primitives.images:
                image = materialize(placement, result.warnings)
                if image is None:
                    continue
                placements.append((placement, len(result.images)))
                result.images.append(ExtractedImage(image.data, image.width, image.height, image.extension))
            result.elements = reconstruct(
                primitives.texts, primitives.lines, placements, self.options.layout, page.index
            )
        except Exception as exc:
            message = f"Page {page.index + 1}: reconstruction failed: {exc}"
            LOGGER.warning(message)
            LOGGER.debug("Page %d failure", page.index + 1, exc_info=True)
            result.warnings.append(message)
            result.elements = []
            result.images = []
        LOGGER.debug(
            "Page %d rebuilt into %d element(s) in %.1f ms",
            page.index + 1,
            len(result.elements),
            (perf_counter() - page_start) * 1000.0,
        )
        return result


def reconstruct_document(data: bytes, options: ReconstructionOptions | None = None) -> StructuredDocument:
    """Reconstruct the PDF in *data* into a :class:`StructuredDocument`."""

    return DocumentReconstructor(options).reconstruct(data)
