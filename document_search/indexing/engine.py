from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from .errors import ExtractError, LoadError

logger = logging.getLogger(__name__)


@dataclass
class DocumentHandle:
    """
    Page-addressable document returned by a DocumentLoader. `document` is
    whatever the loader needs to extract pages later (a PdfReader, a list of
    strings, ...). Only valid for the job that loaded it.
    """

    total_pages: int
    document: Any = None


class DocumentLoader:
    """
    Abstract loader. Parses a raw source (bytes or a path) into a
    DocumentHandle. Implementations raise LoadError on failure.
    """

    async def load(self, source: Any) -> DocumentHandle:
        raise NotImplementedError


class PageTextExtractor:
    """
    Abstract per-page extractor. Pages are 1-based. Implementations raise
    ExtractError when a single page cannot be read.
    """

    async def extract(self, handle: DocumentHandle, page_number: int) -> str:
        raise NotImplementedError


class PypdfDocumentLoader(DocumentLoader):
    """
    Loads PDFs with pypdf. Parsing is pushed to a worker thread so the event
    loop stays free while large files are opened.

    Requires the `pypdf` package.
    """

    async def load(self, source: Any) -> DocumentHandle:
        return await asyncio.to_thread(self._load_sync, source)

    def _load_sync(self, source: Any) -> DocumentHandle:
        from pypdf import PdfReader

        try:
            if isinstance(source, (bytes, bytearray)):
                reader = PdfReader(BytesIO(bytes(source)))
            elif isinstance(source, (str, Path)):
                reader = PdfReader(str(source))
            else:
                reader = PdfReader(source)
            total_pages = len(reader.pages)
        except Exception as exc:  # noqa: BLE001
            raise LoadError(f"PDF processing failed: {exc}") from exc
        logger.debug("Loaded PDF with %s pages", total_pages)
        return DocumentHandle(total_pages=total_pages, document=reader)


class PypdfPageTextExtractor(PageTextExtractor):
    async def extract(self, handle: DocumentHandle, page_number: int) -> str:
        return await asyncio.to_thread(self._extract_sync, handle, page_number)

    def _extract_sync(self, handle: DocumentHandle, page_number: int) -> str:
        try:
            page = handle.document.pages[page_number - 1]
            return page.extract_text() or ""
        except Exception as exc:  # noqa: BLE001
            raise ExtractError(page_number, f"Error processing page {page_number}: {exc}") from exc


class InMemoryDocumentLoader(DocumentLoader):
    """
    Treats the source as a sequence of page texts. Handy for local runs and
    tests where no real PDF is involved.
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay

    async def load(self, source: Any) -> DocumentHandle:
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(source, (str, bytes)) or not isinstance(source, Sequence):
            raise LoadError("In-memory documents must be a sequence of page texts")
        pages = [str(text) for text in source]
        return DocumentHandle(total_pages=len(pages), document=pages)


class InMemoryPageTextExtractor(PageTextExtractor):
    def __init__(self, failing_pages: Optional[Iterable[int]] = None):
        self.failing_pages = set(failing_pages or ())
        self.calls = []

    async def extract(self, handle: DocumentHandle, page_number: int) -> str:
        self.calls.append(page_number)
        if page_number in self.failing_pages:
            raise ExtractError(page_number)
        if page_number < 1 or page_number > handle.total_pages:
            raise ExtractError(page_number, f"Page {page_number} is out of range")
        return handle.document[page_number - 1]
