from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from .config import IndexingConfig
from .engine import DocumentHandle, DocumentLoader, PageTextExtractor
from .errors import LoadError
from .inverted_index import InvertedIndex
from .models import IngestResult, LoadedPage, ProgressUpdate

logger = logging.getLogger(__name__)

# May return an awaitable; it is awaited before the next page is extracted.
ProgressCallback = Callable[[ProgressUpdate], Union[None, Awaitable[None]]]


def round_percentage(done: int, total: int) -> int:
    """Percentage rounded half up."""
    if total <= 0:
        return 0
    return (done * 200 + total) // (2 * total)


class BatchScheduler:
    """
    Drives the loader and extractor over a page range in small batches,
    sleeping between batches so a single job never holds the event loop for
    long. The scheduler owns the document handle for the duration of one call
    and keeps no state between calls.
    """

    def __init__(
        self,
        loader: DocumentLoader,
        extractor: PageTextExtractor,
        config: Optional[IndexingConfig] = None,
    ):
        self.loader = loader
        self.extractor = extractor
        self.config = config or IndexingConfig()

    async def ingest(
        self,
        source: Any,
        start_page: int = 1,
        end_page: Optional[int] = None,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Tuple[IngestResult, InvertedIndex]:
        if batch_size is None:
            batch_size = self.config.batch_size
        validate_range(start_page, end_page, batch_size)

        handle = await self._load_document(source, self.config.ingest_load_timeout)
        total_pages = handle.total_pages
        effective_end = min(end_page or total_pages, total_pages)
        pages_to_process = min(batch_size, effective_end - start_page + 1)

        index = InvertedIndex(min_term_length=self.config.min_term_length)
        if pages_to_process <= 0:
            logger.info("Nothing to index: start_page=%s effective_end=%s", start_page, effective_end)
            return IngestResult(processed_pages=0, total_pages=total_pages, stats=index.stats()), index

        failed_pages: List[int] = []
        step = self._pages_per_batch(batch_size)
        for batch_start in range(0, pages_to_process, step):
            batch_end = min(batch_start + step, pages_to_process)
            for position in range(batch_start, batch_end):
                page_number = start_page + position
                text = await self._extract(handle, page_number)
                if text is None:
                    failed_pages.append(page_number)
                    continue
                index.append(page_number, text)
                if on_progress:
                    outcome = on_progress(
                        ProgressUpdate(
                            page_number=page_number,
                            total_pages=total_pages,
                            processed_count=position + 1,
                            total_to_process=pages_to_process,
                            percentage=round_percentage(position + 1, pages_to_process),
                        )
                    )
                    if inspect.isawaitable(outcome):
                        await outcome
            await asyncio.sleep(self.config.yield_interval)

        result = IngestResult(
            processed_pages=pages_to_process,
            total_pages=total_pages,
            indexed_pages=len(index),
            failed_pages=failed_pages,
            stats=index.stats(),
        )
        return result, index

    async def load_pages(self, source: Any, page_numbers: Sequence[int]) -> List[LoadedPage]:
        handle = await self._load_document(source, self.config.page_load_timeout)
        page_numbers = list(page_numbers)
        loaded: List[LoadedPage] = []

        step = self.config.max_pages_per_batch
        for batch_start in range(0, len(page_numbers), step):
            for page_number in page_numbers[batch_start : batch_start + step]:
                if page_number < 1 or page_number > handle.total_pages:
                    continue
                text = await self._extract(handle, page_number)
                if text is None:
                    continue
                loaded.append(LoadedPage(page_number=page_number, content=text, word_count=len(text.split())))
            if batch_start + step < len(page_numbers):
                await asyncio.sleep(self.config.yield_interval)
        return loaded

    def _pages_per_batch(self, batch_size: int) -> int:
        return max(1, min(self.config.max_pages_per_batch, batch_size))

    async def _load_document(self, source: Any, timeout: float) -> DocumentHandle:
        try:
            return await asyncio.wait_for(self.loader.load(source), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise LoadError(f"Document load timed out after {timeout:g} seconds") from exc
        except LoadError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise LoadError(f"PDF processing failed: {exc}") from exc

    async def _extract(self, handle: DocumentHandle, page_number: int) -> Optional[str]:
        try:
            return await self.extractor.extract(handle, page_number)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error processing page %s: %s", page_number, exc)
            return None


def validate_range(start_page: int, end_page: Optional[int], batch_size: int) -> None:
    if start_page < 1:
        raise ValueError(f"start_page must be >= 1, got {start_page}")
    if end_page is not None and end_page < 1:
        raise ValueError(f"end_page must be >= 1, got {end_page}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
