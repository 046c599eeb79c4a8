from __future__ import annotations


class IndexingError(Exception):
    """Base class for errors raised by the indexing subsystem."""


class ConcurrentJobError(IndexingError):
    """An ingest or page-load job is already running."""

    def __init__(self, message: str = "Another operation is in progress"):
        super().__init__(message)


class LoadError(IndexingError):
    """The document could not be loaded (parse failure or timeout). Fatal for the job."""


class ExtractError(IndexingError):
    """Text extraction failed for a single page. The page is skipped."""

    def __init__(self, page_number: int, message: str = ""):
        self.page_number = page_number
        super().__init__(message or f"Failed to extract text from page {page_number}")


class NoIndexError(IndexingError):
    """Search or stats requested before any document was indexed."""

    def __init__(self, message: str = "No document indexed for search"):
        super().__init__(message)
