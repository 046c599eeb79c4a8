"""
Indexing subsystem exports.
"""

from .config import IndexingConfig
from .controller import DocumentSession, JobController
from .engine import (
    DocumentHandle,
    DocumentLoader,
    InMemoryDocumentLoader,
    InMemoryPageTextExtractor,
    PageTextExtractor,
    PypdfDocumentLoader,
    PypdfPageTextExtractor,
)
from .errors import ConcurrentJobError, ExtractError, IndexingError, LoadError, NoIndexError
from .inverted_index import InvertedIndex
from .models import (
    IndexStats,
    IngestCommand,
    IngestResult,
    Job,
    JobKind,
    JobRecord,
    JobState,
    JobStatus,
    LoadedPage,
    LoadPagesCommand,
    PageEntry,
    ProgressUpdate,
    SearchCommand,
    SearchResult,
    StatsCommand,
)
from .repository import InMemoryJobRepository, JobRepository, SqlAlchemyJobRepository
from .scheduler import BatchScheduler
from .search import SearchEngine
from .tokenizer import tokenize

__all__ = [
    "BatchScheduler",
    "ConcurrentJobError",
    "DocumentHandle",
    "DocumentLoader",
    "DocumentSession",
    "ExtractError",
    "InMemoryDocumentLoader",
    "InMemoryJobRepository",
    "InMemoryPageTextExtractor",
    "IndexStats",
    "IndexingConfig",
    "IndexingError",
    "IngestCommand",
    "IngestResult",
    "InvertedIndex",
    "Job",
    "JobController",
    "JobKind",
    "JobRecord",
    "JobRepository",
    "JobState",
    "JobStatus",
    "LoadError",
    "LoadPagesCommand",
    "LoadedPage",
    "NoIndexError",
    "PageEntry",
    "PageTextExtractor",
    "ProgressUpdate",
    "PypdfDocumentLoader",
    "PypdfPageTextExtractor",
    "SearchCommand",
    "SearchEngine",
    "SearchResult",
    "SqlAlchemyJobRepository",
    "StatsCommand",
    "tokenize",
]
