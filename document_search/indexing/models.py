from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Sequence


class JobStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class JobKind(str, Enum):
    INGEST = "ingest"
    LOAD_PAGES = "load_pages"


class JobState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PageEntry:
    page_number: int
    raw_text: str
    word_count: int
    text_length: int
    terms: FrozenSet[str] = field(default_factory=frozenset)


@dataclass
class SearchResult:
    page_number: int
    score: int
    matched_terms: List[str]
    content_preview: str
    word_count: int
    text_length: int


@dataclass(frozen=True)
class ProgressUpdate:
    page_number: int
    total_pages: int
    processed_count: int
    total_to_process: int
    percentage: int


@dataclass
class IndexStats:
    total_pages: int = 0
    total_words: int = 0
    total_text_length: int = 0
    indexed_terms: int = 0


@dataclass
class IngestResult:
    processed_pages: int
    total_pages: int
    indexed_pages: int = 0
    failed_pages: List[int] = field(default_factory=list)
    stats: IndexStats = field(default_factory=IndexStats)


@dataclass
class LoadedPage:
    page_number: int
    content: str
    word_count: int


@dataclass
class Job:
    status: JobStatus = JobStatus.IDLE
    kind: Optional[JobKind] = None
    job_id: Optional[str] = None
    started_at: Optional[datetime] = None
    progress: Optional[ProgressUpdate] = None


@dataclass
class JobRecord:
    id: str
    kind: JobKind
    state: JobState
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    current_page: int = 0
    processed_pages: Optional[int] = None
    total_pages: Optional[int] = None
    error_message: Optional[str] = None


# Commands accepted by JobController.submit


@dataclass
class IngestCommand:
    source: Any
    start_page: int = 1
    end_page: Optional[int] = None
    batch_size: Optional[int] = None


@dataclass
class LoadPagesCommand:
    source: Any
    page_numbers: Sequence[int] = field(default_factory=list)


@dataclass
class SearchCommand:
    query: str


@dataclass
class StatsCommand:
    pass
