from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .config import IndexingConfig
from .engine import DocumentLoader, PageTextExtractor
from .errors import ConcurrentJobError, IndexingError, NoIndexError
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
from .repository import InMemoryJobRepository, JobRepository
from .scheduler import BatchScheduler, ProgressCallback, validate_range
from .search import SearchEngine

logger = logging.getLogger(__name__)


@dataclass
class DocumentSession:
    """
    State owned by one JobController: the current document's index (None
    until the first successful ingest) and the single job slot.
    """

    index: Optional[InvertedIndex] = None
    job: Job = field(default_factory=Job)


class JobController:
    """
    Admits at most one ingest/page-load job at a time and routes read
    requests to the current document.

    Admission happens synchronously, before anything is awaited, so two
    callers on the same event loop cannot both get past the busy check. A
    finished ingest replaces the current index in a single assignment;
    searches running in the meantime keep using the previous index.
    """

    def __init__(
        self,
        loader: DocumentLoader,
        extractor: PageTextExtractor,
        config: Optional[IndexingConfig] = None,
        repository: Optional[JobRepository] = None,
    ):
        self.config = config or IndexingConfig()
        self.scheduler = BatchScheduler(loader, extractor, self.config)
        self.repository = repository or InMemoryJobRepository()
        self.session = DocumentSession()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_busy(self) -> bool:
        return self.session.job.status == JobStatus.RUNNING

    def current_job(self) -> Job:
        return replace(self.session.job)

    # region jobs
    def start_ingest(
        self,
        source: Any,
        start_page: int = 1,
        end_page: Optional[int] = None,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "asyncio.Task[IngestResult]":
        """
        Admit an ingest job and schedule it on the running loop. Raises
        ConcurrentJobError right away if another job holds the slot.
        """
        if batch_size is None:
            batch_size = self.config.batch_size
        validate_range(start_page, end_page, batch_size)
        loop = asyncio.get_running_loop()
        record = self._admit(JobKind.INGEST)
        return self._spawn(loop, self._run_ingest(record, source, start_page, end_page, batch_size, on_progress))

    async def ingest(
        self,
        source: Any,
        start_page: int = 1,
        end_page: Optional[int] = None,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IngestResult:
        return await self.start_ingest(source, start_page, end_page, batch_size, on_progress)

    def start_load_pages(self, source: Any, page_numbers: Sequence[int]) -> "asyncio.Task[List[LoadedPage]]":
        loop = asyncio.get_running_loop()
        record = self._admit(JobKind.LOAD_PAGES)
        return self._spawn(loop, self._run_load_pages(record, source, list(page_numbers)))

    async def load_pages(self, source: Any, page_numbers: Sequence[int]) -> List[LoadedPage]:
        return await self.start_load_pages(source, page_numbers)

    async def wait_idle(self) -> None:
        """Wait for the running job, if any. Its outcome is already recorded."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def close(self) -> None:
        await self.wait_idle()
        self._task = None
        self.session = DocumentSession()

    def _admit(self, kind: JobKind) -> JobRecord:
        # Nothing here may raise after the slot is taken: the task's finally
        # is what gives it back.
        if self.is_busy:
            running = self.session.job
            logger.warning("Rejected %s job: %s job %s is running", kind.value, running.kind.value, running.job_id)
            raise ConcurrentJobError()
        job_id = str(uuid.uuid4())
        started_at = datetime.utcnow()
        self.session.job = Job(status=JobStatus.RUNNING, kind=kind, job_id=job_id, started_at=started_at)
        logger.info("Started %s job %s", kind.value, job_id)
        return JobRecord(id=job_id, kind=kind, state=JobState.RUNNING, started_at=started_at)

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro) -> asyncio.Task:
        task = loop.create_task(coro)
        task.add_done_callback(_retrieve_outcome)
        self._task = task
        return task

    def _release(self) -> None:
        self.session.job = Job()

    async def _record(self, method, *args, **kwargs) -> None:
        # Repository calls may hit a database; keep them off the event loop.
        await asyncio.to_thread(method, *args, **kwargs)

    async def _fail(self, job_id: str, exc: BaseException) -> None:
        logger.error("Job %s failed: %s", job_id, exc)
        try:
            await self._record(
                self.repository.update_job,
                job_id,
                state=JobState.FAILED,
                error_message=str(exc),
                finished_at=datetime.utcnow(),
            )
        except Exception:  # noqa: BLE001
            logger.exception("Could not record failure of job %s", job_id)

    async def _run_ingest(
        self,
        record: JobRecord,
        source: Any,
        start_page: int,
        end_page: Optional[int],
        batch_size: int,
        on_progress: Optional[ProgressCallback],
    ) -> IngestResult:
        job_id = record.id

        async def report(update: ProgressUpdate) -> None:
            self.session.job.progress = update
            await self._record(
                self.repository.update_job,
                job_id,
                current_page=update.page_number,
                total_pages=update.total_pages,
            )
            if on_progress:
                await _maybe_await(on_progress(update))

        try:
            await self._record(self.repository.save_job, record)
            result, index = await self.scheduler.ingest(
                source,
                start_page=start_page,
                end_page=end_page,
                batch_size=batch_size,
                on_progress=report,
            )
            self.session.index = index
            await self._record(
                self.repository.update_job,
                job_id,
                state=JobState.COMPLETED,
                processed_pages=result.processed_pages,
                total_pages=result.total_pages,
                finished_at=datetime.utcnow(),
            )
            logger.info(
                "Ingest job %s finished: %s/%s pages indexed, %s skipped",
                job_id,
                result.indexed_pages,
                result.processed_pages,
                len(result.failed_pages),
            )
            return result
        except Exception as exc:
            await self._fail(job_id, exc)
            raise
        finally:
            self._release()

    async def _run_load_pages(self, record: JobRecord, source: Any, page_numbers: List[int]) -> List[LoadedPage]:
        job_id = record.id
        try:
            await self._record(self.repository.save_job, record)
            pages = await self.scheduler.load_pages(source, page_numbers)
            await self._record(
                self.repository.update_job,
                job_id,
                state=JobState.COMPLETED,
                processed_pages=len(pages),
                finished_at=datetime.utcnow(),
            )
            logger.info("Load-pages job %s finished: %s of %s pages loaded", job_id, len(pages), len(page_numbers))
            return pages
        except Exception as exc:
            await self._fail(job_id, exc)
            raise
        finally:
            self._release()

    # endregion

    # region reads
    def search(self, query: str) -> List[SearchResult]:
        index = self._require_index()
        return SearchEngine(index, preview_length=self.config.preview_length).search(query)

    def stats(self) -> IndexStats:
        return self._require_index().stats()

    def page_content(self, page_number: int) -> str:
        return self._require_index().get_page_content(page_number)

    def page_entry(self, page_number: int) -> Optional[PageEntry]:
        """None when the page is not in the current index; blank pages are entries too."""
        return self._require_index().get_page(page_number)

    def _require_index(self) -> InvertedIndex:
        index = self.session.index
        if index is None:
            raise NoIndexError()
        return index

    # endregion

    async def submit(self, command: Any) -> Dict[str, Any]:
        """
        Route a command object and return a response dict carrying a
        `success` flag. Failures are reported as {"success": False, "error": ...}.
        """
        try:
            if isinstance(command, IngestCommand):
                result = await self.ingest(
                    command.source,
                    start_page=command.start_page,
                    end_page=command.end_page,
                    batch_size=command.batch_size,
                )
                return {"success": True, **asdict(result)}
            if isinstance(command, LoadPagesCommand):
                pages = await self.load_pages(command.source, command.page_numbers)
                return {"success": True, "pages": [asdict(p) for p in pages]}
            if isinstance(command, SearchCommand):
                results = self.search(command.query)
                return {"success": True, "results": [asdict(r) for r in results], "query": command.query}
            if isinstance(command, StatsCommand):
                return {"success": True, "stats": asdict(self.stats())}
        except (IndexingError, ValueError) as exc:
            return {"success": False, "error": str(exc)}
        return {"success": False, "error": "Unknown message type"}


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


def _retrieve_outcome(task: asyncio.Task) -> None:
    # Failures are logged and recorded by the job itself; this only marks the
    # exception as retrieved for fire-and-forget callers.
    if not task.cancelled():
        task.exception()
