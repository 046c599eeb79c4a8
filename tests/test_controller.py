import asyncio
import gc
import threading

import pytest

from document_search.indexing import (
    ConcurrentJobError,
    DocumentLoader,
    IndexingConfig,
    IngestCommand,
    InMemoryDocumentLoader,
    InMemoryJobRepository,
    InMemoryPageTextExtractor,
    JobController,
    JobKind,
    JobState,
    JobStatus,
    LoadError,
    LoadPagesCommand,
    NoIndexError,
    SearchCommand,
    StatsCommand,
)

FAST = IndexingConfig(batch_size=3, max_pages_per_batch=2, yield_interval=0)

MOUNTAIN_DOC = ["the mountain temple", "a quiet valley", "mountain summit"]
RIVER_DOC = ["river delta", "river mouth and river bank"]


class GatedLoader(InMemoryDocumentLoader):
    """Blocks in load() until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def load(self, source):
        await self.gate.wait()
        return await super().load(source)


class BrokenLoader(DocumentLoader):
    async def load(self, source):
        raise LoadError("PDF processing failed: not a pdf")


class FlakyJobRepository(InMemoryJobRepository):
    """save_job fails the first time it is called, then behaves."""

    def __init__(self):
        super().__init__()
        self.save_failures = 1

    def save_job(self, job):
        if self.save_failures:
            self.save_failures -= 1
            raise RuntimeError("database is locked")
        super().save_job(job)


class BrokenHistoryRepository(InMemoryJobRepository):
    def update_job(self, job_id, **values):
        raise RuntimeError("disk full")


class ThreadRecordingRepository(InMemoryJobRepository):
    def __init__(self):
        super().__init__()
        self.threads = set()

    def save_job(self, job):
        self.threads.add(threading.get_ident())
        super().save_job(job)

    def update_job(self, job_id, **values):
        self.threads.add(threading.get_ident())
        super().update_job(job_id, **values)


def make_controller(loader=None, failing_pages=None, repository=None):
    return JobController(
        loader or InMemoryDocumentLoader(),
        InMemoryPageTextExtractor(failing_pages=failing_pages),
        config=FAST,
        repository=repository,
    )


def test_search_and_stats_before_ingest_raise_no_index():
    controller = make_controller()

    with pytest.raises(NoIndexError):
        controller.search("mountain")
    with pytest.raises(NoIndexError):
        controller.stats()
    with pytest.raises(NoIndexError):
        controller.page_content(1)


def test_ingest_installs_index_for_search_and_stats():
    controller = make_controller()

    result = asyncio.run(controller.ingest(MOUNTAIN_DOC))

    assert result.processed_pages == 3
    assert result.total_pages == 3
    assert controller.stats().total_pages == 3
    assert [r.page_number for r in controller.search("mountain")] == [1, 3]
    assert controller.page_content(2) == "a quiet valley"
    assert controller.current_job().status == JobStatus.IDLE


def test_second_job_is_rejected_while_one_is_running():
    async def scenario():
        loader = GatedLoader()
        controller = make_controller(loader=loader)
        first = controller.start_ingest(MOUNTAIN_DOC)
        await asyncio.sleep(0)

        assert controller.is_busy
        assert controller.current_job().kind == JobKind.INGEST
        with pytest.raises(ConcurrentJobError):
            controller.start_ingest(RIVER_DOC)
        with pytest.raises(ConcurrentJobError):
            controller.start_load_pages(RIVER_DOC, [1])

        loader.gate.set()
        result = await first
        return controller, result

    controller, result = asyncio.run(scenario())

    assert result.processed_pages == 3
    assert not controller.is_busy
    assert [r.page_number for r in controller.search("mountain")] == [1, 3]
    assert controller.search("river") == []


def test_reads_use_previous_index_until_new_one_is_complete():
    async def scenario():
        loader = GatedLoader()
        controller = make_controller(loader=loader)
        loader.gate.set()
        await controller.ingest(MOUNTAIN_DOC)

        loader.gate.clear()
        running = controller.start_ingest(RIVER_DOC)
        await asyncio.sleep(0)
        during = (controller.search("river"), controller.stats().total_pages)

        loader.gate.set()
        await running
        after = (controller.search("river"), controller.stats().total_pages)
        return during, after

    during, after = asyncio.run(scenario())

    assert during == ([], 3)
    assert [r.page_number for r in after[0]] == [1, 2]
    assert after[1] == 2


def test_load_error_resets_job_and_keeps_previous_index():
    repo = InMemoryJobRepository()

    async def scenario():
        controller = make_controller(repository=repo)
        await controller.ingest(MOUNTAIN_DOC)
        controller.scheduler.loader = BrokenLoader()
        with pytest.raises(LoadError):
            await controller.ingest(RIVER_DOC)
        return controller

    controller = asyncio.run(scenario())

    assert not controller.is_busy
    assert controller.stats().total_pages == 3
    states = sorted(job.state for job in repo.list_jobs())
    assert states == sorted([JobState.COMPLETED, JobState.FAILED])
    failed = [job for job in repo.list_jobs() if job.state == JobState.FAILED][0]
    assert "not a pdf" in failed.error_message
    assert failed.finished_at is not None


def test_load_error_before_any_ingest_leaves_no_index():
    controller = make_controller(loader=BrokenLoader())

    with pytest.raises(LoadError):
        asyncio.run(controller.ingest(MOUNTAIN_DOC))

    assert not controller.is_busy
    with pytest.raises(NoIndexError):
        controller.stats()


def test_job_is_released_when_progress_callback_raises():
    controller = make_controller()

    def explode(update):
        raise RuntimeError("listener went away")

    with pytest.raises(RuntimeError):
        asyncio.run(controller.ingest(MOUNTAIN_DOC, on_progress=explode))

    assert not controller.is_busy
    assert asyncio.run(controller.ingest(RIVER_DOC)).processed_pages == 2


def test_invalid_arguments_do_not_occupy_the_job_slot():
    async def scenario():
        controller = make_controller()
        with pytest.raises(ValueError):
            controller.start_ingest(MOUNTAIN_DOC, start_page=0)
        return controller

    controller = asyncio.run(scenario())
    assert not controller.is_busy
    assert controller.repository.list_jobs() == []


def test_load_pages_does_not_touch_the_index():
    controller = make_controller()

    pages = asyncio.run(controller.load_pages(RIVER_DOC, [2, 5]))

    assert [(p.page_number, p.word_count) for p in pages] == [(2, 5)]
    assert controller.session.index is None
    assert not controller.is_busy
    job = controller.repository.list_jobs()[0]
    assert job.kind == JobKind.LOAD_PAGES
    assert job.state == JobState.COMPLETED
    assert job.processed_pages == 1


def test_progress_is_tracked_in_job_history():
    updates = []
    controller = make_controller()

    asyncio.run(controller.ingest(MOUNTAIN_DOC, on_progress=updates.append))

    job = controller.repository.list_jobs()[0]
    assert job.kind == JobKind.INGEST
    assert job.state == JobState.COMPLETED
    assert job.current_page == 3
    assert job.processed_pages == 3
    assert job.total_pages == 3
    assert updates[-1].percentage == 100


def test_submit_returns_response_dicts():
    controller = make_controller(failing_pages={2})

    async def scenario():
        before = await controller.submit(StatsCommand())
        ingested = await controller.submit(IngestCommand(source=MOUNTAIN_DOC))
        searched = await controller.submit(SearchCommand(query="mountain"))
        stats = await controller.submit(StatsCommand())
        loaded = await controller.submit(LoadPagesCommand(source=RIVER_DOC, page_numbers=[1]))
        unknown = await controller.submit(object())
        return before, ingested, searched, stats, loaded, unknown

    before, ingested, searched, stats, loaded, unknown = asyncio.run(scenario())

    assert before == {"success": False, "error": "No document indexed for search"}
    assert ingested["success"] is True
    assert ingested["processed_pages"] == 3
    assert ingested["total_pages"] == 3
    assert ingested["failed_pages"] == [2]
    assert ingested["stats"] == {"total_pages": 2, "total_words": 5, "total_text_length": 34, "indexed_terms": 4}
    assert searched["query"] == "mountain"
    assert [r["page_number"] for r in searched["results"]] == [1, 3]
    assert searched["results"][0]["content_preview"] == "the mountain temple..."
    assert stats == {"success": True, "stats": ingested["stats"]}
    assert loaded == {"success": True, "pages": [{"page_number": 1, "content": "river delta", "word_count": 2}]}
    assert unknown == {"success": False, "error": "Unknown message type"}


def test_submit_reports_concurrent_job():
    async def scenario():
        loader = GatedLoader()
        controller = make_controller(loader=loader)
        running = controller.start_ingest(MOUNTAIN_DOC)
        await asyncio.sleep(0)
        rejected = await controller.submit(IngestCommand(source=RIVER_DOC))
        loader.gate.set()
        await running
        return rejected

    assert asyncio.run(scenario()) == {"success": False, "error": "Another operation is in progress"}


def test_close_waits_for_running_job_and_resets_session():
    async def scenario():
        controller = make_controller()
        controller.start_ingest(MOUNTAIN_DOC)
        await controller.close()
        return controller

    controller = asyncio.run(scenario())

    assert controller.session.index is None
    assert controller.repository.list_jobs()[0].state == JobState.COMPLETED


def test_job_is_released_when_saving_the_job_record_fails():
    repo = FlakyJobRepository()
    controller = make_controller(repository=repo)

    with pytest.raises(RuntimeError, match="database is locked"):
        asyncio.run(controller.ingest(MOUNTAIN_DOC))

    assert not controller.is_busy
    with pytest.raises(NoIndexError):
        controller.stats()
    assert asyncio.run(controller.ingest(RIVER_DOC)).processed_pages == 2
    assert [job.state for job in repo.list_jobs()] == [JobState.COMPLETED]


def test_failure_to_record_a_failed_job_keeps_the_original_error():
    controller = make_controller(loader=BrokenLoader(), repository=BrokenHistoryRepository())

    with pytest.raises(LoadError, match="not a pdf"):
        asyncio.run(controller.ingest(MOUNTAIN_DOC))

    assert not controller.is_busy


def test_repository_writes_run_off_the_event_loop_thread():
    repo = ThreadRecordingRepository()
    controller = make_controller(repository=repo)

    async def scenario():
        loop_thread = threading.get_ident()
        await controller.ingest(MOUNTAIN_DOC)
        await controller.load_pages(RIVER_DOC, [1])
        return loop_thread

    loop_thread = asyncio.run(scenario())

    assert repo.threads
    assert loop_thread not in repo.threads
    assert [job.state for job in repo.list_jobs()] == [JobState.COMPLETED, JobState.COMPLETED]


def test_async_progress_callback_is_awaited():
    seen = []
    controller = make_controller()

    async def listener(update):
        await asyncio.sleep(0)
        seen.append(update.percentage)

    asyncio.run(controller.ingest(MOUNTAIN_DOC, on_progress=listener))

    assert seen == [33, 67, 100]


def test_unawaited_failed_job_does_not_report_unretrieved_exception():
    reported = []

    async def scenario():
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        controller = make_controller(loader=BrokenLoader())
        task = controller.start_ingest(MOUNTAIN_DOC)
        while not task.done():
            await asyncio.sleep(0)
        await asyncio.sleep(0)
        state = controller.repository.list_jobs()[0].state
        del task
        controller._task = None
        gc.collect()
        return controller, state

    controller, state = asyncio.run(scenario())

    assert state == JobState.FAILED
    assert not controller.is_busy
    assert reported == []


def test_blank_page_is_an_indexed_entry():
    controller = make_controller()

    asyncio.run(controller.ingest(["mountain temple", "", "mountain summit"]))

    entry = controller.page_entry(2)
    assert entry is not None
    assert entry.raw_text == ""
    assert entry.word_count == 0
    assert controller.page_entry(9) is None
