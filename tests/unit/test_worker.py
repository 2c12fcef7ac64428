"""Tests for the background search queue."""

import asyncio

import pytest

from src.core.db import get_search_job, init_db, list_search_jobs
from src.core.schemas import (
    RawMatch,
    SearchJob,
    SearchJobStatus,
    SearchParams,
    SearchQuery,
    SearchResult,
)
from src.pipeline.orchestrator import SearchOrchestrator
from src.pipeline.worker import NEVER_STARTED, SearchQueue
from src.sources.base import SourceAdapter
from src.sources.mock import MockSource


class FlakyOrchestrator:
    """Fails the first ``failures`` calls per juror, then succeeds."""

    def __init__(self, failures: dict[str, int]) -> None:
        self.failures = dict(failures)
        self.calls: list[tuple[str, int | None]] = []
        self.queued = 0

    def queue_search(self, juror_id: str, query: SearchQuery) -> int:
        self.queued += 1
        return self.queued

    def abandon_search(self, job_id: int, reason: str) -> None:
        pass

    def get_search_job(self, job_id: int) -> SearchJob | None:
        return None

    async def search_juror(
        self, juror_id: str, query: SearchQuery, *, job_id: int | None = None,
    ) -> SearchResult:
        self.calls.append((juror_id, job_id))
        if self.failures.get(juror_id, 0) > 0:
            self.failures[juror_id] -= 1
            msg = f"database locked for {juror_id}"
            raise RuntimeError(msg)
        return SearchResult(
            juror_id=juror_id,
            search_job_id=job_id or 100 + len(self.calls),
            candidates=[],
            total_candidates=0,
            sources_searched=["mock"],
            search_duration_ms=1,
        )


class SleepySource(SourceAdapter):
    def __init__(self, delay: float) -> None:
        self.delay = delay

    @property
    def name(self) -> str:
        return "sleepy"

    @property
    def tier(self) -> int:
        return 4

    async def search(self, params: SearchParams) -> list[RawMatch]:
        await asyncio.sleep(self.delay)
        return []

    async def is_available(self) -> bool:
        return True


QUERY = SearchQuery(first_name="John", last_name="Smith")


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "q.db")


class TestSearchQueue:
    async def test_runs_real_searches(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [MockSource()])
        async with SearchQueue(orchestrator, workers=2) as queue:
            tasks = [queue.enqueue(j, QUERY) for j in ("J1", "J2", "J3")]
            await queue.join()

        assert all(t.status is SearchJobStatus.COMPLETED for t in tasks)
        assert all(t.result is not None and t.result.total_candidates > 0 for t in tasks)
        assert len(list_search_jobs(db)) == 3
        assert queue.is_running is False

    async def test_retries_then_succeeds(self) -> None:
        orchestrator = FlakyOrchestrator({"J1": 2})
        queue = SearchQueue(orchestrator, workers=1, max_retries=2)  # type: ignore[arg-type]
        queue.start()
        task = queue.enqueue("J1", QUERY)
        await queue.join()
        await queue.stop()

        assert task.status is SearchJobStatus.COMPLETED
        assert task.attempts == 3
        assert task.error is None
        assert queue.failed_tasks() == []
        # the queued job is used once, retries record fresh jobs
        assert orchestrator.calls == [("J1", 1), ("J1", None), ("J1", None)]

    async def test_gives_up_after_max_retries(self) -> None:
        orchestrator = FlakyOrchestrator({"J1": 5})
        async with SearchQueue(orchestrator, max_retries=1) as queue:  # type: ignore[arg-type]
            failed = queue.enqueue("J1", QUERY)
            ok = queue.enqueue("J2", QUERY)
            await queue.join()

        assert failed.status is SearchJobStatus.FAILED
        assert failed.attempts == 2
        assert failed.error == "database locked for J1"
        assert ok.status is SearchJobStatus.COMPLETED
        assert queue.failed_tasks() == [failed]

    async def test_enqueue_before_start(self) -> None:
        queue = SearchQueue(FlakyOrchestrator({}))  # type: ignore[arg-type]
        task = queue.enqueue("J1", QUERY)
        assert task.status is SearchJobStatus.QUEUED
        assert task.attempts == 0
        assert task.job_id == 1
        assert queue.tasks == [task]

    def test_invalid_arguments(self) -> None:
        with pytest.raises(ValueError):
            SearchQueue(FlakyOrchestrator({}), workers=0)  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            SearchQueue(FlakyOrchestrator({}), max_retries=-1)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------


class TestJobLifecycle:
    async def test_enqueue_records_queued_job(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [MockSource()])
        queue = SearchQueue(orchestrator)
        task = queue.enqueue("J1", QUERY)

        assert task.job_id is not None
        job = get_search_job(db, task.job_id)
        assert job is not None
        assert job.status is SearchJobStatus.QUEUED
        assert job.started_at is None

        queue.start()
        await queue.join()
        await queue.stop()

        job = get_search_job(db, task.job_id)
        assert job is not None
        assert job.status is SearchJobStatus.COMPLETED
        assert job.started_at is not None
        assert task.result is not None
        assert task.result.search_job_id == task.job_id
        assert len(list_search_jobs(db)) == 1

    async def test_leaving_block_lets_search_finish(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [SleepySource(0.2)])
        async with SearchQueue(orchestrator) as queue:
            task = queue.enqueue("J1", QUERY)
            await asyncio.sleep(0.05)

        assert task.status is SearchJobStatus.COMPLETED
        (job,) = list_search_jobs(db)
        assert job.status is SearchJobStatus.COMPLETED
        assert job.completed_at is not None

    async def test_stop_fails_running_and_waiting_jobs(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [SleepySource(5.0)])
        queue = SearchQueue(orchestrator, workers=1)
        queue.start()
        running = queue.enqueue("J1", QUERY)
        waiting = queue.enqueue("J2", QUERY)
        await asyncio.sleep(0.05)
        await queue.stop()

        assert running.status is SearchJobStatus.FAILED
        assert running.error == "Search cancelled"
        assert waiting.status is SearchJobStatus.FAILED
        assert waiting.error == NEVER_STARTED

        jobs = {job.juror_id: job for job in list_search_jobs(db)}
        assert jobs["J1"].status is SearchJobStatus.FAILED
        assert jobs["J1"].error_message == "Search cancelled"
        assert jobs["J1"].completed_at is not None
        assert jobs["J2"].status is SearchJobStatus.FAILED
        assert jobs["J2"].error_message == NEVER_STARTED
        assert queue.is_running is False

    async def test_block_exits_on_error_without_waiting(self, db) -> None:  # type: ignore[no-untyped-def]
        orchestrator = SearchOrchestrator(db, [SleepySource(5.0)])
        with pytest.raises(KeyError):
            async with SearchQueue(orchestrator) as queue:
                task = queue.enqueue("J1", QUERY)
                await asyncio.sleep(0.05)
                raise KeyError("import aborted")

        assert task.status is SearchJobStatus.FAILED
        (job,) = list_search_jobs(db)
        assert job.status is SearchJobStatus.FAILED
