"""Background search queue for batch juror imports.

Searches are handed to a fixed pool of worker tasks over an ``asyncio.Queue``.
Each task records its own outcome so callers can inspect or retry failures
after ``join()`` returns. Every enqueued search gets a ``queued`` job row that
the orchestrator moves to running when a worker picks it up.
"""

import asyncio
import logging
from dataclasses import dataclass

from src.core.schemas import SearchJobStatus, SearchQuery, SearchResult
from src.pipeline.orchestrator import SEARCH_CANCELLED, SearchOrchestrator

logger = logging.getLogger(__name__)

NEVER_STARTED = "Search cancelled before it started"


@dataclass
class SearchTask:
    juror_id: str
    query: SearchQuery
    job_id: int | None = None
    status: SearchJobStatus = SearchJobStatus.QUEUED
    attempts: int = 0
    result: SearchResult | None = None
    error: str | None = None


class SearchQueue:
    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        *,
        workers: int = 2,
        max_retries: int = 2,
    ) -> None:
        if workers < 1:
            msg = f"workers must be at least 1, got {workers}"
            raise ValueError(msg)
        if max_retries < 0:
            msg = f"max_retries must not be negative, got {max_retries}"
            raise ValueError(msg)
        self._orchestrator = orchestrator
        self._workers = workers
        self._max_retries = max_retries
        self._queue: asyncio.Queue[SearchTask] = asyncio.Queue()
        self._tasks: list[SearchTask] = []
        self._running: list[asyncio.Task[None]] = []

    @property
    def tasks(self) -> list[SearchTask]:
        return list(self._tasks)

    @property
    def is_running(self) -> bool:
        return bool(self._running)

    def enqueue(self, juror_id: str, query: SearchQuery) -> SearchTask:
        job_id = self._orchestrator.queue_search(juror_id, query)
        task = SearchTask(juror_id=juror_id, query=query, job_id=job_id)
        self._tasks.append(task)
        self._queue.put_nowait(task)
        logger.debug("Queued search for juror %s as job %d", juror_id, job_id)
        return task

    def start(self) -> None:
        if self._running:
            return
        self._running = [
            asyncio.create_task(self._work(i), name=f"search-worker-{i}")
            for i in range(self._workers)
        ]
        logger.info("Started %d search workers", self._workers)

    async def join(self) -> None:
        """Wait until every queued task has finished, retries included."""
        await self._queue.join()

    async def stop(self) -> None:
        """Cancel the workers now.

        A search in flight is cancelled and its job marked failed; tasks still
        waiting in the queue are failed without running.
        """
        for worker in self._running:
            worker.cancel()
        await asyncio.gather(*self._running, return_exceptions=True)
        self._running = []

        while not self._queue.empty():
            task = self._queue.get_nowait()
            task.status = SearchJobStatus.FAILED
            task.error = NEVER_STARTED
            if task.job_id is not None:
                self._orchestrator.abandon_search(task.job_id, NEVER_STARTED)
            self._queue.task_done()
        logger.info("Search workers stopped")

    def failed_tasks(self) -> list[SearchTask]:
        return [t for t in self._tasks if t.status == SearchJobStatus.FAILED]

    async def __aenter__(self) -> "SearchQueue":
        self.start()
        return self

    async def __aexit__(self, exc_type: type[BaseException] | None, *exc: object) -> None:
        # Leaving the block normally lets queued searches finish first
        if exc_type is None and self._running:
            await self.join()
        await self.stop()

    async def _work(self, worker_id: int) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._run(task, worker_id)
            finally:
                self._queue.task_done()

    async def _run(self, task: SearchTask, worker_id: int) -> None:
        while True:
            task.attempts += 1
            task.status = SearchJobStatus.RUNNING
            # Only the first attempt runs the queued job; retries record their own
            job_id = task.job_id if task.attempts == 1 else None
            try:
                task.result = await self._orchestrator.search_juror(
                    task.juror_id, task.query, job_id=job_id,
                )
            except asyncio.CancelledError:
                task.status = SearchJobStatus.FAILED
                task.error = SEARCH_CANCELLED
                if job_id is not None:
                    # Cancelled while waiting for the juror's lock
                    job = self._orchestrator.get_search_job(job_id)
                    if job is not None and job.status is SearchJobStatus.QUEUED:
                        self._orchestrator.abandon_search(job_id, SEARCH_CANCELLED)
                logger.warning("Worker %d: juror %s cancelled", worker_id, task.juror_id)
                raise
            except Exception as e:
                task.error = str(e) or type(e).__name__
                if task.attempts > self._max_retries:
                    task.status = SearchJobStatus.FAILED
                    logger.error(
                        "Worker %d: juror %s failed after %d attempts: %s",
                        worker_id, task.juror_id, task.attempts, task.error,
                    )
                    return
                logger.warning(
                    "Worker %d: juror %s attempt %d failed, retrying: %s",
                    worker_id, task.juror_id, task.attempts, task.error,
                )
                continue

            task.status = SearchJobStatus.COMPLETED
            task.job_id = task.result.search_job_id
            task.error = None
            logger.info(
                "Worker %d: juror %s done, %d candidates",
                worker_id, task.juror_id, task.result.total_candidates,
            )
            return
