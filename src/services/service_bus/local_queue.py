"""In-process job queue for development and tests.

Mirrors the Service Bus delivery contract: a job is retried until it succeeds
or runs out of attempts, after which it is parked in `dead_letters`.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from common.config import config
from common.logging import get_logger
from services.service_bus.schemas import JobMessage, JobType

logger = get_logger(__name__)

JobHandler = Callable[[JobMessage], Awaitable[Any]]


class LocalJobQueue:
    """asyncio.Queue backed job runner with at-least-once retry."""

    def __init__(
        self,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_multiplier: float | None = None,
        retry_max: float | None = None,
        max_concurrent: int = 1,
    ):
        self.max_attempts = config.job_max_attempts if max_attempts is None else max_attempts
        self.retry_delay = config.retry_delay if retry_delay is None else retry_delay
        self.retry_multiplier = config.retry_multiplier if retry_multiplier is None else retry_multiplier
        self.retry_max = config.retry_max if retry_max is None else retry_max
        self.max_concurrent = max_concurrent

        self._queue: asyncio.Queue[JobMessage] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._handler: JobHandler | None = None

        self.dead_letters: list[JobMessage] = []

    async def schedule(self, job_type: JobType, transport_request_id: int) -> JobMessage:
        job = JobMessage(job_type=job_type, transport_request_id=transport_request_id)
        await self._queue.put(job)
        logger.info(f"Scheduled {job.job_type.value} for transport request {transport_request_id}")
        return job

    def start(self, handler: JobHandler) -> None:
        """Start the worker tasks."""
        self._handler = handler
        for _ in range(self.max_concurrent):
            self._workers.append(asyncio.create_task(self._worker_loop()))
        logger.info(f"Local job queue started (workers={self.max_concurrent}, max_attempts={self.max_attempts})")

    async def join(self) -> None:
        """Wait until every scheduled job (including chained follow-ups) has settled."""
        await self._queue.join()

    async def shutdown(self) -> None:
        logger.info("Shutting down local job queue...")
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    def _backoff(self, attempt: int) -> float:
        return min(self.retry_delay * self.retry_multiplier ** (attempt - 1), self.retry_max)

    async def _worker_loop(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: JobMessage) -> None:
        """Execute one job, retrying with exponential backoff."""
        while True:
            logger.info(f"Job started: {job.job_type.value} | id={job.event_id} | attempt={job.attempt}")
            try:
                result = await self._handler(job)
                logger.info(f"Job completed: {job.job_type.value} | id={job.event_id} | result={result}")
                return
            except Exception as e:
                logger.error(f"Job failed: {job.job_type.value} | id={job.event_id} | attempt={job.attempt}: {e!r}")
                if job.attempt >= self.max_attempts:
                    logger.error(f"Job {job.event_id} dead-lettered after {job.attempt} attempts")
                    self.dead_letters.append(job)
                    return
                await asyncio.sleep(self._backoff(job.attempt))
                job = job.model_copy(update={"attempt": job.attempt + 1})
