"""Job worker — claims queued tasks and runs them through the task registry.

The loop promotes due retries, claims at most ``concurrency`` jobs at a
time and reports every outcome back to the queue.  ``stop()`` ends
claiming; ``run()`` returns once in-flight jobs have finished.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from genhub.application.tasks import TaskRegistry
from genhub.domain.entities import Job
from genhub.domain.enums import JobStatus
from genhub.domain.exceptions import JobExecutionError, UnknownTaskTypeError
from genhub.ports.outbound import JobQueuePort
from genhub.shared.observability.metrics import JOB_DURATION, JOBS_PROCESSED, WORKER_ACTIVE_JOBS

logger = structlog.get_logger(__name__)


class JobWorker:
    def __init__(
        self,
        queue: JobQueuePort,
        tasks: TaskRegistry,
        *,
        concurrency: int = 1,
        poll_timeout_s: float = 1.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._queue = queue
        self._tasks = tasks
        self._concurrency = concurrency
        self._poll_timeout_s = poll_timeout_s
        self._stopping = asyncio.Event()
        self._in_flight: set[asyncio.Task[None]] = set()
        self._processed = 0

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def stop(self) -> None:
        if not self._stopping.is_set():
            logger.info("worker_stopping", in_flight=len(self._in_flight))
        self._stopping.set()

    async def run(self) -> None:
        self._tasks.validate()
        slots = asyncio.Semaphore(self._concurrency)
        logger.info("worker_started", concurrency=self._concurrency, tasks=self._tasks.names())

        try:
            while not self._stopping.is_set():
                await slots.acquire()
                if self._stopping.is_set():
                    slots.release()
                    break

                try:
                    await self._queue.promote_due()
                    job = await self._queue.claim(self._poll_timeout_s)
                except Exception as exc:
                    slots.release()
                    logger.error("job_claim_failed", error=str(exc))
                    await self._sleep_unless_stopping(self._poll_timeout_s)
                    continue

                if job is None:
                    slots.release()
                    continue

                task = asyncio.create_task(self._run_job(job))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
                task.add_done_callback(lambda _t: slots.release())
        finally:
            if self._in_flight:
                logger.info("worker_draining", in_flight=len(self._in_flight))
                await asyncio.gather(*self._in_flight, return_exceptions=True)
            logger.info("worker_stopped", processed=self._processed)

    async def process(self, job: Job) -> Job:
        """Run one claimed job and report its outcome to the queue."""
        log = logger.bind(job_id=job.id, task_name=job.task_name, attempt=job.attempt_count)

        try:
            handler = self._tasks.get(job.task_name)
        except UnknownTaskTypeError as exc:
            log.error("unknown_task_type", error=exc.message)
            JOBS_PROCESSED.labels(task_name="unknown", status="failed").inc()
            return await self._queue.fail(job, exc, retry=False)

        log.info("job_started")
        start = time.monotonic()
        WORKER_ACTIVE_JOBS.inc()
        try:
            result = await handler(job.payload)
        except Exception as exc:
            error = JobExecutionError(job.id, job.task_name, exc)
            log.error("job_failed", error=str(exc), error_type=type(exc).__name__)
            job = await self._queue.fail(job, error)
            status = "retried" if job.status is JobStatus.QUEUED else "failed"
            JOBS_PROCESSED.labels(task_name=job.task_name, status=status).inc()
            return job
        finally:
            WORKER_ACTIVE_JOBS.dec()
            JOB_DURATION.labels(task_name=job.task_name).observe(time.monotonic() - start)

        job = await self._queue.complete(job, result)
        JOBS_PROCESSED.labels(task_name=job.task_name, status="completed").inc()
        log.info("job_completed", duration_s=round(time.monotonic() - start, 3))
        return job

    # ── Internals ────────────────────────────────────────────
    async def _run_job(self, job: Job) -> None:
        try:
            await self.process(job)
        except Exception as exc:
            # Outcome could not be reported; the claim lease expires and requeues it
            logger.error("job_outcome_report_failed", job_id=job.id, error=str(exc))
        finally:
            self._processed += 1

    async def _sleep_unless_stopping(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
