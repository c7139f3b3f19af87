"""Task submission service.

Hands generation work to the durable queue.  When no queue backend is
configured submission degrades to a logged no-op that returns ``None``;
a configured backend that rejects the job raises ``JobSubmissionError``
so callers can tell "not configured" from "broken".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from genhub.domain.entities import Job
from genhub.domain.exceptions import JobSubmissionError
from genhub.ports.outbound import JobQueuePort
from genhub.shared.observability.metrics import JOBS_SUBMITTED

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class JobOptions:
    """Per-submission overrides of the queue's retry policy."""

    max_attempts: int | None = None
    backoff_seconds: float | None = None
    delay_seconds: float = 0.0
    job_id: str | None = None


class TaskSubmitter:
    def __init__(self, queue: JobQueuePort | None) -> None:
        self._queue = queue

    @property
    def configured(self) -> bool:
        return self._queue is not None

    async def submit(
        self,
        task_name: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> str | None:
        """Enqueue a task and return its job id, or ``None`` without a backend."""
        if self._queue is None:
            logger.warning("job_queue_not_configured", task_name=task_name)
            return None

        options = options or JobOptions()
        try:
            job = await self._queue.enqueue(
                task_name,
                payload,
                max_attempts=options.max_attempts,
                backoff_seconds=options.backoff_seconds,
                delay_seconds=options.delay_seconds,
                job_id=options.job_id,
            )
        except Exception as exc:
            logger.error("job_submission_failed", task_name=task_name, error=str(exc))
            raise JobSubmissionError(task_name, str(exc) or type(exc).__name__) from exc

        JOBS_SUBMITTED.labels(task_name=task_name).inc()
        return job.id

    async def status(self, job_id: str) -> Job | None:
        if self._queue is None:
            return None
        return await self._queue.get(job_id)
