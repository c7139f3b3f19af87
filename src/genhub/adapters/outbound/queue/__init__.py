"""Job queue adapters implementing JobQueuePort.

``RedisJobQueue`` is the durable backend shared between the API process
and workers.  ``InMemoryJobQueue`` has the same semantics inside a single
process and is meant for tests and local development only.

Redis layout for queue ``q``::

    q:job:<id>   JSON-serialised Job
    q:waiting    list of job ids ready to run (LPUSH in, claimed from the right)
    q:active     list of job ids claimed by a worker
    q:leases     sorted set of claimed job ids scored by lease deadline (epoch seconds)
    q:delayed    sorted set of job ids scored by next-run epoch seconds
    q:dead       list of job ids whose attempts are exhausted

A claimed job that is neither completed nor failed before its lease runs
out (worker killed, outcome lost) is settled as a failed attempt and goes
through the normal retry / dead-letter path.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any

import orjson
import redis.asyncio as redis
import structlog

from genhub.domain.entities import Job
from genhub.domain.enums import JobStatus
from genhub.domain.exceptions import JobLeaseExpiredError
from genhub.ports.outbound import JobQueuePort

logger = structlog.get_logger(__name__)

DEFAULT_LEASE_SECONDS = 3600.0


def _new_job(
    task_name: str,
    payload: dict[str, Any],
    *,
    max_attempts: int,
    backoff_seconds: float,
    delay_seconds: float,
    job_id: str | None,
) -> Job:
    job = Job(task_name=task_name, payload=dict(payload), max_attempts=max_attempts, backoff_seconds=backoff_seconds)
    if job_id:
        job.id = job_id
    if delay_seconds > 0:
        job.next_run_at = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
    return job


def _settle_failure(job: Job, error: BaseException, retry: bool) -> datetime | None:
    """Apply failure to ``job``; return its next run time when it was re-queued."""
    job.fail(error)
    if retry and job.has_attempts_left:
        run_at = datetime.now(timezone.utc) + timedelta(seconds=job.retry_delay_seconds)
        job.requeue(run_at)
        return run_at
    return None


def _log_failure(job: Job, run_at: datetime | None) -> None:
    if run_at is not None:
        logger.info(
            "job_retry_scheduled",
            job_id=job.id,
            attempt=job.attempt_count,
            delay_s=job.retry_delay_seconds,
        )
    else:
        logger.warning("job_dead_lettered", job_id=job.id, attempts=job.attempt_count)


class RedisJobQueue(JobQueuePort):
    """Durable queue on Redis; ``BLMOVE`` hands each job to exactly one worker."""

    def __init__(
        self,
        url: str = "",
        *,
        queue_name: str = "ai-tasks",
        max_connections: int = 10,
        default_max_attempts: int = 3,
        default_backoff_seconds: float = 5.0,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
        client: redis.Redis | None = None,
    ) -> None:
        if client is None:
            self._pool: redis.ConnectionPool | None = redis.ConnectionPool.from_url(
                url,
                max_connections=max_connections,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
        else:
            self._pool = None
            self._client = client
        self._name = queue_name
        self._default_max_attempts = default_max_attempts
        self._default_backoff = default_backoff_seconds
        self._lease_seconds = lease_seconds

    @property
    def name(self) -> str:
        return self._name

    # ── Keys ─────────────────────────────────────────────────
    def _job_key(self, job_id: str) -> str:
        return f"{self._name}:job:{job_id}"

    @property
    def _waiting(self) -> str:
        return f"{self._name}:waiting"

    @property
    def _active(self) -> str:
        return f"{self._name}:active"

    @property
    def _leases(self) -> str:
        return f"{self._name}:leases"

    @property
    def _delayed(self) -> str:
        return f"{self._name}:delayed"

    @property
    def _dead(self) -> str:
        return f"{self._name}:dead"

    @staticmethod
    def _dumps(job: Job) -> str:
        return orjson.dumps(job.to_dict()).decode()

    # ── Port ─────────────────────────────────────────────────
    async def enqueue(
        self,
        task_name: str,
        payload: dict[str, Any],
        *,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        delay_seconds: float = 0.0,
        job_id: str | None = None,
    ) -> Job:
        job = _new_job(
            task_name,
            payload,
            max_attempts=max_attempts or self._default_max_attempts,
            backoff_seconds=self._default_backoff if backoff_seconds is None else backoff_seconds,
            delay_seconds=delay_seconds,
            job_id=job_id,
        )
        key = self._job_key(job.id)
        while True:
            async with self._client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    existing = await pipe.get(key)
                    if existing is not None:
                        break
                    pipe.multi()
                    pipe.set(key, self._dumps(job))
                    if job.next_run_at is not None:
                        pipe.zadd(self._delayed, {job.id: job.next_run_at.timestamp()})
                    else:
                        pipe.lpush(self._waiting, job.id)
                    await pipe.execute()
                    break
                except redis.WatchError:
                    continue

        if existing is not None:
            logger.info("job_already_enqueued", queue=self._name, job_id=job.id, task_name=task_name)
            return Job.from_dict(orjson.loads(existing))
        logger.info("job_enqueued", queue=self._name, job_id=job.id, task_name=task_name)
        return job

    async def claim(self, timeout: float) -> Job | None:
        job_id = await self._client.blmove(self._waiting, self._active, timeout, "RIGHT", "LEFT")
        if job_id is None:
            return None

        job = await self.get(job_id)
        if job is None:
            logger.warning("job_record_missing", queue=self._name, job_id=job_id)
            await self._client.lrem(self._active, 1, job_id)
            return None

        job.activate()
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self._job_key(job.id), self._dumps(job))
            pipe.zadd(self._leases, {job.id: time.time() + self._lease_seconds})
            await pipe.execute()
        return job

    async def complete(self, job: Job, result: Any) -> Job:
        job.complete(result)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self._job_key(job.id), self._dumps(job))
            pipe.lrem(self._active, 1, job.id)
            pipe.zrem(self._leases, job.id)
            await pipe.execute()
        return job

    async def fail(self, job: Job, error: BaseException, *, retry: bool = True) -> Job:
        run_at = _settle_failure(job, error, retry)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self._job_key(job.id), self._dumps(job))
            pipe.lrem(self._active, 1, job.id)
            pipe.zrem(self._leases, job.id)
            if run_at is not None:
                pipe.zadd(self._delayed, {job.id: run_at.timestamp()})
            else:
                pipe.lpush(self._dead, job.id)
            await pipe.execute()
        _log_failure(job, run_at)
        return job

    async def get(self, job_id: str) -> Job | None:
        raw = await self._client.get(self._job_key(job_id))
        if raw is None:
            return None
        return Job.from_dict(orjson.loads(raw))

    async def requeue_stale(self) -> int:
        """Fail claimed jobs whose lease expired so they are retried or dead-lettered."""
        expired = await self._client.zrangebyscore(self._leases, 0, time.time())
        reclaimed = 0
        for job_id in expired:
            # ZREM decides the winner when several workers reclaim at once
            if not await self._client.zrem(self._leases, job_id):
                continue
            job = await self.get(job_id)
            if job is None or job.status is not JobStatus.ACTIVE:
                await self._client.lrem(self._active, 1, job_id)
                continue
            logger.warning("job_lease_expired", queue=self._name, job_id=job_id, attempt=job.attempt_count)
            await self.fail(job, JobLeaseExpiredError(job_id, self._lease_seconds))
            reclaimed += 1
        return reclaimed

    async def promote_due(self) -> int:
        await self.requeue_stale()
        due = await self._client.zrangebyscore(self._delayed, 0, time.time())
        promoted = 0
        for job_id in due:
            # ZREM decides the winner when several workers promote at once
            if await self._client.zrem(self._delayed, job_id):
                await self._client.lpush(self._waiting, job_id)
                promoted += 1
        if promoted:
            logger.debug("jobs_promoted", queue=self._name, count=promoted)
        return promoted

    async def dead_letters(self) -> list[str]:
        return list(await self._client.lrange(self._dead, 0, -1))

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
        if self._pool is not None:
            await self._pool.aclose()


class InMemoryJobQueue(JobQueuePort):
    """Single-process queue with the Redis backend's semantics."""

    def __init__(
        self,
        *,
        default_max_attempts: int = 3,
        default_backoff_seconds: float = 5.0,
        lease_seconds: float = DEFAULT_LEASE_SECONDS,
    ) -> None:
        self._jobs: dict[str, dict[str, Any]] = {}
        self._waiting: deque[str] = deque()
        self._active: set[str] = set()
        self._leases: dict[str, float] = {}
        self._delayed: dict[str, float] = {}
        self._dead: list[str] = []
        self._cond = asyncio.Condition()
        self._default_max_attempts = default_max_attempts
        self._default_backoff = default_backoff_seconds
        self._lease_seconds = lease_seconds
        logger.info("job_queue_initialized_memory")

    async def enqueue(
        self,
        task_name: str,
        payload: dict[str, Any],
        *,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        delay_seconds: float = 0.0,
        job_id: str | None = None,
    ) -> Job:
        job = _new_job(
            task_name,
            payload,
            max_attempts=max_attempts or self._default_max_attempts,
            backoff_seconds=self._default_backoff if backoff_seconds is None else backoff_seconds,
            delay_seconds=delay_seconds,
            job_id=job_id,
        )
        async with self._cond:
            existing = self._jobs.get(job.id)
            if existing is None:
                self._jobs[job.id] = job.to_dict()
                if job.next_run_at is not None:
                    self._delayed[job.id] = job.next_run_at.timestamp()
                else:
                    self._waiting.appendleft(job.id)
                    self._cond.notify()

        if existing is not None:
            logger.info("job_already_enqueued", queue="memory", job_id=job.id, task_name=task_name)
            return Job.from_dict(existing)
        logger.info("job_enqueued", queue="memory", job_id=job.id, task_name=task_name)
        return job

    async def claim(self, timeout: float) -> Job | None:
        async with self._cond:
            try:
                await asyncio.wait_for(self._cond.wait_for(lambda: bool(self._waiting)), timeout)
            except asyncio.TimeoutError:
                return None
            job_id = self._waiting.pop()
            self._active.add(job_id)
            self._leases[job_id] = time.time() + self._lease_seconds
            job = Job.from_dict(self._jobs[job_id])
            job.activate()
            self._jobs[job_id] = job.to_dict()
        return job

    async def complete(self, job: Job, result: Any) -> Job:
        job.complete(result)
        async with self._cond:
            self._jobs[job.id] = job.to_dict()
            self._active.discard(job.id)
            self._leases.pop(job.id, None)
        return job

    async def fail(self, job: Job, error: BaseException, *, retry: bool = True) -> Job:
        run_at = _settle_failure(job, error, retry)
        async with self._cond:
            self._jobs[job.id] = job.to_dict()
            self._active.discard(job.id)
            self._leases.pop(job.id, None)
            if run_at is not None:
                self._delayed[job.id] = run_at.timestamp()
            else:
                self._dead.append(job.id)
        _log_failure(job, run_at)
        return job

    async def get(self, job_id: str) -> Job | None:
        data = self._jobs.get(job_id)
        return Job.from_dict(data) if data is not None else None

    async def requeue_stale(self) -> int:
        now = time.time()
        async with self._cond:
            expired = [job_id for job_id, at in self._leases.items() if at <= now]
            for job_id in expired:
                del self._leases[job_id]

        reclaimed = 0
        for job_id in expired:
            job = await self.get(job_id)
            if job is None or job.status is not JobStatus.ACTIVE:
                self._active.discard(job_id)
                continue
            logger.warning("job_lease_expired", queue="memory", job_id=job_id, attempt=job.attempt_count)
            await self.fail(job, JobLeaseExpiredError(job_id, self._lease_seconds))
            reclaimed += 1
        return reclaimed

    async def promote_due(self) -> int:
        await self.requeue_stale()
        now = time.time()
        async with self._cond:
            due = [job_id for job_id, at in self._delayed.items() if at <= now]
            for job_id in due:
                del self._delayed[job_id]
                self._waiting.appendleft(job_id)
            if due:
                self._cond.notify(len(due))
        return len(due)

    async def dead_letters(self) -> list[str]:
        return list(self._dead)

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        pass


__all__ = ["DEFAULT_LEASE_SECONDS", "InMemoryJobQueue", "RedisJobQueue"]
