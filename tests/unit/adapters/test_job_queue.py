"""Tests for the job queue adapters.

The same behaviour is checked against the in-memory backend and the Redis
backend (on fakeredis).  Blocking claims are only issued when a job is
waiting so the Redis variant never has to time out.
"""

from __future__ import annotations

from fakeredis import FakeServer, aioredis as fake_aioredis
import pytest

from genhub.adapters.outbound.queue import InMemoryJobQueue, RedisJobQueue
from genhub.domain.enums import JobStatus
from genhub.domain.exceptions import JobLeaseExpiredError, UnknownTaskTypeError


@pytest.fixture
def redis_client():
    return fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True)


@pytest.fixture(params=["memory", "redis"])
def make_queue(request, redis_client):
    def factory(**kwargs):
        kwargs.setdefault("default_max_attempts", 2)
        kwargs.setdefault("default_backoff_seconds", 0)
        if request.param == "memory":
            return InMemoryJobQueue(**kwargs)
        return RedisJobQueue(queue_name="test-q", client=redis_client, **kwargs)

    return factory


@pytest.fixture
def queue(make_queue):
    return make_queue()


# ═══════════════════════════════════════════════════════════════
#  Shared behaviour
# ═══════════════════════════════════════════════════════════════
class TestJobQueue:
    @pytest.mark.asyncio
    async def test_enqueue_and_get(self, queue):
        job = await queue.enqueue("generate-video", {"prompt": "a cat"})

        stored = await queue.get(job.id)
        assert stored is not None
        assert stored.task_name == "generate-video"
        assert stored.payload == {"prompt": "a cat"}
        assert stored.status is JobStatus.QUEUED
        assert stored.attempt_count == 0
        assert stored.max_attempts == 2

    @pytest.mark.asyncio
    async def test_custom_job_id_and_attempts(self, queue):
        job = await queue.enqueue("generate-text", {}, job_id="job-42", max_attempts=5)
        assert job.id == "job-42"
        assert (await queue.get("job-42")).max_attempts == 5

    @pytest.mark.asyncio
    async def test_get_missing(self, queue):
        assert await queue.get("nope") is None

    @pytest.mark.asyncio
    async def test_claim_is_fifo_and_activates(self, queue):
        first = await queue.enqueue("generate-text", {"n": 1})
        second = await queue.enqueue("generate-text", {"n": 2})

        claimed = await queue.claim(0.1)
        assert claimed.id == first.id
        assert claimed.status is JobStatus.ACTIVE
        assert claimed.attempt_count == 1
        assert claimed.started_at is not None
        assert (await queue.get(first.id)).status is JobStatus.ACTIVE

        assert (await queue.claim(0.1)).id == second.id

    @pytest.mark.asyncio
    async def test_complete(self, queue):
        await queue.enqueue("generate-image", {"prompt": "a cat"})
        job = await queue.claim(0.1)

        await queue.complete(job, {"image_url": "https://img.test/cat.png"})

        stored = await queue.get(job.id)
        assert stored.status is JobStatus.COMPLETED
        assert stored.result == {"image_url": "https://img.test/cat.png"}
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_failed_job_retried_after_backoff(self, queue):
        await queue.enqueue("generate-video", {})
        job = await queue.claim(0.1)

        job = await queue.fail(job, RuntimeError("provider down"))

        assert job.status is JobStatus.QUEUED
        assert job.next_run_at is not None
        assert job.error == {"code": "RuntimeError", "message": "provider down"}
        assert await queue.promote_due() == 1

        retried = await queue.claim(0.1)
        assert retried.id == job.id
        assert retried.attempt_count == 2

    @pytest.mark.asyncio
    async def test_attempts_exhausted_dead_letters(self, queue):
        await queue.enqueue("generate-video", {}, max_attempts=1)
        job = await queue.claim(0.1)

        job = await queue.fail(job, RuntimeError("provider down"))

        assert job.status is JobStatus.FAILED
        assert await queue.promote_due() == 0
        assert await queue.dead_letters() == [job.id]

    @pytest.mark.asyncio
    async def test_fail_without_retry(self, queue):
        await queue.enqueue("unknown-task", {})
        job = await queue.claim(0.1)

        job = await queue.fail(job, UnknownTaskTypeError("unknown-task"), retry=False)

        stored = await queue.get(job.id)
        assert stored.status is JobStatus.FAILED
        assert stored.error["message"] == "Unknown AI task type: unknown-task"
        assert stored.error["code"] == "UNKNOWN_TASK_TYPE"
        assert await queue.dead_letters() == [job.id]

    @pytest.mark.asyncio
    async def test_delayed_job_not_promoted_early(self, queue):
        job = await queue.enqueue("generate-text", {}, delay_seconds=60)
        assert job.next_run_at is not None
        assert await queue.promote_due() == 0

    @pytest.mark.asyncio
    async def test_health_check(self, queue):
        assert await queue.health_check() is True

    @pytest.mark.asyncio
    async def test_duplicate_job_id_returns_stored_job(self, queue):
        await queue.enqueue("generate-text", {"n": 1}, job_id="job-1")
        job = await queue.claim(0.1)
        await queue.complete(job, {"text": "done"})

        again = await queue.enqueue("generate-text", {"n": 2}, job_id="job-1")

        assert again.status is JobStatus.COMPLETED
        assert again.payload == {"n": 1}
        assert again.result == {"text": "done"}
        stored = await queue.get("job-1")
        assert stored.status is JobStatus.COMPLETED
        assert stored.result == {"text": "done"}
        assert await queue.promote_due() == 0

    @pytest.mark.asyncio
    async def test_duplicate_while_queued_is_delivered_once(self, queue):
        await queue.enqueue("generate-text", {}, job_id="job-1")
        await queue.enqueue("generate-text", {}, job_id="job-1")
        await queue.enqueue("generate-text", {}, job_id="job-2")

        assert (await queue.claim(0.1)).id == "job-1"
        assert (await queue.claim(0.1)).id == "job-2"


# ═══════════════════════════════════════════════════════════════
#  Claim leases
# ═══════════════════════════════════════════════════════════════
class TestClaimLease:
    @pytest.mark.asyncio
    async def test_expired_claim_is_redelivered(self, make_queue):
        queue = make_queue(lease_seconds=0)
        await queue.enqueue("generate-video", {"prompt": "a cat"})
        job = await queue.claim(0.1)
        assert job.attempt_count == 1

        # Worker holding the claim never reports back
        assert await queue.promote_due() == 1

        redelivered = await queue.claim(0.1)
        assert redelivered.id == job.id
        assert redelivered.status is JobStatus.ACTIVE
        assert redelivered.attempt_count == 2
        assert redelivered.error == {
            "code": "JOB_LEASE_EXPIRED",
            "message": JobLeaseExpiredError(job.id, 0).message,
        }

    @pytest.mark.asyncio
    async def test_expiry_on_last_attempt_dead_letters(self, make_queue):
        queue = make_queue(lease_seconds=0)
        await queue.enqueue("generate-video", {}, max_attempts=1)
        job = await queue.claim(0.1)

        assert await queue.requeue_stale() == 1

        stored = await queue.get(job.id)
        assert stored.status is JobStatus.FAILED
        assert stored.status.is_terminal
        assert stored.error["code"] == "JOB_LEASE_EXPIRED"
        assert await queue.dead_letters() == [job.id]
        assert await queue.promote_due() == 0

    @pytest.mark.asyncio
    async def test_settled_jobs_are_not_reclaimed(self, make_queue):
        queue = make_queue(lease_seconds=0)
        await queue.enqueue("generate-text", {"n": 1})
        await queue.enqueue("generate-text", {"n": 2})
        done = await queue.claim(0.1)
        failed = await queue.claim(0.1)
        await queue.complete(done, {"text": "ok"})
        await queue.fail(failed, RuntimeError("boom"), retry=False)

        assert await queue.requeue_stale() == 0
        assert (await queue.get(done.id)).status is JobStatus.COMPLETED
        assert (await queue.get(failed.id)).attempt_count == 1

    @pytest.mark.asyncio
    async def test_live_lease_is_left_alone(self, make_queue):
        queue = make_queue(lease_seconds=60)
        await queue.enqueue("generate-text", {})
        job = await queue.claim(0.1)

        assert await queue.requeue_stale() == 0
        assert (await queue.get(job.id)).status is JobStatus.ACTIVE


# ═══════════════════════════════════════════════════════════════
#  Backend specifics
# ═══════════════════════════════════════════════════════════════
class TestRedisJobQueue:
    @pytest.fixture
    def redis_queue(self, redis_client):
        return RedisJobQueue(queue_name="ai", client=redis_client)

    @pytest.mark.asyncio
    async def test_key_layout(self, redis_queue, redis_client):
        job = await redis_queue.enqueue("generate-text", {"prompt": "hi"})
        delayed = await redis_queue.enqueue("generate-text", {}, delay_seconds=30)

        assert await redis_client.exists(f"ai:job:{job.id}")
        assert await redis_client.lrange("ai:waiting", 0, -1) == [job.id]
        assert await redis_client.zscore("ai:delayed", delayed.id) is not None

        await redis_queue.claim(0.1)
        assert await redis_client.lrange("ai:active", 0, -1) == [job.id]
        assert await redis_client.zscore("ai:leases", job.id) is not None

    @pytest.mark.asyncio
    async def test_complete_clears_active(self, redis_queue, redis_client):
        await redis_queue.enqueue("generate-text", {})
        job = await redis_queue.claim(0.1)
        await redis_queue.complete(job, {"text": "ok"})
        assert await redis_client.llen("ai:active") == 0

    @pytest.mark.asyncio
    async def test_orphan_id_is_dropped(self, redis_queue, redis_client):
        await redis_client.lpush("ai:waiting", "ghost")
        assert await redis_queue.claim(0.1) is None
        assert await redis_client.llen("ai:active") == 0

    @pytest.mark.asyncio
    async def test_complete_clears_lease(self, redis_queue, redis_client):
        await redis_queue.enqueue("generate-text", {})
        job = await redis_queue.claim(0.1)
        await redis_queue.complete(job, None)
        assert await redis_client.zcard("ai:leases") == 0

    @pytest.mark.asyncio
    async def test_close(self, redis_queue):
        await redis_queue.close()


class TestInMemoryJobQueue:
    @pytest.mark.asyncio
    async def test_claim_times_out_when_empty(self):
        queue = InMemoryJobQueue()
        assert await queue.claim(0.01) is None

    @pytest.mark.asyncio
    async def test_active_count(self):
        queue = InMemoryJobQueue()
        await queue.enqueue("generate-text", {})
        job = await queue.claim(0.1)
        assert queue.active_count == 1
        await queue.complete(job, None)
        assert queue.active_count == 0
