"""Unit tests for domain entities and exceptions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from genhub.domain.entities import GenerationAttempt, Job
from genhub.domain.enums import AttemptOutcome, JobStatus
from genhub.domain.exceptions import (
    AllProvidersExhaustedError,
    InvalidJobTransitionError,
    JobExecutionError,
    ProviderCallError,
    ProviderTimeoutError,
)


@pytest.fixture
def job() -> Job:
    return Job(task_name="generate-video", payload={"prompt": "a cat"}, max_attempts=3, backoff_seconds=2.0)


# ── Job FSM ──────────────────────────────────────────────────
class TestJob:
    def test_initial_status(self, job):
        assert job.status == JobStatus.QUEUED
        assert job.attempt_count == 0
        assert job.id

    def test_activate_counts_attempts(self, job):
        job.activate()
        assert job.status == JobStatus.ACTIVE
        assert job.attempt_count == 1
        assert job.started_at is not None

    def test_complete(self, job):
        job.activate()
        job.complete({"video_url": "https://v.test/1.mp4"})
        assert job.status == JobStatus.COMPLETED
        assert job.status.is_terminal
        assert job.result == {"video_url": "https://v.test/1.mp4"}

    def test_fail_keeps_code_and_message(self, job):
        job.activate()
        job.fail(JobExecutionError(job.id, job.task_name, RuntimeError("boom")))
        assert job.status == JobStatus.FAILED
        assert job.error["code"] == "JOB_EXECUTION_ERROR"
        assert job.error["message"].endswith("failed: boom")

    def test_requeue_after_failure(self, job):
        run_at = datetime.now(timezone.utc) + timedelta(seconds=2)
        job.activate()
        job.fail(RuntimeError("boom"))
        job.requeue(run_at)
        assert job.status == JobStatus.QUEUED
        assert job.next_run_at == run_at
        assert job.completed_at is None

    def test_dead_lettered_job_is_terminal(self, job):
        job.activate()
        job.fail(RuntimeError("boom"))
        assert job.status == JobStatus.FAILED
        assert job.status.is_terminal

    def test_requeued_job_is_not_terminal(self, job):
        job.activate()
        job.fail(RuntimeError("boom"))
        job.requeue(datetime.now(timezone.utc))
        assert not job.status.is_terminal
        assert not JobStatus.ACTIVE.is_terminal

    def test_invalid_transition_raises(self, job):
        with pytest.raises(InvalidJobTransitionError):
            job.complete(None)  # can't go QUEUED -> COMPLETED

    def test_completed_is_final(self, job):
        job.activate()
        job.complete(None)
        with pytest.raises(InvalidJobTransitionError):
            job.activate()

    def test_attempts_left(self, job):
        for _ in range(3):
            assert job.has_attempts_left
            job.activate()
            job.fail(RuntimeError("boom"))
            if job.has_attempts_left:
                job.requeue(datetime.now(timezone.utc))
        assert job.attempt_count == 3
        assert not job.has_attempts_left

    def test_exponential_backoff(self, job):
        job.attempt_count = 1
        assert job.retry_delay_seconds == 2.0
        job.attempt_count = 3
        assert job.retry_delay_seconds == 8.0

    def test_serialisation_keeps_state(self, job):
        job.activate()
        job.fail(RuntimeError("boom"))
        restored = Job.from_dict(job.to_dict())
        assert restored == job


# ── Attempts & provider errors ───────────────────────────────
class TestProviderErrors:
    def test_provider_error_str(self):
        err = ProviderCallError("openai", "Rate limit", provider_code="429", status_code=429)
        assert str(err) == "[openai] Rate limit"
        assert err.to_dict() == {"provider": "openai", "error": "Rate limit", "code": "429", "status_code": 429}

    def test_timeout_error(self):
        err = ProviderTimeoutError("gemini", 30.0)
        assert err.provider_code == "timeout"
        assert "30.0" in err.message

    def test_exhausted_trail(self):
        now = datetime.now(timezone.utc)
        attempts = [
            GenerationAttempt("gemini", now, AttemptOutcome.FAILURE, ProviderCallError("gemini", "quota")),
            GenerationAttempt("openai", now, AttemptOutcome.FAILURE, ProviderTimeoutError("openai", 60)),
        ]
        err = AllProvidersExhaustedError("text", attempts)

        assert err.message == "All providers exhausted for text: gemini, openai"
        assert list(err.errors) == ["gemini", "openai"]
        assert err.to_dict()[1]["code"] == "timeout"
        assert not attempts[0].succeeded

    def test_exhausted_without_candidates(self):
        err = AllProvidersExhaustedError("video", [])
        assert err.message.endswith("none")
        assert err.errors == {}
