"""Domain enumerations for the generation orchestrator."""

from __future__ import annotations

import enum


class Capability(str, enum.Enum):
    """Kind of generation work a provider can perform."""

    TEXT = "text"
    TEXT_STREAM = "text_stream"
    IMAGE = "image"
    VIDEO = "video"
    SPEECH = "speech"


class AttemptOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class JobStatus(str, enum.Enum):
    """Lifecycle state machine for a queued job."""

    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    # ── Allowed transitions ──
    def can_transition_to(self, target: JobStatus) -> bool:
        return target in _JOB_TRANSITIONS.get(self, set())

    @property
    def is_terminal(self) -> bool:
        """Nothing further will happen to the job.

        Retries move a failed job straight back to QUEUED, so a job at rest
        in FAILED has been dead-lettered.
        """
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.ACTIVE},
    JobStatus.ACTIVE: {JobStatus.COMPLETED, JobStatus.FAILED},
    # A failed job may be re-queued by the backend's retry policy.
    JobStatus.FAILED: {JobStatus.QUEUED},
    JobStatus.COMPLETED: set(),
}


class TaskName(str, enum.Enum):
    """Task types every worker must be able to handle."""

    GENERATE_VIDEO = "generate-video"
    GENERATE_VOICE = "generate-voice"
    GENERATE_IMAGE = "generate-image"
    GENERATE_TEXT = "generate-text"
