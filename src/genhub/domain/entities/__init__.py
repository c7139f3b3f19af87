"""Domain entities — objects with identity and lifecycle.

Entities are *mutable* but expose controlled mutation methods that enforce
their invariants.  ``Job`` carries a unique ``id`` and is serialised to a
JSON-compatible dict for the durable queue.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from genhub.domain.enums import AttemptOutcome, JobStatus
from genhub.domain.exceptions import InvalidJobTransitionError, ProviderCallError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ═══════════════════════════════════════════════════════════════
#  GenerationAttempt
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class GenerationAttempt:
    """One try against one provider during an orchestrated call."""

    provider_name: str
    started_at: datetime
    outcome: AttemptOutcome
    error: ProviderCallError | None = None
    latency_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


# ═══════════════════════════════════════════════════════════════
#  Job
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class Job:
    """Unit of asynchronous work owned by the queue until a worker claims it."""

    task_name: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)
    status: JobStatus = JobStatus.QUEUED
    attempt_count: int = 0
    max_attempts: int = 3
    backoff_seconds: float = 5.0
    result: Any = None
    error: dict[str, str] | None = None
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    next_run_at: datetime | None = None

    # ── State transitions ────────────────────────────────────
    def transition_to(self, new_status: JobStatus) -> None:
        if not self.status.can_transition_to(new_status):
            raise InvalidJobTransitionError(self.status.value, new_status.value)
        self.status = new_status

    def activate(self) -> None:
        self.transition_to(JobStatus.ACTIVE)
        self.attempt_count += 1
        self.started_at = _utcnow()
        self.next_run_at = None

    def complete(self, result: Any) -> None:
        self.transition_to(JobStatus.COMPLETED)
        self.result = result
        self.error = None
        self.completed_at = _utcnow()

    def fail(self, error: BaseException) -> None:
        self.transition_to(JobStatus.FAILED)
        self.error = {
            "code": str(getattr(error, "code", type(error).__name__)),
            "message": getattr(error, "message", str(error)),
        }
        self.completed_at = _utcnow()

    def requeue(self, run_at: datetime) -> None:
        """Back to the queue after a failed attempt (backend retry policy)."""
        self.transition_to(JobStatus.QUEUED)
        self.completed_at = None
        self.next_run_at = run_at

    @property
    def has_attempts_left(self) -> bool:
        return self.attempt_count < self.max_attempts

    @property
    def retry_delay_seconds(self) -> float:
        """Exponential backoff for the attempt that just failed."""
        return self.backoff_seconds * (2 ** max(self.attempt_count - 1, 0))

    # ── Serialisation ────────────────────────────────────────
    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_name": self.task_name,
            "payload": self.payload,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "max_attempts": self.max_attempts,
            "backoff_seconds": self.backoff_seconds,
            "result": self.result,
            "error": self.error,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "next_run_at": _iso(self.next_run_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        return cls(
            id=data["id"],
            task_name=data["task_name"],
            payload=data.get("payload") or {},
            status=JobStatus(data.get("status", JobStatus.QUEUED.value)),
            attempt_count=int(data.get("attempt_count", 0)),
            max_attempts=int(data.get("max_attempts", 3)),
            backoff_seconds=float(data.get("backoff_seconds", 5.0)),
            result=data.get("result"),
            error=data.get("error"),
            created_at=_parse_dt(data.get("created_at")) or _utcnow(),
            started_at=_parse_dt(data.get("started_at")),
            completed_at=_parse_dt(data.get("completed_at")),
            next_run_at=_parse_dt(data.get("next_run_at")),
        )
