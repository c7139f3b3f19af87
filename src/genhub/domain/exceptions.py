"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from genhub.domain.entities import GenerationAttempt


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Configuration ────────────────────────────────────────────
class ConfigurationError(DomainError):
    """Static routing / adapter configuration is inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")


class InvalidCapabilityError(DomainError):
    """A capability key outside the closed ``Capability`` set was used."""

    def __init__(self, capability: object) -> None:
        self.capability = capability
        super().__init__(
            f"Unknown capability: {capability!r}", code="INVALID_CAPABILITY"
        )


# ── Provider calls ───────────────────────────────────────────
class ProviderCallError(DomainError):
    """One provider's failure, keeping the vendor's own message and code."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        provider_code: str | None = None,
        status_code: int | None = None,
        code: str = "PROVIDER_CALL_ERROR",
    ) -> None:
        self.provider = provider
        self.provider_code = provider_code
        self.status_code = status_code
        super().__init__(message, code=code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "error": self.message,
            "code": self.provider_code,
            "status_code": self.status_code,
        }

    def __str__(self) -> str:
        return f"[{self.provider}] {self.message}"


class ProviderTimeoutError(ProviderCallError):
    def __init__(self, provider: str, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(
            provider,
            f"Timeout after {timeout_s}s",
            provider_code="timeout",
            code="PROVIDER_TIMEOUT",
        )


class AllProvidersExhaustedError(DomainError):
    """Raised when every candidate of a capability failed within one call."""

    def __init__(self, capability: str, attempts: list[GenerationAttempt]) -> None:
        self.capability = capability
        self.attempts = attempts
        providers = ", ".join(a.provider_name for a in attempts) or "none"
        super().__init__(
            f"All providers exhausted for {capability}: {providers}",
            code="ALL_PROVIDERS_EXHAUSTED",
        )

    @property
    def errors(self) -> dict[str, str]:
        """Provider name → error message, in attempted order."""
        return {
            a.provider_name: a.error.message if a.error else ""
            for a in self.attempts
        }

    def to_dict(self) -> list[dict[str, Any]]:
        return [
            {
                "provider": a.provider_name,
                "error": a.error.message if a.error else None,
                "code": a.error.provider_code if a.error else None,
            }
            for a in self.attempts
        ]


# ── Jobs ─────────────────────────────────────────────────────
class InvalidJobTransitionError(DomainError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f"Cannot transition job from {current!r} to {target!r}",
            code="INVALID_JOB_TRANSITION",
        )


class UnknownTaskTypeError(DomainError):
    def __init__(self, task_name: str) -> None:
        self.task_name = task_name
        super().__init__(f"Unknown AI task type: {task_name}", code="UNKNOWN_TASK_TYPE")


class JobExecutionError(DomainError):
    """A task handler raised while processing a job."""

    def __init__(self, job_id: str, task_name: str, cause: BaseException) -> None:
        self.job_id = job_id
        self.task_name = task_name
        self.cause = cause
        super().__init__(
            f"AI task {task_name} ({job_id}) failed: {cause}",
            code="JOB_EXECUTION_ERROR",
        )


class JobLeaseExpiredError(DomainError):
    """A claimed job was not settled before its claim lease ran out."""

    def __init__(self, job_id: str, lease_seconds: float) -> None:
        self.job_id = job_id
        self.lease_seconds = lease_seconds
        super().__init__(
            f"Job {job_id} was not settled within its {lease_seconds}s claim lease",
            code="JOB_LEASE_EXPIRED",
        )


class JobSubmissionError(DomainError):
    """The queue backend is configured but rejected the submission."""

    def __init__(self, task_name: str, message: str) -> None:
        self.task_name = task_name
        super().__init__(
            f"Could not submit AI task {task_name}: {message}",
            code="JOB_SUBMISSION_ERROR",
        )


# ── Auth ─────────────────────────────────────────────────────
class AuthenticationError(DomainError):
    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, code="AUTHENTICATION_ERROR")
