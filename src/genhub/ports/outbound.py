"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The orchestration
core depends only on these abstractions, never on concrete implementations
(HTTP clients, Redis, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, AsyncIterator, ClassVar

from genhub.domain.entities import Job
from genhub.domain.enums import Capability
from genhub.domain.exceptions import ProviderCallError

if TYPE_CHECKING:
    from genhub.shared.providers.types import (
        ImageRequest,
        ImageResult,
        SpeechRequest,
        SpeechResult,
        TextChunk,
        TextRequest,
        TextResult,
        VideoRequest,
        VideoResult,
    )


# ═══════════════════════════════════════════════════════════════
#  Provider client port
# ═══════════════════════════════════════════════════════════════
class ProviderClient(ABC):
    """Uniform interface over one external AI provider.

    Implementations perform exactly one call per method invocation: no
    retries, no fallback.  Failures surface as ``ProviderCallError``.
    """

    capabilities: ClassVar[frozenset[Capability]] = frozenset()

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @classmethod
    def supports_capability(cls, capability: Capability) -> bool:
        return capability in cls.capabilities

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    async def generate_text(self, request: TextRequest) -> TextResult:
        raise self._unsupported(Capability.TEXT)

    def stream_text(self, request: TextRequest) -> AsyncIterator[TextChunk]:
        raise self._unsupported(Capability.TEXT_STREAM)

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        raise self._unsupported(Capability.IMAGE)

    async def generate_video(self, request: VideoRequest) -> VideoResult:
        raise self._unsupported(Capability.VIDEO)

    async def generate_speech(self, request: SpeechRequest) -> SpeechResult:
        raise self._unsupported(Capability.SPEECH)

    async def probe(self, capability: Capability, model: str | None = None) -> bool:
        """Liveness check that starts no billable work.

        Returns ``False`` when the adapter has no such check for
        ``capability``; callers then fall back to a minimal generation.
        A failing check raises ``ProviderCallError``.
        """
        return False

    @abstractmethod
    async def aclose(self) -> None: ...

    def _unsupported(self, capability: Capability) -> ProviderCallError:
        return ProviderCallError(
            self._name,
            f"{self._name} does not support {capability.value}",
            provider_code="unsupported_capability",
        )


# ═══════════════════════════════════════════════════════════════
#  Job queue port
# ═══════════════════════════════════════════════════════════════
class JobQueuePort(ABC):
    """Durable job queue with at-least-once delivery and bounded retries."""

    @abstractmethod
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
        """Store and queue a new job; an existing ``job_id`` returns the stored job untouched."""

    @abstractmethod
    async def claim(self, timeout: float) -> Job | None:
        """Block up to ``timeout`` seconds for the next job; mark it active under a lease."""

    @abstractmethod
    async def complete(self, job: Job, result: Any) -> Job: ...

    @abstractmethod
    async def fail(self, job: Job, error: BaseException, *, retry: bool = True) -> Job:
        """Mark a job failed; re-queue with backoff while attempts remain."""

    @abstractmethod
    async def get(self, job_id: str) -> Job | None: ...

    @abstractmethod
    async def requeue_stale(self) -> int:
        """Settle claimed jobs whose lease expired as failed attempts."""

    @abstractmethod
    async def promote_due(self) -> int:
        """Reclaim expired leases, then move retries whose backoff has elapsed back to the waiting queue."""

    @abstractmethod
    async def health_check(self) -> bool: ...

    @abstractmethod
    async def close(self) -> None: ...
