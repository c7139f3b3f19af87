"""Core types for the multi-provider orchestration framework."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from genhub.domain.enums import Capability


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static routing entry for one provider serving one capability.

    Attributes:
        name:        Provider identifier (e.g. "gemini", "openai").
        capability:  The capability this entry routes.
        priority:    Lower = preferred.  Unique within a capability.
        model:       Model identifier the provider is called with.
        implemented: Whether an adapter exists for this pair.
    """

    name: str
    capability: Capability
    priority: int
    model: str
    implemented: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "model": self.model,
            "implemented": self.implemented,
        }


@dataclass
class AvailabilityRecord:
    """Live health state of one (capability, provider) pair."""

    capability: Capability
    provider_name: str
    healthy: bool = True
    consecutive_failures: int = 0
    last_checked_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "capability": self.capability.value,
            "provider": self.provider_name,
            "healthy": self.healthy,
            "consecutive_failures": self.consecutive_failures,
            "last_checked_at": (
                self.last_checked_at.isoformat() if self.last_checked_at else None
            ),
            "last_error": self.last_error,
        }


# ── Normalised requests ──────────────────────────────────────
@dataclass(frozen=True)
class TextRequest:
    prompt: str
    system_prompt: str | None = None
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2000


@dataclass(frozen=True)
class ImageRequest:
    prompt: str
    model: str | None = None
    aspect_ratio: str = "1:1"


@dataclass(frozen=True)
class VideoRequest:
    prompt: str
    model: str | None = None
    style: str = "default"
    image_url: str | None = None
    duration_seconds: int | None = None


@dataclass(frozen=True)
class SpeechRequest:
    text: str
    voice_id: str | None = None
    model: str | None = None


GenerationRequest = Union[TextRequest, ImageRequest, VideoRequest, SpeechRequest]


# ── Normalised results ───────────────────────────────────────
@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class TextResult:
    text: str
    model: str
    provider: str
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class TextChunk:
    text: str
    model: str
    provider: str


@dataclass(frozen=True)
class ImageResult:
    image_url: str
    model: str
    provider: str


@dataclass(frozen=True)
class VideoResult:
    video_url: str
    model: str
    provider: str


@dataclass(frozen=True)
class SpeechResult:
    audio_url: str
    model: str
    provider: str
    content_type: str = "audio/mpeg"


GenerationResult = Union[TextResult, ImageResult, VideoResult, SpeechResult]


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of probing one provider for one capability."""

    capability: Capability
    provider: str | None
    healthy: bool | None
    error: str | None = None
    duration_ms: float = 0.0
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "capability": self.capability.value,
            "provider": self.provider,
            "healthy": self.healthy,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "skipped": self.skipped,
        }


@dataclass
class HealthCheckReport:
    """Caller-facing summary of one health-check run.  Always successful."""

    started_at: datetime
    finished_at: datetime | None = None
    results: list[HealthCheckResult] = field(default_factory=list)
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "checks": [r.to_dict() for r in self.results],
        }
