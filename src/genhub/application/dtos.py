"""Data Transfer Objects — Pydantic models for API and job boundaries.

DTOs handle validation and documentation.  Generation DTOs double as job
payload schemas so a queued task is validated exactly like an HTTP call.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from genhub.shared.providers.types import (
    GenerationResult,
    ImageRequest,
    SpeechRequest,
    TextRequest,
    VideoRequest,
)


def result_to_dict(result: GenerationResult) -> dict[str, Any]:
    """JSON-compatible view of a normalised generation result."""
    return asdict(result)


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | list | None = None  # type: ignore[type-arg]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Generation
# ═══════════════════════════════════════════════════════════════
class TextGenerationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(..., min_length=1, max_length=32_000)
    system_prompt: str | None = Field(None, max_length=8_000)
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(2000, ge=1, le=32_000)

    def to_domain(self) -> TextRequest:
        return TextRequest(
            prompt=self.prompt,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


class ImageGenerationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(..., min_length=1, max_length=4_000)
    aspect_ratio: str = Field("1:1", pattern=r"^\d+:\d+$", examples=["1:1", "16:9"])

    def to_domain(self) -> ImageRequest:
        return ImageRequest(prompt=self.prompt, aspect_ratio=self.aspect_ratio)


class VideoGenerationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(..., min_length=1, max_length=4_000)
    style: str = "default"
    image_url: str | None = None
    duration_seconds: int | None = Field(None, ge=1, le=60)

    def to_domain(self) -> VideoRequest:
        return VideoRequest(
            prompt=self.prompt,
            style=self.style,
            image_url=self.image_url,
            duration_seconds=self.duration_seconds,
        )


class SpeechGenerationRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(..., min_length=1, max_length=10_000)
    voice_id: str | None = None

    def to_domain(self) -> SpeechRequest:
        return SpeechRequest(text=self.text, voice_id=self.voice_id)


class GenerationResponse(BaseModel):
    capability: str
    provider: str
    model: str
    result: dict[str, Any]


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderEntry(BaseModel):
    name: str
    priority: int
    model: str
    implemented: bool


class CapabilityRouting(BaseModel):
    capability: str
    providers: list[ProviderEntry]


class ProviderMapResponse(BaseModel):
    generated_at: datetime
    model_constants: dict[str, str]
    capabilities: list[CapabilityRouting]


class CandidatesResponse(BaseModel):
    capability: str
    candidates: list[str]


# ═══════════════════════════════════════════════════════════════
#  Jobs
# ═══════════════════════════════════════════════════════════════
class SubmitJobRequest(BaseModel):
    task_name: str = Field(..., min_length=1, max_length=100, examples=["generate-video"])
    payload: dict[str, Any] = Field(default_factory=dict)
    max_attempts: int | None = Field(None, ge=1, le=20)
    delay_seconds: float = Field(0.0, ge=0)


class SubmitJobResponse(BaseModel):
    job_id: str | None
    queued: bool


class JobResponse(BaseModel):
    id: str
    task_name: str
    status: str
    attempt_count: int
    max_attempts: int
    finished: bool = False
    result: Any = None
    error: dict[str, str] | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    next_run_at: datetime | None = None
