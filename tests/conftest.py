"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Iterable, Mapping

import pytest

from genhub.config import Settings, get_settings
from genhub.domain.enums import Capability
from genhub.domain.exceptions import ProviderCallError
from genhub.ports.outbound import ProviderClient
from genhub.shared.providers import (
    AvailabilityStore,
    CapabilityResolver,
    GenerationOrchestrator,
    HealthCheckScheduler,
    ProviderDescriptor,
    ProviderRegistry,
)
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
#  Fake provider
# ═══════════════════════════════════════════════════════════════
class FakeProviderClient(ProviderClient):
    """In-process provider: records every call, fails or stalls on demand."""

    def __init__(
        self,
        name: str,
        *,
        capabilities: Iterable[Capability] = tuple(Capability),
        fail: bool = False,
        error: Exception | None = None,
        delay: float = 0.0,
        chunks: Iterable[str] = ("Hel", "lo"),
        fail_after_chunks: int | None = None,
    ) -> None:
        super().__init__(name)
        self.capabilities = frozenset(capabilities)  # type: ignore[misc]
        self.fail = fail
        self.error = error or ProviderCallError(name, f"{name} is down", provider_code="503")
        self.delay = delay
        self.chunks = list(chunks)
        self.fail_after_chunks = fail_after_chunks
        self.calls: list[tuple[Capability, Any]] = []
        self.closed = False

    async def _respond(self, capability: Capability, request: Any) -> None:
        self.calls.append((capability, request))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise self.error

    async def generate_text(self, request: TextRequest) -> TextResult:
        await self._respond(Capability.TEXT, request)
        return TextResult(text=f"{self.name}: {request.prompt}", model=request.model or "", provider=self.name)

    async def stream_text(self, request: TextRequest) -> AsyncIterator[TextChunk]:
        await self._respond(Capability.TEXT_STREAM, request)
        for index, text in enumerate(self.chunks):
            if self.fail_after_chunks is not None and index >= self.fail_after_chunks:
                raise self.error
            yield TextChunk(text=text, model=request.model or "", provider=self.name)

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        await self._respond(Capability.IMAGE, request)
        return ImageResult(image_url=f"https://{self.name}.test/image.png", model=request.model or "", provider=self.name)

    async def generate_video(self, request: VideoRequest) -> VideoResult:
        await self._respond(Capability.VIDEO, request)
        return VideoResult(video_url=f"https://{self.name}.test/video.mp4", model=request.model or "", provider=self.name)

    async def generate_speech(self, request: SpeechRequest) -> SpeechResult:
        await self._respond(Capability.SPEECH, request)
        return SpeechResult(audio_url=f"https://{self.name}.test/audio.mp3", model=request.model or "", provider=self.name)

    async def aclose(self) -> None:
        self.closed = True


# ═══════════════════════════════════════════════════════════════
#  Routing helpers
# ═══════════════════════════════════════════════════════════════
def routes(capability: Capability, *names: str, model: str = "test/model") -> list[ProviderDescriptor]:
    """Descriptors for ``names`` with priorities 1..n in the given order."""
    return [
        ProviderDescriptor(name=name, capability=capability, priority=index, model=f"{model}-{name}")
        for index, name in enumerate(names, start=1)
    ]


@dataclass
class Core:
    registry: ProviderRegistry
    availability: AvailabilityStore
    resolver: CapabilityResolver
    orchestrator: GenerationOrchestrator
    health_checks: HealthCheckScheduler
    clients: Mapping[str, ProviderClient]


def _build_core(
    registry: ProviderRegistry,
    clients: Mapping[str, ProviderClient],
    *,
    failure_threshold: int = 1,
    timeout_s: float = 1.0,
    timeouts: Mapping[Capability, float] | None = None,
) -> Core:
    availability = AvailabilityStore(failure_threshold=failure_threshold)
    resolver = CapabilityResolver(registry, availability)
    return Core(
        registry=registry,
        availability=availability,
        resolver=resolver,
        orchestrator=GenerationOrchestrator(resolver, clients, availability, timeout_s=timeout_s, timeouts=timeouts),
        health_checks=HealthCheckScheduler(resolver, clients, availability, timeout_s=timeout_s, timeouts=timeouts),
        clients=clients,
    )


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def fake_client() -> type[FakeProviderClient]:
    return FakeProviderClient


@pytest.fixture
def build_core() -> Callable[..., Core]:
    return _build_core


@pytest.fixture
def make_routes() -> Callable[..., list[ProviderDescriptor]]:
    return routes


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry(
        [
            *routes(Capability.TEXT, "gemini", "openai", "claude"),
            *routes(Capability.TEXT_STREAM, "gemini", "openai"),
            *routes(Capability.IMAGE, "imagen", "replicate"),
            *routes(Capability.VIDEO, "googleVeo", "seedance"),
            *routes(Capability.SPEECH, "minimax", "elevenlabs"),
        ]
    )


@pytest.fixture
def clients(registry: ProviderRegistry) -> dict[str, FakeProviderClient]:
    return {name: FakeProviderClient(name) for name in sorted(registry.provider_names())}


@pytest.fixture
def settings() -> Settings:
    return get_settings(
        redis_url="",
        cron_secret="test-cron-secret",
        provider_timeout_seconds=1.0,
        health_check_timeout_seconds=1.0,
    )
