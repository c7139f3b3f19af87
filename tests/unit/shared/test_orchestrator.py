"""Tests for sequential provider fallback."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from genhub.domain.enums import AttemptOutcome, Capability
from genhub.domain.exceptions import (
    AllProvidersExhaustedError,
    InvalidCapabilityError,
    ProviderCallError,
    ProviderTimeoutError,
)
from genhub.ports.outbound import ProviderClient
from genhub.shared.providers import AvailabilityStore, CapabilityResolver, GenerationOrchestrator, ProviderRegistry
from genhub.shared.providers.types import ImageRequest, SpeechRequest, TextRequest, TextResult, VideoRequest


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def core(build_core, registry, clients):
    return build_core(registry, clients)


def _fail(clients, *names: str) -> None:
    for name in names:
        clients[name].fail = True


class TextOnlyClient(ProviderClient):
    capabilities = frozenset({Capability.TEXT})

    async def generate_text(self, request: TextRequest) -> TextResult:
        return TextResult(text="ok", model=request.model or "", provider=self.name)

    async def aclose(self) -> None:
        pass


# ═══════════════════════════════════════════════════════════════
#  execute()
# ═══════════════════════════════════════════════════════════════
class TestExecute:
    @pytest.mark.asyncio
    async def test_first_candidate_wins(self, core, clients):
        result = await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))

        assert result.provider == "gemini"
        assert result.text == "gemini: hi"
        assert len(clients["gemini"].calls) == 1
        assert clients["openai"].calls == []

    @pytest.mark.asyncio
    async def test_descriptor_model_is_used(self, core, clients):
        await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi", model="caller/model"))
        _, request = clients["gemini"].calls[0]
        assert request.model == "test/model-gemini"

    @pytest.mark.asyncio
    async def test_falls_back_to_third_candidate(self, core, clients):
        _fail(clients, "gemini", "openai")

        with patch.object(core.availability, "record_success", wraps=core.availability.record_success) as spy:
            result = await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))

        assert result.provider == "claude"
        spy.assert_called_once_with(Capability.TEXT, "claude")
        assert not core.availability.is_healthy(Capability.TEXT, "gemini")
        assert not core.availability.is_healthy(Capability.TEXT, "openai")

    @pytest.mark.asyncio
    async def test_all_fail_raises_with_attempt_trail(self, core, clients):
        _fail(clients, "gemini", "openai", "claude")

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))

        err = exc_info.value
        assert err.capability == "text"
        assert [a.provider_name for a in err.attempts] == ["gemini", "openai", "claude"]
        assert all(a.outcome is AttemptOutcome.FAILURE for a in err.attempts)
        assert err.errors == {
            "gemini": "gemini is down",
            "openai": "openai is down",
            "claude": "claude is down",
        }
        assert err.to_dict()[0] == {"provider": "gemini", "error": "gemini is down", "code": "503"}
        for name in ("gemini", "openai", "claude"):
            assert len(clients[name].calls) == 1

    @pytest.mark.asyncio
    async def test_no_candidates_raises_with_empty_trail(self, build_core, make_routes, fake_client):
        core = build_core(ProviderRegistry(make_routes(Capability.TEXT, "gemini")), {"gemini": fake_client("gemini")})

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await core.orchestrator.execute(Capability.VIDEO, VideoRequest(prompt="a cat"))
        assert exc_info.value.attempts == []

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, build_core, registry, clients):
        core = build_core(registry, clients, timeout_s=0.05)
        clients["gemini"].delay = 1.0

        result = await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))

        assert result.provider == "openai"
        record = core.availability.get(Capability.TEXT, "gemini")
        assert record.healthy is False
        assert "Timeout" in record.last_error

    @pytest.mark.asyncio
    async def test_timeout_error_in_trail(self, build_core, make_routes, fake_client):
        slow = fake_client("slow", delay=1.0)
        core = build_core(ProviderRegistry(make_routes(Capability.TEXT, "slow")), {"slow": slow}, timeout_s=0.05)

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))
        assert isinstance(exc_info.value.attempts[0].error, ProviderTimeoutError)

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_normalised(self, core, clients):
        clients["gemini"].fail = True
        clients["gemini"].error = RuntimeError("socket closed")

        result = await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))

        assert result.provider == "openai"
        assert core.availability.get(Capability.TEXT, "gemini").last_error == "socket closed"

    @pytest.mark.asyncio
    async def test_missing_client_is_a_failed_attempt(self, build_core, registry, clients):
        del clients["gemini"]
        core = build_core(registry, clients)

        result = await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))

        assert result.provider == "openai"
        assert "not configured" in core.availability.get(Capability.TEXT, "gemini").last_error

    @pytest.mark.asyncio
    async def test_next_call_skips_failed_provider(self, core, clients):
        clients["gemini"].fail = True
        await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="one"))
        clients["gemini"].fail = False

        result = await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="two"))

        assert result.provider == "openai"
        assert len(clients["gemini"].calls) == 1

    @pytest.mark.asyncio
    async def test_no_provider_retried_within_call(self, core, clients):
        _fail(clients, "gemini", "openai", "claude")
        with pytest.raises(AllProvidersExhaustedError):
            await core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi"))
        assert sum(len(c.calls) for c in clients.values()) == 3

    @pytest.mark.asyncio
    async def test_stream_capability_collects_chunks(self, core):
        result = await core.orchestrator.execute(Capability.TEXT_STREAM, TextRequest(prompt="hi"))
        assert result.text == "Hello"
        assert result.provider == "gemini"

    @pytest.mark.asyncio
    async def test_dispatches_media_capabilities(self, core):
        image = await core.orchestrator.execute("image", ImageRequest(prompt="a cat"))
        video = await core.orchestrator.execute("video", VideoRequest(prompt="a cat"))
        speech = await core.orchestrator.execute("speech", SpeechRequest(text="hello"))

        assert image.image_url == "https://imagen.test/image.png"
        assert video.provider == "googleVeo"
        assert speech.provider == "minimax"

    @pytest.mark.asyncio
    async def test_unsupported_capability_falls_through(self, build_core, make_routes, fake_client):
        registry = ProviderRegistry(make_routes(Capability.IMAGE, "textonly", "imagen"))
        core = build_core(registry, {"textonly": TextOnlyClient("textonly"), "imagen": fake_client("imagen")})

        result = await core.orchestrator.execute(Capability.IMAGE, ImageRequest(prompt="a cat"))

        assert result.provider == "imagen"
        assert "does not support image" in core.availability.get(Capability.IMAGE, "textonly").last_error

    @pytest.mark.asyncio
    async def test_invalid_capability(self, core):
        with pytest.raises(InvalidCapabilityError):
            await core.orchestrator.execute("hologram", TextRequest(prompt="hi"))

    @pytest.mark.asyncio
    async def test_cancellation_is_not_recorded(self, core, clients):
        clients["gemini"].delay = 0.5
        task = asyncio.create_task(core.orchestrator.execute(Capability.TEXT, TextRequest(prompt="hi")))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert core.availability.snapshot() == []
        assert clients["openai"].calls == []

    def test_per_capability_timeout(self, registry, clients):
        availability = AvailabilityStore()
        orchestrator = GenerationOrchestrator(
            CapabilityResolver(registry, availability),
            clients,
            availability,
            timeout_s=60,
            timeouts={Capability.VIDEO: 600},
        )
        assert orchestrator.timeout_for(Capability.TEXT) == 60
        assert orchestrator.timeout_for(Capability.VIDEO) == 600


# ═══════════════════════════════════════════════════════════════
#  open_stream()
# ═══════════════════════════════════════════════════════════════
class TestOpenStream:
    @pytest.mark.asyncio
    async def test_streams_from_first_healthy(self, core):
        stream = await core.orchestrator.open_stream(TextRequest(prompt="hi"))
        chunks = [chunk async for chunk in stream]

        assert [c.text for c in chunks] == ["Hel", "lo"]
        assert {c.provider for c in chunks} == {"gemini"}
        assert core.availability.get(Capability.TEXT_STREAM, "gemini").healthy

    @pytest.mark.asyncio
    async def test_falls_back_before_first_chunk(self, core, clients):
        clients["gemini"].fail = True

        stream = await core.orchestrator.open_stream(TextRequest(prompt="hi"))
        chunks = [chunk async for chunk in stream]

        assert {c.provider for c in chunks} == {"openai"}
        assert not core.availability.is_healthy(Capability.TEXT_STREAM, "gemini")

    @pytest.mark.asyncio
    async def test_all_streams_fail(self, core, clients):
        _fail(clients, "gemini", "openai")

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await core.orchestrator.open_stream(TextRequest(prompt="hi"))
        assert [a.provider_name for a in exc_info.value.attempts] == ["gemini", "openai"]

    @pytest.mark.asyncio
    async def test_mid_stream_failure_is_not_retried(self, core, clients):
        clients["gemini"].fail_after_chunks = 1

        stream = await core.orchestrator.open_stream(TextRequest(prompt="hi"))
        received = []
        with pytest.raises(ProviderCallError) as exc_info:
            async for chunk in stream:
                received.append(chunk.text)

        assert received == ["Hel"]
        assert exc_info.value.provider == "gemini"
        assert clients["openai"].calls == []
        assert not core.availability.is_healthy(Capability.TEXT_STREAM, "gemini")

    @pytest.mark.asyncio
    async def test_empty_stream(self, core, clients):
        clients["gemini"].chunks = []
        stream = await core.orchestrator.open_stream(TextRequest(prompt="hi"))
        assert [chunk async for chunk in stream] == []
