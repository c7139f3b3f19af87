"""Generation orchestrator — the main entry-point for generation calls.

Walks the resolver's ordered candidates one at a time, bounds every
attempt with a timeout, records each outcome in the availability store,
and returns the first success.  When every candidate fails the caller
gets ``AllProvidersExhaustedError`` with the full attempt trail.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping

import structlog

from genhub.domain.entities import GenerationAttempt
from genhub.domain.enums import AttemptOutcome, Capability
from genhub.domain.exceptions import (
    AllProvidersExhaustedError,
    ProviderCallError,
    ProviderTimeoutError,
)
from genhub.ports.outbound import ProviderClient
from genhub.shared.observability.metrics import (
    PROVIDER_ATTEMPTS,
    PROVIDER_FALLBACKS,
    PROVIDER_LATENCY,
    PROVIDERS_EXHAUSTED,
)
from genhub.shared.providers.availability import AvailabilityStore
from genhub.shared.providers.registry import coerce_capability
from genhub.shared.providers.resolver import CapabilityResolver
from genhub.shared.providers.types import (
    GenerationRequest,
    GenerationResult,
    ProviderDescriptor,
    TextChunk,
    TextRequest,
    TextResult,
)

logger = structlog.get_logger(__name__)

_REQUEST_METHODS: dict[Capability, str] = {
    Capability.TEXT: "generate_text",
    Capability.IMAGE: "generate_image",
    Capability.VIDEO: "generate_video",
    Capability.SPEECH: "generate_speech",
}


def as_provider_error(provider: str, exc: BaseException, timeout_s: float) -> ProviderCallError:
    """Normalise any adapter failure into a ``ProviderCallError``."""
    if isinstance(exc, ProviderCallError):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        return ProviderTimeoutError(provider, timeout_s)
    return ProviderCallError(
        provider,
        str(exc) or type(exc).__name__,
        provider_code=type(exc).__name__,
    )


class GenerationOrchestrator:
    """Sequential fallback across the candidates of one capability.

    Usage::

        orchestrator = GenerationOrchestrator(resolver, clients, availability)
        result = await orchestrator.execute(Capability.TEXT, TextRequest("hi"))

    No provider is retried within a single call; health recorded here is
    what reorders candidates for the next call.
    """

    def __init__(
        self,
        resolver: CapabilityResolver,
        clients: Mapping[str, ProviderClient],
        availability: AvailabilityStore,
        *,
        timeout_s: float = 60.0,
        timeouts: Mapping[Capability, float] | None = None,
    ) -> None:
        self._resolver = resolver
        self._clients = clients
        self._availability = availability
        self._default_timeout = timeout_s
        self._timeouts = dict(timeouts or {})

    @property
    def resolver(self) -> CapabilityResolver:
        return self._resolver

    def timeout_for(self, capability: Capability) -> float:
        return self._timeouts.get(capability, self._default_timeout)

    # ── Main entry-point ─────────────────────────────────────
    async def execute(
        self, capability: Capability | str, request: GenerationRequest
    ) -> GenerationResult:
        """Return the first successful provider's result.

        Raises:
            InvalidCapabilityError: ``capability`` is not a known capability.
            AllProvidersExhaustedError: every candidate failed (or none exist).
        """
        cap = coerce_capability(capability)
        timeout_s = self.timeout_for(cap)
        attempts: list[GenerationAttempt] = []
        candidates = self._resolver.resolve(cap)

        for index, descriptor in enumerate(candidates):
            pid = descriptor.name
            log = logger.bind(capability=cap.value, provider=pid, attempt=index + 1)
            started_at = datetime.now(timezone.utc)
            start = time.monotonic()

            try:
                client = self._client_for(descriptor)
                result = await asyncio.wait_for(
                    self._call(client, cap, self._with_model(request, descriptor)),
                    timeout=timeout_s,
                )
            except Exception as exc:
                latency_ms = (time.monotonic() - start) * 1000
                error = as_provider_error(pid, exc, timeout_s)
                self._record_failure(cap, descriptor, error, latency_ms)
                attempts.append(
                    GenerationAttempt(pid, started_at, AttemptOutcome.FAILURE, error, latency_ms)
                )
                if isinstance(error, ProviderTimeoutError):
                    log.warning("provider_timeout", timeout_s=timeout_s)
                else:
                    log.warning(
                        "provider_request_failed",
                        error=error.message,
                        provider_code=error.provider_code,
                        latency_ms=round(latency_ms, 1),
                    )
                continue

            latency_ms = (time.monotonic() - start) * 1000
            self._record_success(cap, descriptor, latency_ms)
            attempts.append(
                GenerationAttempt(pid, started_at, AttemptOutcome.SUCCESS, None, latency_ms)
            )
            log.info("provider_request_success", latency_ms=round(latency_ms, 1))

            if index > 0:
                PROVIDER_FALLBACKS.labels(capability=cap.value, provider=pid).inc()
                logger.info(
                    "provider_failover_success",
                    capability=cap.value,
                    provider=pid,
                    attempts=len(attempts),
                    failed_providers=[a.provider_name for a in attempts if not a.succeeded],
                )
            return result

        raise self._exhausted(cap, attempts)

    # ── Streaming ────────────────────────────────────────────
    async def open_stream(self, request: TextRequest) -> AsyncIterator[TextChunk]:
        """Open a text stream, falling back until a provider yields its first chunk.

        Once a chunk has been delivered the provider is committed: a later
        error is recorded against it and surfaces as ``ProviderCallError``.
        """
        cap = Capability.TEXT_STREAM
        timeout_s = self.timeout_for(cap)
        attempts: list[GenerationAttempt] = []

        for index, descriptor in enumerate(self._resolver.resolve(cap)):
            pid = descriptor.name
            started_at = datetime.now(timezone.utc)
            start = time.monotonic()
            stream: AsyncIterator[TextChunk] | None = None

            try:
                client = self._client_for(descriptor)
                stream = client.stream_text(self._with_model(request, descriptor))
                first: TextChunk | None = await asyncio.wait_for(
                    _next_or_none(stream), timeout=timeout_s
                )
            except Exception as exc:
                latency_ms = (time.monotonic() - start) * 1000
                error = as_provider_error(pid, exc, timeout_s)
                await _close_quietly(stream)
                self._record_failure(cap, descriptor, error, latency_ms)
                attempts.append(
                    GenerationAttempt(pid, started_at, AttemptOutcome.FAILURE, error, latency_ms)
                )
                logger.warning(
                    "provider_stream_open_failed",
                    capability=cap.value,
                    provider=pid,
                    attempt=index + 1,
                    error=error.message,
                )
                continue

            latency_ms = (time.monotonic() - start) * 1000
            self._record_success(cap, descriptor, latency_ms)
            logger.info(
                "provider_stream_opened",
                provider=pid,
                attempt=index + 1,
                first_chunk_ms=round(latency_ms, 1),
            )
            if index > 0:
                PROVIDER_FALLBACKS.labels(capability=cap.value, provider=pid).inc()
            return self._relay(descriptor, stream, first)

        raise self._exhausted(cap, attempts)

    async def _relay(
        self,
        descriptor: ProviderDescriptor,
        stream: AsyncIterator[TextChunk],
        first: TextChunk | None,
    ) -> AsyncIterator[TextChunk]:
        cap = Capability.TEXT_STREAM
        try:
            if first is None:
                return
            yield first
            async for chunk in stream:
                yield chunk
        except Exception as exc:
            error = as_provider_error(descriptor.name, exc, self.timeout_for(cap))
            self._availability.record_failure(cap, descriptor.name, error.message)
            PROVIDER_ATTEMPTS.labels(
                capability=cap.value, provider=descriptor.name, outcome="failure"
            ).inc()
            logger.warning("provider_stream_interrupted", provider=descriptor.name, error=error.message)
            raise error from exc
        finally:
            await _close_quietly(stream)

    # ── Internals ────────────────────────────────────────────
    def _client_for(self, descriptor: ProviderDescriptor) -> ProviderClient:
        client = self._clients.get(descriptor.name)
        if client is None:
            raise ProviderCallError(
                descriptor.name,
                f"{descriptor.name} is not configured",
                provider_code="not_configured",
            )
        return client

    @staticmethod
    def _with_model(request: Any, descriptor: ProviderDescriptor) -> Any:
        return replace(request, model=descriptor.model)

    async def _call(
        self, client: ProviderClient, capability: Capability, request: Any
    ) -> GenerationResult:
        if capability is Capability.TEXT_STREAM:
            return await self._collect_stream(client, request)
        method = getattr(client, _REQUEST_METHODS[capability])
        return await method(request)

    @staticmethod
    async def _collect_stream(client: ProviderClient, request: TextRequest) -> TextResult:
        parts: list[str] = []
        model = request.model or ""
        async for chunk in client.stream_text(request):
            parts.append(chunk.text)
            model = chunk.model or model
        return TextResult(text="".join(parts), model=model, provider=client.name)

    def _record_success(
        self, cap: Capability, descriptor: ProviderDescriptor, latency_ms: float
    ) -> None:
        self._availability.record_success(cap, descriptor.name)
        PROVIDER_ATTEMPTS.labels(capability=cap.value, provider=descriptor.name, outcome="success").inc()
        PROVIDER_LATENCY.labels(capability=cap.value, provider=descriptor.name).observe(latency_ms / 1000)

    def _record_failure(
        self,
        cap: Capability,
        descriptor: ProviderDescriptor,
        error: ProviderCallError,
        latency_ms: float,
    ) -> None:
        self._availability.record_failure(cap, descriptor.name, error.message)
        PROVIDER_ATTEMPTS.labels(capability=cap.value, provider=descriptor.name, outcome="failure").inc()
        PROVIDER_LATENCY.labels(capability=cap.value, provider=descriptor.name).observe(latency_ms / 1000)

    @staticmethod
    def _exhausted(cap: Capability, attempts: list[GenerationAttempt]) -> AllProvidersExhaustedError:
        PROVIDERS_EXHAUSTED.labels(capability=cap.value).inc()
        logger.error(
            "all_providers_exhausted",
            capability=cap.value,
            errors={a.provider_name: a.error.message for a in attempts if a.error},
        )
        return AllProvidersExhaustedError(cap.value, attempts)


async def _next_or_none(stream: AsyncIterator[TextChunk]) -> TextChunk | None:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def _close_quietly(stream: Any) -> None:
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:  # noqa: BLE001
        logger.debug("stream_close_failed", exc_info=True)
