"""Scheduled provider health checks.

Probes, per capability, the candidate the resolver would try first and
(when it differs) the priority-primary provider so a provider demoted by
earlier failures can recover.  Each capability runs in its own failure
boundary; the run as a whole always reports success.

A probe uses the adapter's own liveness check when it has one.  Otherwise
it sends a minimal generation under that capability's call timeout, so a
slow video vendor is not marked down by the shorter health timeout.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping

import structlog

from genhub.domain.enums import Capability
from genhub.ports.outbound import ProviderClient
from genhub.shared.observability.metrics import HEALTH_CHECK_PROBES, HEALTH_CHECK_RUNS, PROVIDER_HEALTHY
from genhub.shared.providers.availability import AvailabilityStore
from genhub.shared.providers.orchestrator import as_provider_error
from genhub.shared.providers.resolver import CapabilityResolver
from genhub.shared.providers.types import (
    HealthCheckReport,
    HealthCheckResult,
    ImageRequest,
    ProviderDescriptor,
    SpeechRequest,
    TextRequest,
    VideoRequest,
)

logger = structlog.get_logger(__name__)

# Smallest request that still exercises the real endpoint.
PROBE_REQUESTS: dict[Capability, Any] = {
    Capability.TEXT: TextRequest(prompt="Reply with OK.", max_tokens=5, temperature=0.0),
    Capability.TEXT_STREAM: TextRequest(prompt="Reply with OK.", max_tokens=5, temperature=0.0),
    Capability.IMAGE: ImageRequest(prompt="a single blue square"),
    # Shortest clip vendors accept (Veo: 4-8 s)
    Capability.VIDEO: VideoRequest(prompt="a blue square", duration_seconds=4),
    Capability.SPEECH: SpeechRequest(text="OK"),
}


_PROBE_METHODS: dict[Capability, str] = {
    Capability.TEXT: "generate_text",
    Capability.IMAGE: "generate_image",
    Capability.VIDEO: "generate_video",
    Capability.SPEECH: "generate_speech",
}


class HealthCheckScheduler:
    """Runs one health-check pass across every routed capability."""

    def __init__(
        self,
        resolver: CapabilityResolver,
        clients: Mapping[str, ProviderClient],
        availability: AvailabilityStore,
        *,
        timeout_s: float = 30.0,
        timeouts: Mapping[Capability, float] | None = None,
    ) -> None:
        self._resolver = resolver
        self._clients = clients
        self._availability = availability
        self._timeout_s = timeout_s
        self._timeouts = dict(timeouts or {})

    async def run_health_checks(self) -> HealthCheckReport:
        report = HealthCheckReport(started_at=datetime.now(timezone.utc))
        HEALTH_CHECK_RUNS.inc()
        logger.info("health_check_started")

        capabilities = self._resolver.registry.capabilities()
        outcomes = await asyncio.gather(
            *(self._check_capability(cap) for cap in capabilities),
            return_exceptions=True,
        )
        for cap, outcome in zip(capabilities, outcomes):
            if isinstance(outcome, BaseException):
                # Failure boundary: one capability never breaks the run
                logger.error("health_check_capability_crashed", capability=cap.value, error=str(outcome))
                report.results.append(
                    HealthCheckResult(cap, None, None, error=str(outcome) or type(outcome).__name__)
                )
            else:
                report.results.extend(outcome)

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "health_check_completed",
            probes=len(report.results),
            unhealthy=[f"{r.capability.value}:{r.provider}" for r in report.results if r.healthy is False],
        )
        return report

    async def _check_capability(self, cap: Capability) -> list[HealthCheckResult]:
        targets: list[ProviderDescriptor] = []
        candidates = self._resolver.resolve(cap)
        if candidates:
            targets.append(candidates[0])
        primary = self._resolver.primary(cap)
        if primary is not None and primary not in targets:
            targets.append(primary)

        if not targets:
            HEALTH_CHECK_PROBES.labels(capability=cap.value, provider="none", result="skipped").inc()
            return [HealthCheckResult(cap, None, None, error="no candidate provider", skipped=True)]

        return [await self._probe(cap, d) for d in targets]

    async def _probe(self, cap: Capability, descriptor: ProviderDescriptor) -> HealthCheckResult:
        pid = descriptor.name
        client = self._clients.get(pid)
        if client is None:
            HEALTH_CHECK_PROBES.labels(capability=cap.value, provider=pid, result="skipped").inc()
            return HealthCheckResult(cap, pid, None, error="not configured", skipped=True)

        timeout_s = self._timeout_s
        start = time.monotonic()
        try:
            probed = await asyncio.wait_for(client.probe(cap, descriptor.model), timeout=timeout_s)
            if not probed:
                # No cheap check: a minimal generation, bounded like a real call
                timeout_s = self._timeouts.get(cap, self._timeout_s)
                await asyncio.wait_for(self._smoke(client, cap, descriptor), timeout=timeout_s)
        except Exception as exc:
            duration_ms = (time.monotonic() - start) * 1000
            error = as_provider_error(pid, exc, timeout_s)
            self._availability.record_failure(cap, pid, error.message)
            self._publish(cap, pid)
            HEALTH_CHECK_PROBES.labels(capability=cap.value, provider=pid, result="unhealthy").inc()
            logger.warning("health_probe_failed", capability=cap.value, provider=pid, error=error.message)
            return HealthCheckResult(cap, pid, False, error=error.message, duration_ms=round(duration_ms, 1))

        duration_ms = (time.monotonic() - start) * 1000
        self._availability.record_success(cap, pid)
        self._publish(cap, pid)
        HEALTH_CHECK_PROBES.labels(capability=cap.value, provider=pid, result="healthy").inc()
        logger.debug("health_probe_ok", capability=cap.value, provider=pid, duration_ms=round(duration_ms, 1))
        return HealthCheckResult(cap, pid, True, duration_ms=round(duration_ms, 1))

    @staticmethod
    async def _smoke(client: ProviderClient, cap: Capability, descriptor: ProviderDescriptor) -> None:
        request = replace(PROBE_REQUESTS[cap], model=descriptor.model)
        if cap is Capability.TEXT_STREAM:
            stream = client.stream_text(request)
            try:
                await stream.__anext__()
            except StopAsyncIteration:
                pass
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()
            return
        await getattr(client, _PROBE_METHODS[cap])(request)

    def _publish(self, cap: Capability, pid: str) -> None:
        healthy = self._availability.is_healthy(cap, pid)
        PROVIDER_HEALTHY.labels(capability=cap.value, provider=pid).set(1 if healthy else 0)
