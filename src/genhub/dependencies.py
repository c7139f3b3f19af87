"""Dependency injection container — wires adapters to ports.

One ``Container`` is built per process (API app or worker) and passed
explicitly; FastAPI's ``Depends()`` factories read it from ``app.state``.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping

import structlog
from fastapi import Depends, Request

from genhub.adapters.outbound.providers import (
    ProviderClientSet,
    build_provider_clients,
    verify_adapter_contract,
)
from genhub.adapters.outbound.queue import RedisJobQueue
from genhub.application.services import TaskSubmitter
from genhub.application.tasks import TaskRegistry, build_default_tasks
from genhub.config import Settings, get_settings
from genhub.domain.enums import Capability
from genhub.ports.outbound import JobQueuePort, ProviderClient
from genhub.shared.providers import (
    AvailabilityStore,
    CapabilityResolver,
    GenerationOrchestrator,
    HealthCheckScheduler,
    ProviderRegistry,
    build_default_registry,
)

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Container ────────────────────────────────────────────────
@dataclass
class Container:
    settings: Settings
    registry: ProviderRegistry
    availability: AvailabilityStore
    clients: ProviderClientSet
    resolver: CapabilityResolver
    orchestrator: GenerationOrchestrator
    health_checks: HealthCheckScheduler
    tasks: TaskRegistry
    submitter: TaskSubmitter
    queue: JobQueuePort | None = None

    async def aclose(self) -> None:
        await self.clients.aclose()
        if self.queue is not None:
            try:
                await self.queue.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("job_queue_close_failed", error=str(exc))


def build_container(
    settings: Settings | None = None,
    *,
    registry: ProviderRegistry | None = None,
    clients: Mapping[str, ProviderClient] | None = None,
    queue: JobQueuePort | None = None,
) -> Container:
    """Assemble the orchestration core for one process.

    Passing ``clients``/``queue``/``registry`` replaces the settings-derived
    defaults (tests, embedding).  The adapter contract is only enforced for
    the built-in routing table.
    """
    settings = settings or get_cached_settings()

    if registry is None:
        registry = build_default_registry(settings)
        verify_adapter_contract(registry)
        configured = [name for name, ok in settings.configured_providers().items() if ok]
        unsupported = registry.unsupported_configured_providers(configured)
        if unsupported:
            logger.warning("configured_providers_without_adapter", providers=unsupported)

    client_set = (
        clients if isinstance(clients, ProviderClientSet)
        else ProviderClientSet(clients) if clients is not None
        else build_provider_clients(settings)
    )

    if queue is None and settings.queue_configured:
        queue = RedisJobQueue(
            settings.redis_url,
            queue_name=settings.job_queue_name,
            max_connections=settings.redis_max_connections,
            default_max_attempts=settings.job_max_attempts,
            default_backoff_seconds=settings.job_backoff_seconds,
            lease_seconds=settings.job_lease_seconds,
        )

    availability = AvailabilityStore(failure_threshold=settings.availability_failure_threshold)
    resolver = CapabilityResolver(registry, availability, configured=client_set.__contains__)
    orchestrator = GenerationOrchestrator(
        resolver,
        client_set,
        availability,
        timeout_s=settings.provider_timeout_seconds,
        timeouts={Capability.VIDEO: settings.video_timeout_seconds},
    )
    return Container(
        settings=settings,
        registry=registry,
        availability=availability,
        clients=client_set,
        resolver=resolver,
        orchestrator=orchestrator,
        health_checks=HealthCheckScheduler(
            resolver,
            client_set,
            availability,
            timeout_s=settings.health_check_timeout_seconds,
            timeouts={Capability.VIDEO: settings.video_timeout_seconds},
        ),
        tasks=build_default_tasks(orchestrator),
        submitter=TaskSubmitter(queue),
        queue=queue,
    )


# ── FastAPI dependencies ─────────────────────────────────────
def get_container(request: Request) -> Container:
    return request.app.state.container  # type: ignore[no-any-return]


def get_orchestrator(container: Container = Depends(get_container)) -> GenerationOrchestrator:
    return container.orchestrator


def get_submitter(container: Container = Depends(get_container)) -> TaskSubmitter:
    return container.submitter


def get_health_checks(container: Container = Depends(get_container)) -> HealthCheckScheduler:
    return container.health_checks
