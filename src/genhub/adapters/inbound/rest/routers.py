"""Health, Providers, Generation, Jobs, Cron — REST routers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, AsyncIterator

import orjson
from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from fastapi.responses import ORJSONResponse, StreamingResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from genhub.application.dtos import (
    CandidatesResponse,
    GenerationResponse,
    HealthResponse,
    ImageGenerationRequest,
    JobResponse,
    ProviderMapResponse,
    SpeechGenerationRequest,
    SubmitJobRequest,
    SubmitJobResponse,
    TextGenerationRequest,
    VideoGenerationRequest,
    result_to_dict,
)
from genhub.application.services import JobOptions, TaskSubmitter
from genhub.dependencies import (
    Container,
    get_container,
    get_health_checks,
    get_orchestrator,
    get_submitter,
)
from genhub.domain.enums import Capability
from genhub.domain.exceptions import ProviderCallError, UnknownTaskTypeError
from genhub.shared.providers import GenerationOrchestrator, HealthCheckScheduler, coerce_capability
from genhub.shared.providers.types import GenerationResult, TextChunk
from genhub.shared.security import require_bearer_secret


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(container: Container = Depends(get_container)) -> ORJSONResponse:
    settings = container.settings
    services: dict[str, str] = {"providers": f"{len(container.clients)} configured"}

    overall = "ok"
    if container.queue is None:
        services["queue"] = "not_configured"
    elif await container.queue.health_check():
        services["queue"] = "connected"
    else:
        services["queue"] = "disconnected"
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        environment=settings.app_env.value,
        services=services,
    )
    return ORJSONResponse(
        content=body.model_dump(),
        status_code=200 if overall == "ok" else 503,
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Providers"])


@providers_router.get("", response_model=ProviderMapResponse)
async def provider_map(container: Container = Depends(get_container)) -> dict[str, Any]:
    """Routing table: every capability's providers in priority order."""
    registry = container.registry
    return {
        "generated_at": datetime.now(timezone.utc),
        "model_constants": registry.model_constants(),
        "capabilities": registry.export(),
    }


@providers_router.get("/availability")
async def provider_availability(container: Container = Depends(get_container)) -> list[dict[str, Any]]:
    return [record.to_dict() for record in container.availability.snapshot()]


@providers_router.get("/{capability}/candidates", response_model=CandidatesResponse)
async def provider_candidates(
    capability: str,
    container: Container = Depends(get_container),
) -> CandidatesResponse:
    cap = coerce_capability(capability)
    return CandidatesResponse(capability=cap.value, candidates=container.resolver.resolve_names(cap))


@providers_router.post("/{capability}/{provider}/reset")
async def reset_provider(
    capability: str,
    provider: str,
    authorization: str | None = Header(None),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    """Admin: forget observed failures for one provider."""
    require_bearer_secret(authorization, container.settings.cron_secret)
    cap = coerce_capability(capability)
    if provider not in {d.name for d in container.registry.providers_for(cap)}:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider {provider!r} is not routed for {cap.value}",
        )
    container.availability.reset(cap, provider)
    return {"status": "reset", "capability": cap.value, "provider": provider}


# ═══════════════════════════════════════════════════════════════
#  Generation
# ═══════════════════════════════════════════════════════════════
generate_router = APIRouter(prefix="/generate", tags=["Generation"])


def _generation_response(capability: Capability, result: GenerationResult) -> GenerationResponse:
    return GenerationResponse(
        capability=capability.value,
        provider=result.provider,
        model=result.model,
        result=result_to_dict(result),
    )


@generate_router.post("/text", response_model=GenerationResponse)
async def generate_text(
    body: TextGenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationResponse:
    result = await orchestrator.execute(Capability.TEXT, body.to_domain())
    return _generation_response(Capability.TEXT, result)


@generate_router.post("/image", response_model=GenerationResponse)
async def generate_image(
    body: ImageGenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationResponse:
    result = await orchestrator.execute(Capability.IMAGE, body.to_domain())
    return _generation_response(Capability.IMAGE, result)


@generate_router.post("/video", response_model=GenerationResponse)
async def generate_video(
    body: VideoGenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationResponse:
    result = await orchestrator.execute(Capability.VIDEO, body.to_domain())
    return _generation_response(Capability.VIDEO, result)


@generate_router.post("/speech", response_model=GenerationResponse)
async def generate_speech(
    body: SpeechGenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationResponse:
    result = await orchestrator.execute(Capability.SPEECH, body.to_domain())
    return _generation_response(Capability.SPEECH, result)


@generate_router.post("/text/stream")
async def stream_text(
    body: TextGenerationRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Server-sent events; provider fallback happens before the first byte."""
    stream = await orchestrator.open_stream(body.to_domain())

    async def events(chunks: AsyncIterator[TextChunk]) -> AsyncIterator[bytes]:
        try:
            async for chunk in chunks:
                payload = {"text": chunk.text, "provider": chunk.provider, "model": chunk.model}
                yield b"data: " + orjson.dumps(payload) + b"\n\n"
        except ProviderCallError as exc:
            yield b"event: error\ndata: " + orjson.dumps(exc.to_dict()) + b"\n\n"
            return
        yield b"data: [DONE]\n\n"

    return StreamingResponse(events(stream), media_type="text/event-stream")


# ═══════════════════════════════════════════════════════════════
#  Jobs
# ═══════════════════════════════════════════════════════════════
jobs_router = APIRouter(prefix="/jobs", tags=["Jobs"])


@jobs_router.post("", response_model=SubmitJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_job(
    body: SubmitJobRequest,
    response: Response,
    container: Container = Depends(get_container),
    submitter: TaskSubmitter = Depends(get_submitter),
) -> SubmitJobResponse:
    if body.task_name not in container.tasks:
        raise UnknownTaskTypeError(body.task_name)
    job_id = await submitter.submit(
        body.task_name,
        body.payload,
        JobOptions(max_attempts=body.max_attempts, delay_seconds=body.delay_seconds),
    )
    if job_id is None:
        response.status_code = status.HTTP_200_OK
    return SubmitJobResponse(job_id=job_id, queued=job_id is not None)


@jobs_router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    submitter: TaskSubmitter = Depends(get_submitter),
) -> JobResponse:
    job = await submitter.status(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobResponse(
        id=job.id,
        task_name=job.task_name,
        status=job.status.value,
        attempt_count=job.attempt_count,
        max_attempts=job.max_attempts,
        finished=job.status.is_terminal,
        result=job.result,
        error=job.error,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        next_run_at=job.next_run_at,
    )


# ═══════════════════════════════════════════════════════════════
#  Scheduled triggers
# ═══════════════════════════════════════════════════════════════
cron_router = APIRouter(prefix="/cron", tags=["Cron"])


@cron_router.post("/provider-health-check")
async def provider_health_check(
    authorization: str | None = Header(None),
    container: Container = Depends(get_container),
    health_checks: HealthCheckScheduler = Depends(get_health_checks),
) -> dict[str, Any]:
    """Probe providers and refresh availability.  Always reports success."""
    require_bearer_secret(authorization, container.settings.cron_secret)
    report = await health_checks.run_health_checks()
    return report.to_dict()
