"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from genhub.domain.exceptions import (
    AllProvidersExhaustedError,
    AuthenticationError,
    DomainError,
    InvalidCapabilityError,
    JobSubmissionError,
    ProviderCallError,
)

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(AllProvidersExhaustedError)
    async def handle_exhausted(request: Request, exc: AllProvidersExhaustedError) -> ORJSONResponse:
        logger.error("providers_exhausted_http", capability=exc.capability)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message, "details": exc.to_dict()},
        )

    @app.exception_handler(ProviderCallError)
    async def handle_provider(request: Request, exc: ProviderCallError) -> ORJSONResponse:
        logger.error("provider_error_http", provider=exc.provider, message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": str(exc), "details": exc.to_dict()},
        )

    @app.exception_handler(InvalidCapabilityError)
    async def handle_capability(request: Request, exc: InvalidCapabilityError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authn(request: Request, exc: AuthenticationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=401,
            content={"code": exc.code, "message": exc.message},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(JobSubmissionError)
    async def handle_submission(request: Request, exc: JobSubmissionError) -> ORJSONResponse:
        logger.error("job_submission_http", task_name=exc.task_name, message=exc.message)
        return ORJSONResponse(
            status_code=503,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
