"""Worker process entry-point: ``python -m genhub.worker`` / ``genhub-worker``.

Runs the job worker against the durable queue until SIGTERM/SIGINT, then
drains in-flight jobs and releases connections.  Exits with status 1 when
no queue backend is configured.
"""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog

from genhub.application.worker import JobWorker
from genhub.config import Settings, get_settings
from genhub.dependencies import Container, build_container
from genhub.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


def build_worker(container: Container) -> JobWorker:
    if container.queue is None:
        raise RuntimeError("REDIS_URL is not configured")
    settings = container.settings
    return JobWorker(
        container.queue,
        container.tasks,
        concurrency=settings.worker_concurrency,
        poll_timeout_s=settings.worker_poll_timeout_seconds,
    )


async def serve(container: Container) -> None:
    worker = build_worker(container)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except NotImplementedError:
            # Windows event loops cannot install signal handlers
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(worker.stop))

    try:
        await worker.run()
    finally:
        await container.aclose()


def main(settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_logs=settings.is_production)

    if not settings.queue_configured:
        logger.error("worker_not_started", reason="REDIS_URL is not configured")
        return 1

    container = build_container(settings)
    logger.info("worker_process_starting", queue=settings.job_queue_name, providers=sorted(container.clients))
    asyncio.run(serve(container))
    return 0


if __name__ == "__main__":
    sys.exit(main())
