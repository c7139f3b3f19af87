"""Prometheus metrics for the generation orchestrator."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Gauge


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Provider metrics ─────────────────────────────────────────
PROVIDER_ATTEMPTS = Counter(
    "genhub_provider_attempts_total",
    "Provider attempts made by the orchestrator",
    ["capability", "provider", "outcome"],
)

PROVIDER_LATENCY = Histogram(
    "genhub_provider_latency_seconds",
    "Latency of a single provider attempt",
    ["capability", "provider"],
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0),
)

PROVIDER_FALLBACKS = Counter(
    "genhub_provider_fallbacks_total",
    "Calls that succeeded on a provider other than the first candidate",
    ["capability", "provider"],
)

PROVIDERS_EXHAUSTED = Counter(
    "genhub_providers_exhausted_total",
    "Calls where every candidate provider failed",
    ["capability"],
)

PROVIDER_HEALTHY = Gauge(
    "genhub_provider_healthy",
    "1 if the provider is currently considered healthy for the capability",
    ["capability", "provider"],
)

# ── Health check metrics ─────────────────────────────────────
HEALTH_CHECK_RUNS = Counter(
    "genhub_health_check_runs_total",
    "Health check runs",
)

HEALTH_CHECK_PROBES = Counter(
    "genhub_health_check_probes_total",
    "Individual health probes",
    ["capability", "provider", "result"],  # healthy / unhealthy / skipped
)

# ── Job metrics ──────────────────────────────────────────────
JOBS_SUBMITTED = Counter(
    "genhub_jobs_submitted_total",
    "Jobs accepted by the queue",
    ["task_name"],
)

JOBS_PROCESSED = Counter(
    "genhub_jobs_processed_total",
    "Jobs processed by workers",
    ["task_name", "status"],  # completed / retried / failed
)

JOB_DURATION = Histogram(
    "genhub_job_duration_seconds",
    "Handler execution time per job",
    ["task_name"],
    buckets=(0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0),
)

WORKER_ACTIVE_JOBS = Gauge(
    "genhub_worker_active_jobs",
    "Jobs currently being processed by this worker",
)
