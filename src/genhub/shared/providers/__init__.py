"""Multi-provider generation orchestration.

Provides the capability routing table, live availability tracking,
candidate resolution, sequential fallback and scheduled health checks
for every outbound AI provider.
"""

from genhub.shared.providers.types import (
    AvailabilityRecord,
    HealthCheckReport,
    HealthCheckResult,
    ProviderDescriptor,
)
from genhub.shared.providers.registry import (
    ProviderRegistry,
    build_default_registry,
    coerce_capability,
)
from genhub.shared.providers.availability import AvailabilityStore
from genhub.shared.providers.resolver import CapabilityResolver
from genhub.shared.providers.orchestrator import GenerationOrchestrator
from genhub.shared.providers.health_check import HealthCheckScheduler

__all__ = [
    "AvailabilityRecord",
    "AvailabilityStore",
    "CapabilityResolver",
    "GenerationOrchestrator",
    "HealthCheckReport",
    "HealthCheckResult",
    "HealthCheckScheduler",
    "ProviderDescriptor",
    "ProviderRegistry",
    "build_default_registry",
    "coerce_capability",
]
