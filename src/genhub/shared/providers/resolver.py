"""Capability resolver — orders the candidates for the next attempt.

Filters the registry down to implemented (and, when known, configured)
providers, then puts healthy providers ahead of unhealthy ones while
keeping each group in priority order.  Health is advisory: when every
candidate is unhealthy the full priority-ordered list is still returned
(fail-open) so stale health data never blocks a capability outright.
"""

from __future__ import annotations

from typing import Callable

import structlog

from genhub.domain.enums import Capability
from genhub.shared.providers.availability import AvailabilityStore
from genhub.shared.providers.registry import ProviderRegistry, coerce_capability
from genhub.shared.providers.types import ProviderDescriptor

logger = structlog.get_logger(__name__)


class CapabilityResolver:
    """Selects the ordered provider candidates for a capability."""

    def __init__(
        self,
        registry: ProviderRegistry,
        availability: AvailabilityStore,
        *,
        configured: Callable[[str], bool] | None = None,
    ) -> None:
        self._registry = registry
        self._availability = availability
        self._configured = configured

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def resolve(self, capability: Capability | str) -> list[ProviderDescriptor]:
        """Ordered candidates: healthy first, then unhealthy, priority within each."""
        cap = coerce_capability(capability)
        candidates = self._filter_candidates(cap)
        if not candidates:
            logger.warning("no_available_providers", capability=cap.value)
            return []

        healthy: list[ProviderDescriptor] = []
        unhealthy: list[ProviderDescriptor] = []
        for d in candidates:
            if self._availability.is_healthy(cap, d.name):
                healthy.append(d)
            else:
                unhealthy.append(d)

        if not healthy:
            logger.warning(
                "all_candidates_unhealthy_fail_open",
                capability=cap.value,
                candidates=[d.name for d in candidates],
            )
        elif unhealthy:
            logger.debug(
                "unhealthy_providers_demoted",
                capability=cap.value,
                demoted=[d.name for d in unhealthy],
            )
        return healthy + unhealthy

    def resolve_names(self, capability: Capability | str) -> list[str]:
        return [d.name for d in self.resolve(capability)]

    def primary(self, capability: Capability | str) -> ProviderDescriptor | None:
        """Highest-priority usable candidate regardless of health."""
        candidates = self._filter_candidates(coerce_capability(capability))
        return candidates[0] if candidates else None

    # ── Filtering ────────────────────────────────────────────
    def _filter_candidates(self, capability: Capability) -> list[ProviderDescriptor]:
        candidates: list[ProviderDescriptor] = []

        for descriptor in self._registry.providers_for(capability):
            # Skip roadmap entries without an adapter
            if not descriptor.implemented:
                continue

            # Skip providers without credentials
            if self._configured is not None and not self._configured(descriptor.name):
                logger.debug("provider_not_configured", provider=descriptor.name)
                continue

            candidates.append(descriptor)

        return candidates
