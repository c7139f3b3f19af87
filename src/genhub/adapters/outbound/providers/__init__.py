"""Outbound provider adapters — one ``ProviderClient`` per external AI vendor."""

from genhub.adapters.outbound.providers.factory import (
    PROVIDER_CLIENT_CLASSES,
    ProviderClientSet,
    build_provider_clients,
    provider_supports_capability,
    verify_adapter_contract,
)

__all__ = [
    "PROVIDER_CLIENT_CLASSES",
    "ProviderClientSet",
    "build_provider_clients",
    "provider_supports_capability",
    "verify_adapter_contract",
]
