"""Provider client construction and the adapter/registry contract."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator

import structlog

from genhub.adapters.outbound.providers.anthropic import ClaudeClient
from genhub.adapters.outbound.providers.google import GeminiClient, GoogleVeoClient, ImagenClient
from genhub.adapters.outbound.providers.huggingface import HuggingFaceClient
from genhub.adapters.outbound.providers.openai import AzureOpenAIClient, OpenAIClient
from genhub.adapters.outbound.providers.replicate import ReplicateClient
from genhub.adapters.outbound.providers.speech import ElevenLabsClient, MiniMaxClient
from genhub.adapters.outbound.providers.video import HeyGenClient, SeedanceClient, WanClient
from genhub.config import Settings
from genhub.domain.enums import Capability
from genhub.domain.exceptions import ConfigurationError
from genhub.ports.outbound import ProviderClient
from genhub.shared.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)

PROVIDER_CLIENT_CLASSES: dict[str, type[ProviderClient]] = {
    "gemini": GeminiClient,
    "imagen": ImagenClient,
    "googleVeo": GoogleVeoClient,
    "openai": OpenAIClient,
    "azureOpenai": AzureOpenAIClient,
    "claude": ClaudeClient,
    "huggingface": HuggingFaceClient,
    "replicate": ReplicateClient,
    "seedance": SeedanceClient,
    "heygen": HeyGenClient,
    "wan": WanClient,
    "minimax": MiniMaxClient,
    "elevenlabs": ElevenLabsClient,
}


def provider_supports_capability(name: str, capability: Capability) -> bool:
    cls = PROVIDER_CLIENT_CLASSES.get(name)
    return cls is not None and cls.supports_capability(capability)


def verify_adapter_contract(registry: ProviderRegistry) -> None:
    """Every descriptor marked implemented must have a capable adapter."""
    violations = [
        f"{d.capability.value}:{d.name}"
        for d in registry.descriptors()
        if d.implemented and not provider_supports_capability(d.name, d.capability)
    ]
    if violations:
        raise ConfigurationError(
            "Providers marked implemented without adapter support: " + ", ".join(violations)
        )


class ProviderClientSet(Mapping[str, ProviderClient]):
    """Name → client mapping that owns the clients' lifetimes."""

    def __init__(self, clients: Mapping[str, ProviderClient] | None = None) -> None:
        self._clients = dict(clients or {})

    def __getitem__(self, name: str) -> ProviderClient:
        return self._clients[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    async def aclose(self) -> None:
        for name, client in self._clients.items():
            try:
                await client.aclose()
            except Exception as exc:  # noqa: BLE001
                logger.warning("provider_client_close_failed", provider=name, error=str(exc))


def build_provider_clients(settings: Settings) -> ProviderClientSet:
    """Instantiate adapters only for providers whose credentials are configured."""
    common: dict[str, Any] = {
        "timeout_s": settings.provider_timeout_seconds,
        "poll_interval_s": settings.video_poll_interval_seconds,
    }
    configured = settings.configured_providers()
    factories: dict[str, Any] = {
        "gemini": lambda: GeminiClient(api_key=settings.gemini_api_key, **common),
        "imagen": lambda: ImagenClient(api_key=settings.gemini_api_key, **common),
        "googleVeo": lambda: GoogleVeoClient(api_key=settings.gemini_api_key, **common),
        "openai": lambda: OpenAIClient(
            api_key=settings.openai_api_key, base_url=settings.openai_base_url, **common
        ),
        "azureOpenai": lambda: AzureOpenAIClient(
            api_key=settings.azure_openai_api_key,
            endpoint=settings.azure_openai_endpoint,
            deployment=settings.azure_openai_deployment,
            api_version=settings.azure_openai_api_version,
            **common,
        ),
        "claude": lambda: ClaudeClient(api_key=settings.anthropic_api_key, **common),
        "huggingface": lambda: HuggingFaceClient(api_key=settings.huggingface_api_key, **common),
        "replicate": lambda: ReplicateClient(api_key=settings.replicate_api_token, **common),
        "seedance": lambda: SeedanceClient(api_key=settings.seedance_api_key, **common),
        "heygen": lambda: HeyGenClient(api_key=settings.heygen_api_key, **common),
        "wan": lambda: WanClient(api_key=settings.wan_api_key, **common),
        "minimax": lambda: MiniMaxClient(api_key=settings.minimax_api_key, **common),
        "elevenlabs": lambda: ElevenLabsClient(api_key=settings.elevenlabs_api_key, **common),
    }

    clients = {name: factories[name]() for name, ok in configured.items() if ok and name in factories}
    logger.info(
        "provider_clients_built",
        configured=sorted(clients),
        missing=sorted(name for name, ok in configured.items() if not ok),
    )
    return ProviderClientSet(clients)
