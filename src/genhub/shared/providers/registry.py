"""Provider registry — capability-indexed, priority-ordered routing table.

Single source of truth for which providers serve which capability, in
which order, with which model.  Pure configuration lookup: no I/O and no
mutable state after construction.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Mapping

from genhub.config import Settings
from genhub.domain.enums import Capability
from genhub.domain.exceptions import ConfigurationError, InvalidCapabilityError
from genhub.shared.providers.types import ProviderDescriptor


def coerce_capability(capability: Capability | str) -> Capability:
    """Map a capability key onto the closed enum or fail loudly."""
    if isinstance(capability, Capability):
        return capability
    try:
        return Capability(capability)
    except ValueError:
        raise InvalidCapabilityError(capability) from None


class ProviderRegistry:
    """Immutable catalogue of provider descriptors."""

    def __init__(
        self,
        descriptors: Iterable[ProviderDescriptor],
        *,
        model_constants: Mapping[str, str] | None = None,
    ) -> None:
        by_capability: dict[Capability, list[ProviderDescriptor]] = defaultdict(list)
        for d in descriptors:
            by_capability[d.capability].append(d)

        for capability, entries in by_capability.items():
            priorities = [d.priority for d in entries]
            if len(priorities) != len(set(priorities)):
                raise ConfigurationError(
                    f"Duplicate provider priority for capability {capability.value!r}: "
                    f"{sorted(priorities)}"
                )
            names = [d.name for d in entries]
            if len(names) != len(set(names)):
                raise ConfigurationError(
                    f"Provider listed twice for capability {capability.value!r}"
                )

        self._by_capability: dict[Capability, tuple[ProviderDescriptor, ...]] = {
            cap: tuple(sorted(entries, key=lambda d: d.priority))
            for cap, entries in by_capability.items()
        }
        self._model_constants = dict(model_constants or {})

    def providers_for(self, capability: Capability | str) -> list[ProviderDescriptor]:
        """Descriptors for a capability, ascending by priority."""
        cap = coerce_capability(capability)
        return list(self._by_capability.get(cap, ()))

    def model_constants(self) -> dict[str, str]:
        return dict(self._model_constants)

    def capabilities(self) -> list[Capability]:
        """Capabilities in declaration order of the enum."""
        return [c for c in Capability if c in self._by_capability]

    def descriptors(self) -> list[ProviderDescriptor]:
        return [d for cap in self.capabilities() for d in self._by_capability[cap]]

    def provider_names(self) -> set[str]:
        return {d.name for d in self.descriptors()}

    def unsupported_configured_providers(self, configured: Iterable[str]) -> list[str]:
        """Configured providers that are known but implemented for no capability."""
        known = self.provider_names()
        implemented = {d.name for d in self.descriptors() if d.implemented}
        return sorted(
            name for name in set(configured) if name in known and name not in implemented
        )

    def export(self) -> list[dict]:  # type: ignore[type-arg]
        """Read-only routing export used by the API and the doc generator."""
        return [
            {
                "capability": cap.value,
                "providers": [d.to_dict() for d in self.providers_for(cap)],
            }
            for cap in self.capabilities()
        ]


# ═══════════════════════════════════════════════════════════════
#  Default routing table
# ═══════════════════════════════════════════════════════════════
_PLACEHOLDER_MODEL = "unassigned"


def default_model_constants(settings: Settings) -> dict[str, str]:
    return {
        "GEMINI_TEXT_MODEL": settings.gemini_text_model,
        "GEMINI_IMAGE_MODEL": settings.gemini_image_model,
        "IMAGEN_IMAGE_MODEL": settings.imagen_image_model,
        "GEMINI_VIDEO_MODEL": settings.gemini_video_model,
        "CLAUDE_TEXT_MODEL": settings.claude_text_model,
    }


def build_default_registry(settings: Settings) -> ProviderRegistry:
    """Production routing table.  Unimplemented entries document the roadmap."""
    mc = default_model_constants(settings)
    text, stream = Capability.TEXT, Capability.TEXT_STREAM
    image, video, speech = Capability.IMAGE, Capability.VIDEO, Capability.SPEECH
    todo = _PLACEHOLDER_MODEL

    def d(name: str, cap: Capability, prio: int, model: str, impl: bool = True) -> ProviderDescriptor:
        return ProviderDescriptor(name=name, capability=cap, priority=prio, model=model, implemented=impl)

    return ProviderRegistry(
        [
            # Text
            d("gemini", text, 1, mc["GEMINI_TEXT_MODEL"]),
            d("openai", text, 2, settings.openai_text_model),
            d("azureOpenai", text, 3, settings.openai_text_model),
            d("claude", text, 4, mc["CLAUDE_TEXT_MODEL"]),
            d("deepseek", text, 5, todo, False),
            d("grok", text, 6, todo, False),
            d("qwen", text, 7, todo, False),
            d("perplexity", text, 8, todo, False),
            d("openrouter", text, 9, todo, False),
            d("huggingface", text, 10, settings.huggingface_text_model),
            # Streaming text (same order, must support stream_text)
            d("gemini", stream, 1, mc["GEMINI_TEXT_MODEL"]),
            d("openai", stream, 2, settings.openai_text_model),
            d("azureOpenai", stream, 3, settings.openai_text_model),
            d("claude", stream, 4, mc["CLAUDE_TEXT_MODEL"], False),
            # Image
            d("imagen", image, 1, mc["IMAGEN_IMAGE_MODEL"]),
            d("stableDiffusion", image, 2, todo, False),
            d("replicate", image, 3, settings.replicate_image_model),
            d("gemini", image, 4, mc["GEMINI_IMAGE_MODEL"]),
            d("dreamstudio", image, 5, todo, False),
            d("midjourney", image, 6, todo, False),
            d("modelslab", image, 7, todo, False),
            # Video
            d("googleVeo", video, 1, mc["GEMINI_VIDEO_MODEL"]),
            d("seedance", video, 2, "seedance/seedance-1-lite"),
            d("kling", video, 3, todo, False),
            d("heygen", video, 4, "heygen/avatar-v2"),
            d("wan", video, 5, "wan/wan2.1-t2v"),
            d("modelscope", video, 6, todo, False),
            d("stableVideo", video, 7, todo, False),
            d("animateDiff", video, 8, todo, False),
            d("videoFusion", video, 9, todo, False),
            # Speech
            d("minimax", speech, 1, settings.minimax_speech_model),
            d("elevenlabs", speech, 2, settings.elevenlabs_speech_model),
            d("gemini", speech, 3, settings.gemini_tts_model),
            d("azureTts", speech, 4, todo, False),
            d("myshell", speech, 5, todo, False),
            d("coqui", speech, 6, todo, False),
        ],
        model_constants=mc,
    )
