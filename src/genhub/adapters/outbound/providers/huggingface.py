"""Hugging Face Inference API adapter (text generation)."""

from __future__ import annotations

from typing import Any

from genhub.adapters.outbound.providers.base import HttpProviderClient, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import TextRequest, TextResult

HF_INFERENCE_BASE = "https://api-inference.huggingface.co/models"


class HuggingFaceClient(HttpProviderClient):
    capabilities = frozenset({Capability.TEXT})

    def __init__(self, *, api_key: str, base_url: str = HF_INFERENCE_BASE, **kwargs: Any) -> None:
        super().__init__("huggingface", api_key=api_key, **kwargs)
        self._base_url = base_url.rstrip("/")

    async def generate_text(self, request: TextRequest) -> TextResult:
        model = strip_vendor(request.model, "HuggingFaceH4/zephyr-7b-beta")
        prompt = request.prompt
        if request.system_prompt:
            prompt = f"{request.system_prompt}\n\n{prompt}"

        data: Any = await self._post_json(
            f"{self._base_url}/{model}",
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "inputs": prompt,
                "parameters": {
                    "max_new_tokens": request.max_tokens,
                    "temperature": max(request.temperature, 0.01),
                    "return_full_text": False,
                },
            },
        )
        # The API answers with a list of generations, or a dict on some models
        first = data[0] if isinstance(data, list) and data else data
        text = first.get("generated_text") if isinstance(first, dict) else None
        if not text:
            raise self._fail("Hugging Face returned no text", code="empty_response")
        return TextResult(text=text.strip(), model=model, provider=self.name)
