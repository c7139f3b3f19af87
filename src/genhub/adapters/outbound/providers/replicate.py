"""Replicate predictions adapter (image models such as Flux)."""

from __future__ import annotations

from typing import Any

from genhub.adapters.outbound.providers.base import HttpProviderClient, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import ImageRequest, ImageResult

REPLICATE_API_BASE = "https://api.replicate.com/v1"
_TERMINAL = {"succeeded", "failed", "canceled"}


class ReplicateClient(HttpProviderClient):
    capabilities = frozenset({Capability.IMAGE})

    def __init__(self, *, api_key: str, base_url: str = REPLICATE_API_BASE, **kwargs: Any) -> None:
        super().__init__("replicate", api_key=api_key, **kwargs)
        self._base_url = base_url.rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        model = strip_vendor(request.model, "black-forest-labs/flux-schnell")
        prediction = await self._post_json(
            f"{self._base_url}/models/{model}/predictions",
            headers={**self._headers, "Prefer": "wait"},
            json={"input": {"prompt": request.prompt, "aspect_ratio": request.aspect_ratio}},
        )

        if prediction.get("status") not in _TERMINAL:
            poll_url = (prediction.get("urls") or {}).get("get") or (
                f"{self._base_url}/predictions/{prediction.get('id')}"
            )

            async def fetch() -> dict[str, Any]:
                return await self._get_json(poll_url, headers=self._headers)

            prediction = await self._poll(fetch, lambda p: p.get("status") in _TERMINAL)

        if prediction.get("status") != "succeeded":
            raise self._fail(
                str(prediction.get("error") or f"Prediction {prediction.get('status')}"),
                code=str(prediction.get("status")),
            )
        output = prediction.get("output")
        url = output[0] if isinstance(output, list) and output else output
        if not isinstance(url, str) or not url:
            raise self._fail("Replicate returned no image", code="empty_response")
        return ImageResult(image_url=url, model=model, provider=self.name)
