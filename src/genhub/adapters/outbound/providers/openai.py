"""OpenAI-compatible chat completions: OpenAI and Azure OpenAI."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

from genhub.adapters.outbound.providers.base import HttpProviderClient, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import TextChunk, TextRequest, TextResult, TokenUsage


class _ChatCompletionsClient(HttpProviderClient):
    capabilities = frozenset({Capability.TEXT, Capability.TEXT_STREAM})

    def _url(self) -> str:
        raise NotImplementedError

    def _headers(self) -> dict[str, str]:
        raise NotImplementedError

    def _model(self, request: TextRequest) -> str:
        return strip_vendor(request.model, "gpt-4o")

    def _body(self, request: TextRequest, *, stream: bool = False) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        body: dict[str, Any] = {
            "model": self._model(request),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "messages": messages,
        }
        if stream:
            body["stream"] = True
        return body

    async def generate_text(self, request: TextRequest) -> TextResult:
        data = await self._post_json(self._url(), headers=self._headers(), json=self._body(request))
        choices = data.get("choices") or []
        text = (choices[0].get("message") or {}).get("content") if choices else None
        if not text:
            raise self._fail(f"{self.name} returned no text", code="empty_response")
        usage = data.get("usage") or {}
        return TextResult(
            text=text,
            model=data.get("model") or self._model(request),
            provider=self.name,
            usage=TokenUsage(
                prompt_tokens=int(usage.get("prompt_tokens", 0)),
                completion_tokens=int(usage.get("completion_tokens", 0)),
            ),
        )

    async def stream_text(self, request: TextRequest) -> AsyncIterator[TextChunk]:
        model = self._model(request)
        async for payload in self._stream_events(
            self._url(), headers=self._headers(), json=self._body(request, stream=True)
        ):
            event = json.loads(payload)
            for choice in event.get("choices") or []:
                delta = (choice.get("delta") or {}).get("content")
                if delta:
                    yield TextChunk(text=delta, model=event.get("model") or model, provider=self.name)


class OpenAIClient(_ChatCompletionsClient):
    def __init__(self, *, api_key: str, base_url: str = "https://api.openai.com/v1", **kwargs: Any) -> None:
        super().__init__("openai", api_key=api_key, **kwargs)
        self._base_url = base_url.rstrip("/")

    def _url(self) -> str:
        return f"{self._base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}


class AzureOpenAIClient(_ChatCompletionsClient):
    """Azure routes by deployment; the request's model is informational only."""

    def __init__(
        self,
        *,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: str = "2024-06-01",
        **kwargs: Any,
    ) -> None:
        super().__init__("azureOpenai", api_key=api_key, **kwargs)
        self._endpoint = endpoint.rstrip("/")
        self._deployment = deployment
        self._api_version = api_version

    def _url(self) -> str:
        return (
            f"{self._endpoint}/openai/deployments/{self._deployment}/chat/completions"
            f"?api-version={self._api_version}"
        )

    def _headers(self) -> dict[str, str]:
        return {"api-key": self._api_key, "Content-Type": "application/json"}

    def _model(self, request: TextRequest) -> str:
        return self._deployment
