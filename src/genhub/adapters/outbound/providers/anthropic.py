"""Anthropic Messages API adapter."""

from __future__ import annotations

from typing import Any

from genhub.adapters.outbound.providers.base import HttpProviderClient, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import TextRequest, TextResult, TokenUsage

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class ClaudeClient(HttpProviderClient):
    capabilities = frozenset({Capability.TEXT})

    def __init__(self, *, api_key: str, url: str = ANTHROPIC_URL, **kwargs: Any) -> None:
        super().__init__("claude", api_key=api_key, **kwargs)
        self._url = url

    async def generate_text(self, request: TextRequest) -> TextResult:
        model = strip_vendor(request.model, "claude-3-5-sonnet")
        body: dict[str, Any] = {
            "model": model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            body["system"] = request.system_prompt

        data = await self._post_json(
            self._url,
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            json=body,
        )
        text = "".join(
            block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text"
        )
        if not text:
            raise self._fail("Claude returned no text", code="empty_response")
        usage = data.get("usage") or {}
        return TextResult(
            text=text,
            model=data.get("model") or model,
            provider=self.name,
            usage=TokenUsage(
                prompt_tokens=int(usage.get("input_tokens", 0)),
                completion_tokens=int(usage.get("output_tokens", 0)),
            ),
        )
