"""Google Generative Language API adapters: Gemini, Imagen and Veo."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

from genhub.adapters.outbound.providers.base import HttpProviderClient, data_url, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import (
    ImageRequest,
    ImageResult,
    SpeechRequest,
    SpeechResult,
    TextChunk,
    TextRequest,
    TextResult,
    TokenUsage,
    VideoRequest,
    VideoResult,
)

GOOGLE_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TTS_VOICE = "Kore"
DEFAULT_VEO_MODEL = "veo-3.0-generate-001"


class _GoogleClient(HttpProviderClient):
    def __init__(self, name: str, *, api_key: str, base_url: str = GOOGLE_API_BASE, **kwargs: Any) -> None:
        super().__init__(name, api_key=api_key, **kwargs)
        self._base_url = base_url.rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

    def _model_url(self, model: str, action: str) -> str:
        return f"{self._base_url}/models/{model}:{action}"


def _parts(data: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = data.get("candidates") or [{}]
    return (candidates[0].get("content") or {}).get("parts") or []


def _text_of(data: dict[str, Any]) -> str:
    return "".join(p.get("text", "") for p in _parts(data))


def _inline_data(data: dict[str, Any]) -> dict[str, Any] | None:
    for part in _parts(data):
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            return inline  # type: ignore[no-any-return]
    return None


class GeminiClient(_GoogleClient):
    """Gemini: text, streaming text, native image output and TTS."""

    capabilities = frozenset({Capability.TEXT, Capability.TEXT_STREAM, Capability.IMAGE, Capability.SPEECH})

    def __init__(self, *, api_key: str, **kwargs: Any) -> None:
        super().__init__("gemini", api_key=api_key, **kwargs)

    def _text_body(self, request: TextRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        if request.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return body

    async def generate_text(self, request: TextRequest) -> TextResult:
        model = strip_vendor(request.model, "gemini-flash-latest")
        data = await self._post_json(
            self._model_url(model, "generateContent"),
            headers=self._headers,
            json=self._text_body(request),
        )
        text = _text_of(data)
        if not text:
            raise self._fail("Gemini returned no text", code="empty_response")
        usage = data.get("usageMetadata") or {}
        return TextResult(
            text=text,
            model=model,
            provider=self.name,
            usage=TokenUsage(
                prompt_tokens=int(usage.get("promptTokenCount", 0)),
                completion_tokens=int(usage.get("candidatesTokenCount", 0)),
            ),
        )

    async def stream_text(self, request: TextRequest) -> AsyncIterator[TextChunk]:
        model = strip_vendor(request.model, "gemini-flash-latest")
        async for payload in self._stream_events(
            self._model_url(model, "streamGenerateContent"),
            params={"alt": "sse"},
            headers=self._headers,
            json=self._text_body(request),
        ):
            text = _text_of(json.loads(payload))
            if text:
                yield TextChunk(text=text, model=model, provider=self.name)

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        model = strip_vendor(request.model, "gemini-2.5-flash-image")
        data = await self._post_json(
            self._model_url(model, "generateContent"),
            headers=self._headers,
            json={
                "contents": [{"parts": [{"text": request.prompt}]}],
                "generationConfig": {
                    "responseModalities": ["IMAGE"],
                    "imageConfig": {"aspectRatio": request.aspect_ratio},
                },
            },
        )
        inline = _inline_data(data)
        if inline is None:
            raise self._fail("Gemini returned no image", code="empty_response")
        return ImageResult(
            image_url=data_url(inline["data"], inline.get("mimeType", "image/png")),
            model=model,
            provider=self.name,
        )

    async def generate_speech(self, request: SpeechRequest) -> SpeechResult:
        model = strip_vendor(request.model, "gemini-2.5-flash-preview-tts")
        data = await self._post_json(
            self._model_url(model, "generateContent"),
            headers=self._headers,
            json={
                "contents": [{"parts": [{"text": request.text}]}],
                "generationConfig": {
                    "responseModalities": ["AUDIO"],
                    "speechConfig": {
                        "voiceConfig": {
                            "prebuiltVoiceConfig": {"voiceName": request.voice_id or DEFAULT_TTS_VOICE}
                        }
                    },
                },
            },
        )
        inline = _inline_data(data)
        if inline is None:
            raise self._fail("Gemini returned no audio", code="empty_response")
        content_type = inline.get("mimeType", "audio/L16;rate=24000")
        return SpeechResult(
            audio_url=data_url(inline["data"], content_type),
            model=model,
            provider=self.name,
            content_type=content_type,
        )


class ImagenClient(_GoogleClient):
    capabilities = frozenset({Capability.IMAGE})

    def __init__(self, *, api_key: str, **kwargs: Any) -> None:
        super().__init__("imagen", api_key=api_key, **kwargs)

    async def generate_image(self, request: ImageRequest) -> ImageResult:
        model = strip_vendor(request.model, "imagen-4.0-generate-001")
        data = await self._post_json(
            self._model_url(model, "predict"),
            headers=self._headers,
            json={
                "instances": [{"prompt": request.prompt}],
                "parameters": {"sampleCount": 1, "aspectRatio": request.aspect_ratio},
            },
        )
        predictions = data.get("predictions") or []
        if not predictions or not predictions[0].get("bytesBase64Encoded"):
            raise self._fail("Imagen returned no image (possibly filtered)", code="empty_response")
        first = predictions[0]
        return ImageResult(
            image_url=data_url(first["bytesBase64Encoded"], first.get("mimeType", "image/png")),
            model=model,
            provider=self.name,
        )


class GoogleVeoClient(_GoogleClient):
    """Veo video: long-running operation polled until ``done``."""

    capabilities = frozenset({Capability.VIDEO})

    def __init__(self, *, api_key: str, **kwargs: Any) -> None:
        super().__init__("googleVeo", api_key=api_key, **kwargs)

    async def probe(self, capability: Capability, model: str | None = None) -> bool:
        if capability is not Capability.VIDEO:
            return False
        # Model metadata lookup; starts no operation
        await self._get_json(
            f"{self._base_url}/models/{strip_vendor(model, DEFAULT_VEO_MODEL)}", headers=self._headers
        )
        return True

    async def generate_video(self, request: VideoRequest) -> VideoResult:
        model = strip_vendor(request.model, DEFAULT_VEO_MODEL)
        parameters: dict[str, Any] = {"aspectRatio": "16:9"}
        if request.duration_seconds:
            parameters["durationSeconds"] = request.duration_seconds
        operation = await self._post_json(
            self._model_url(model, "predictLongRunning"),
            headers=self._headers,
            json={"instances": [{"prompt": request.prompt}], "parameters": parameters},
        )
        name = operation.get("name")
        if not name:
            raise self._fail("Veo did not return an operation name", code="invalid_response")

        async def fetch() -> dict[str, Any]:
            return await self._get_json(f"{self._base_url}/{name}", headers=self._headers)

        final = operation if operation.get("done") else await self._poll(fetch, lambda s: bool(s.get("done")))
        if final.get("error"):
            err = final["error"]
            raise self._fail(str(err.get("message", "Veo operation failed")), code=str(err.get("code", "operation_failed")))

        samples = (
            (final.get("response") or {}).get("generateVideoResponse", {}).get("generatedSamples")
            or []
        )
        uri = samples[0].get("video", {}).get("uri") if samples else None
        if not uri:
            raise self._fail("Veo returned no video (possibly filtered)", code="empty_response")
        return VideoResult(video_url=uri, model=model, provider=self.name)


__all__ = ["GeminiClient", "GoogleVeoClient", "ImagenClient"]
