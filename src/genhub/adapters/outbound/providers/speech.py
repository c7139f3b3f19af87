"""Text-to-speech adapters: MiniMax and ElevenLabs."""

from __future__ import annotations

from typing import Any

from genhub.adapters.outbound.providers.base import HttpProviderClient, data_url, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import SpeechRequest, SpeechResult

MINIMAX_API_BASE = "https://api.minimax.io/v1"
ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"

DEFAULT_MINIMAX_VOICE = "English_expressive_narrator"
DEFAULT_ELEVENLABS_VOICE = "21m00Tcm4TlvDq8ikWAM"


class MiniMaxClient(HttpProviderClient):
    capabilities = frozenset({Capability.SPEECH})

    def __init__(self, *, api_key: str, base_url: str = MINIMAX_API_BASE, **kwargs: Any) -> None:
        super().__init__("minimax", api_key=api_key, **kwargs)
        self._base_url = base_url.rstrip("/")

    async def generate_speech(self, request: SpeechRequest) -> SpeechResult:
        model = strip_vendor(request.model, "speech-02-hd")
        data = await self._post_json(
            f"{self._base_url}/t2a_v2",
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
            json={
                "model": model,
                "text": request.text,
                "stream": False,
                "voice_setting": {"voice_id": request.voice_id or DEFAULT_MINIMAX_VOICE, "speed": 1.0},
                "audio_setting": {"format": "mp3", "sample_rate": 32000},
            },
        )
        # MiniMax reports business errors with HTTP 200
        base_resp = data.get("base_resp") or {}
        if base_resp.get("status_code", 0) != 0:
            raise self._fail(
                str(base_resp.get("status_msg") or "MiniMax request failed"),
                code=str(base_resp["status_code"]),
            )
        audio_hex = (data.get("data") or {}).get("audio")
        if not audio_hex:
            raise self._fail("MiniMax returned no audio", code="empty_response")
        return SpeechResult(
            audio_url=data_url(bytes.fromhex(audio_hex), "audio/mpeg"),
            model=model,
            provider=self.name,
        )


class ElevenLabsClient(HttpProviderClient):
    capabilities = frozenset({Capability.SPEECH})

    def __init__(self, *, api_key: str, base_url: str = ELEVENLABS_API_BASE, **kwargs: Any) -> None:
        super().__init__("elevenlabs", api_key=api_key, **kwargs)
        self._base_url = base_url.rstrip("/")

    async def generate_speech(self, request: SpeechRequest) -> SpeechResult:
        model = strip_vendor(request.model, "eleven_multilingual_v2")
        voice_id = request.voice_id or DEFAULT_ELEVENLABS_VOICE
        response = await self._raw(
            "post",
            f"{self._base_url}/text-to-speech/{voice_id}",
            headers={
                "xi-api-key": self._api_key,
                "Content-Type": "application/json",
                "Accept": "audio/mpeg",
            },
            json={
                "text": request.text,
                "model_id": model,
                "voice_settings": {"stability": 0.5, "similarity_boost": 0.5},
            },
        )
        if not response.content:
            raise self._fail("ElevenLabs returned no audio", code="empty_response")
        content_type = response.headers.get("content-type", "audio/mpeg")
        return SpeechResult(
            audio_url=data_url(response.content, content_type),
            model=model,
            provider=self.name,
            content_type=content_type,
        )
