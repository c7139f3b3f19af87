"""Submit-then-poll video vendors: Seedance, HeyGen and Wan.

All three accept a generation request, hand back a job id and expose a
status endpoint that eventually carries the video URL.  The subclasses
only differ in auth, paths and payload shape.
"""

from __future__ import annotations

from typing import Any

from genhub.adapters.outbound.providers.base import HttpProviderClient, strip_vendor
from genhub.domain.enums import Capability
from genhub.shared.providers.types import VideoRequest, VideoResult

_DONE = {"completed", "succeeded", "success", "done"}
_FAILED = {"failed", "error", "canceled", "cancelled"}


def _dig(data: dict[str, Any], *keys: str) -> Any:
    """First non-empty value among ``keys`` at the top level or under ``data``."""
    nested = data.get("data") if isinstance(data.get("data"), dict) else {}
    for key in keys:
        for scope in (data, nested):
            value = scope.get(key)
            if value:
                return value
    return None


class RestVideoClient(HttpProviderClient):
    capabilities = frozenset({Capability.VIDEO})

    default_base_url = ""
    default_model = ""
    submit_path = "/v1/video.generate"
    status_path = "/v1/video.status/{job_id}"
    # Authenticated read that creates no job
    probe_path = "/v1/models"

    def __init__(self, name: str, *, api_key: str, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(name, api_key=api_key, **kwargs)
        self._base_url = (base_url or self.default_base_url).rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    def _submit_body(self, request: VideoRequest, model: str) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "prompt": request.prompt, "style": request.style}
        if request.image_url:
            body["image_url"] = request.image_url
        if request.duration_seconds:
            body["duration"] = request.duration_seconds
        return body

    def _status_url(self, job_id: str) -> str:
        return self._base_url + self.status_path.format(job_id=job_id)

    async def probe(self, capability: Capability, model: str | None = None) -> bool:
        if capability is not Capability.VIDEO:
            return False
        await self._raw("get", self._base_url + self.probe_path, headers=self._headers())
        return True

    async def generate_video(self, request: VideoRequest) -> VideoResult:
        model = strip_vendor(request.model, self.default_model)
        submitted = await self._post_json(
            self._base_url + self.submit_path,
            headers=self._headers(),
            json=self._submit_body(request, model),
        )
        state = submitted
        if not _dig(state, "video_url", "url"):
            job_id = _dig(submitted, "video_id", "task_id", "id")
            if not job_id:
                raise self._fail(f"{self.name} did not return a job id", code="invalid_response")

            async def fetch() -> dict[str, Any]:
                return await self._get_json(self._status_url(str(job_id)), headers=self._headers())

            state = await self._poll(fetch, self._finished)

        status = str(_dig(state, "status") or "").lower()
        if status in _FAILED:
            error = _dig(state, "error", "message") or f"{self.name} video job {status}"
            if isinstance(error, dict):
                error = error.get("message") or str(error)
            raise self._fail(str(error), code=status)

        url = _dig(state, "video_url", "url")
        if not url:
            raise self._fail(f"{self.name} returned no video", code="empty_response")
        return VideoResult(video_url=str(url), model=model, provider=self.name)

    @staticmethod
    def _finished(state: dict[str, Any]) -> bool:
        status = str(_dig(state, "status") or "").lower()
        return status in _DONE or status in _FAILED or bool(_dig(state, "video_url"))


class SeedanceClient(RestVideoClient):
    default_base_url = "https://api.seedance.ai"
    default_model = "seedance-1-lite"

    def __init__(self, *, api_key: str, **kwargs: Any) -> None:
        super().__init__("seedance", api_key=api_key, **kwargs)


class HeyGenClient(RestVideoClient):
    """HeyGen avatar video; ``style`` selects the avatar."""

    default_base_url = "https://api.heygen.com"
    default_model = "avatar-v2"
    submit_path = "/v2/video/generate"
    status_path = "/v1/video_status.get?video_id={job_id}"
    probe_path = "/v2/user/remaining_quota"

    def __init__(self, *, api_key: str, **kwargs: Any) -> None:
        super().__init__("heygen", api_key=api_key, **kwargs)

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self._api_key, "Content-Type": "application/json"}

    def _submit_body(self, request: VideoRequest, model: str) -> dict[str, Any]:
        return {
            "video_inputs": [
                {
                    "character": {"type": "avatar", "avatar_id": request.style},
                    "voice": {"type": "text", "input_text": request.prompt},
                }
            ],
        }


class WanClient(RestVideoClient):
    default_base_url = "https://api.wan.ai"
    default_model = "wan2.1-t2v"

    def __init__(self, *, api_key: str, **kwargs: Any) -> None:
        super().__init__("wan", api_key=api_key, **kwargs)
