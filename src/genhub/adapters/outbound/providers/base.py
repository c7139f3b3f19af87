"""Shared HTTP plumbing for provider adapters.

Every vendor call is a single request (or a submit followed by polling)
with no retry logic of its own.  ``httpx`` failures are translated into
``ProviderCallError`` carrying the vendor's message and code so the
orchestrator can record them verbatim.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
import structlog

from genhub.domain.exceptions import ProviderCallError, ProviderTimeoutError
from genhub.ports.outbound import ProviderClient

logger = structlog.get_logger(__name__)


def strip_vendor(model: str | None, default: str) -> str:
    """``"googleai/gemini-flash-latest"`` → ``"gemini-flash-latest"``."""
    model = model or default
    _, sep, rest = model.partition("/")
    return rest if sep else model


def data_url(content: bytes | str, content_type: str) -> str:
    """Inline binary output as a ``data:`` URL (base64 text is passed through)."""
    encoded = content if isinstance(content, str) else base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def _vendor_error(response: httpx.Response) -> tuple[str, str]:
    """Extract (message, code) from a vendor error body."""
    code = str(response.status_code)
    message = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return (text[:500] or message), code

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            message = str(err.get("message") or message)
            code = str(err.get("code") or err.get("status") or err.get("type") or code)
        elif isinstance(err, str):
            message = err
        base_resp = body.get("base_resp")
        if isinstance(base_resp, dict) and base_resp.get("status_code"):
            code = str(base_resp["status_code"])
            message = str(base_resp.get("status_msg") or message)
        detail = body.get("detail")
        if isinstance(detail, str):
            message = detail
        elif isinstance(detail, dict) and detail.get("message"):
            message = str(detail["message"])
    return message, code


class HttpProviderClient(ProviderClient):
    """Base adapter owning one ``httpx.AsyncClient``."""

    def __init__(
        self,
        name: str,
        *,
        api_key: str,
        timeout_s: float = 60.0,
        poll_interval_s: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(name)
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._poll_interval_s = poll_interval_s
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    # ── Requests ─────────────────────────────────────────────
    async def _post_json(self, url: str, **kwargs: Any) -> dict[str, Any]:
        return await self._send("post", url, **kwargs)

    async def _get_json(self, url: str, **kwargs: Any) -> dict[str, Any]:
        return await self._send("get", url, **kwargs)

    async def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._raw(method, url, **kwargs)
        try:
            return response.json()  # type: ignore[no-any-return]
        except ValueError as exc:
            raise ProviderCallError(
                self.name, "Provider returned a non-JSON body", provider_code="invalid_response"
            ) from exc

    async def _raw(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await getattr(self._client, method)(url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(self.name, self._timeout_s) from exc
        except httpx.HTTPStatusError as exc:
            raise self._status_error(exc.response) from exc
        except httpx.HTTPError as exc:
            raise ProviderCallError(
                self.name, str(exc) or type(exc).__name__, provider_code="transport_error"
            ) from exc
        return response

    async def _stream_events(self, url: str, **kwargs: Any) -> AsyncIterator[str]:
        """POST and yield the payload of every server-sent ``data:`` line."""
        try:
            async with self._client.stream("POST", url, **kwargs) as response:
                if response.is_error:
                    await response.aread()
                    raise self._status_error(response)
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    payload = line[5:].strip()
                    if payload == "[DONE]":
                        return
                    if payload:
                        yield payload
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(self.name, self._timeout_s) from exc
        except httpx.HTTPError as exc:
            raise ProviderCallError(
                self.name, str(exc) or type(exc).__name__, provider_code="transport_error"
            ) from exc

    def _status_error(self, response: httpx.Response) -> ProviderCallError:
        message, code = _vendor_error(response)
        logger.debug(
            "provider_http_error",
            provider=self.name,
            status_code=response.status_code,
            provider_code=code,
        )
        return ProviderCallError(
            self.name, message, provider_code=code, status_code=response.status_code
        )

    # ── Long-running jobs ────────────────────────────────────
    async def _poll(
        self,
        fetch: Callable[[], Awaitable[dict[str, Any]]],
        is_done: Callable[[dict[str, Any]], bool],
    ) -> dict[str, Any]:
        """Poll until ``is_done``; the caller's timeout bounds the total wait."""
        while True:
            state = await fetch()
            if is_done(state):
                return state
            await asyncio.sleep(self._poll_interval_s)

    def _fail(self, message: str, code: str = "generation_failed") -> ProviderCallError:
        return ProviderCallError(self.name, message, provider_code=code)

    async def aclose(self) -> None:
        await self._client.aclose()
