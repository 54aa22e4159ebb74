"""Backend client for the OpenAI-compatible chat completions API."""

import json
import logging
from typing import Any, AsyncIterator, Mapping, Optional

import httpx

from .exceptions import BackendHTTPError

logger = logging.getLogger("anthropic-proxy")

SENSITIVE_HEADERS = {"authorization", "x-api-key"}


def build_outbound_headers(api_key: Optional[str]) -> dict[str, str]:
    """Build headers for outbound requests to the backend."""
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _safe_headers_for_log(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        key: ("***" if key.lower() in SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


def format_httpx_error(exc: Any, url: Optional[str] = None, timeout: Optional[float] = None) -> str:
    """Produce a detailed, user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)

    try:
        request = exc.request
    except (AttributeError, RuntimeError):
        # httpx raises RuntimeError when the request was never attached
        request = None
    if request is not None:
        parts.append(f"request={request.method} {request.url}")
    elif url:
        parts.append(f"url={url}")

    if isinstance(exc, httpx.TimeoutException) and timeout:
        parts.append(f"timeout={timeout}s")

    return "; ".join(parts)


class BackendStream:
    """An open streaming backend response.

    Iterating yields the raw body bytes. The underlying response is closed
    when iteration finishes or ``aclose`` is called, whichever comes first.
    """

    def __init__(self, response: httpx.Response, url: str) -> None:
        self.response = response
        self.url = url
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                if chunk:
                    if logger.isEnabledFor(logging.DEBUG):
                        logger.debug(f"Backend stream chunk: {chunk[:500]!r}")
                    yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing stream for {self.url}")
        await self.response.aclose()


class BackendClient:
    """Single-attempt client for ``POST <base_url>/v1/chat/completions``.

    Non-2xx answers raise BackendHTTPError for both modes, before any
    response body has been handed to the caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.client = client
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def _build_request(self, payload: Mapping[str, Any]) -> httpx.Request:
        headers = build_outbound_headers(self.api_key)
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Outbound request to %s: headers=%s, body=%s",
                self.url,
                _safe_headers_for_log(headers),
                body[:2000],
            )
        return self.client.build_request("POST", self.url, headers=headers, content=body)

    async def post_json(self, payload: Mapping[str, Any]) -> Any:
        """Send a non-streaming request and return the decoded JSON body."""
        request = self._build_request(payload)
        resp = await self.client.send(request)
        logger.debug(f"Received response from {self.url}: status {resp.status_code}")
        if not resp.is_success:
            logger.warning(f"Backend {self.url} returned error status {resp.status_code}")
            raise BackendHTTPError(resp.status_code, resp.text)
        data = resp.json()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Backend response: {json.dumps(data, ensure_ascii=False)[:2000]}")
        return data

    async def open_stream(self, payload: Mapping[str, Any]) -> BackendStream:
        """Send a streaming request and return the open response once headers arrive."""
        request = self._build_request(payload)
        logger.debug(f"Initiating streaming request to {self.url}")
        resp = await self.client.send(request, stream=True)
        if not resp.is_success:
            logger.warning(
                f"Streaming request to {self.url} returned error status {resp.status_code}"
            )
            try:
                data = await resp.aread()
            finally:
                await resp.aclose()
            raise BackendHTTPError(resp.status_code, data.decode("utf-8", errors="replace"))
        logger.info(f"Streaming request to {self.url} successful, status {resp.status_code}")
        return BackendStream(resp, self.url)
