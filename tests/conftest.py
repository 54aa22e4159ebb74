"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Callable, Iterable

import httpx
import pytest

from anthropic_proxy.config_loader import ProxySettings

UPSTREAM_URL = "http://upstream.local"


# =============================================================================
# Settings Fixtures
# =============================================================================


def build_settings(**overrides: Any) -> ProxySettings:
    """Build settings pointing at the fake upstream.

    Args:
        **overrides: Fields to replace on the default test settings

    Returns:
        ProxySettings for tests
    """
    values: dict[str, Any] = {
        "base_url": UPSTREAM_URL,
        "requires_api_key": True,
        "api_key": "test-key",
        "timeout": 5.0,
        "reasoning_model": "reasoning-model",
        "completion_model": "completion-model",
    }
    values.update(overrides)
    return ProxySettings(**values)


@pytest.fixture
def settings() -> ProxySettings:
    return build_settings()


# =============================================================================
# Backend Stream Builders
# =============================================================================


def sse_frame(payload: Any) -> bytes:
    """Encode one backend SSE frame (dicts are JSON encoded)."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n".encode("utf-8")


def text_chunk(text: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": text}}]}


def reasoning_chunk(text: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"reasoning": text}}]}


def tool_call_chunk(
    index: int,
    arguments: str,
    *,
    call_id: str | None = None,
    name: str | None = None,
) -> dict[str, Any]:
    function: dict[str, Any] = {"arguments": arguments}
    if name is not None:
        function["name"] = name
    call: dict[str, Any] = {"index": index, "function": function}
    if call_id is not None:
        call["id"] = call_id
    return {"choices": [{"index": 0, "delta": {"tool_calls": [call]}}]}


def build_stream_body(*payloads: Any, done: bool = True) -> bytes:
    """Join frames into one backend SSE body, optionally ending with [DONE]."""
    body = b"".join(sse_frame(payload) for payload in payloads)
    if done:
        body += sse_frame("[DONE]")
    return body


def split_bytes(data: bytes, size: int) -> list[bytes]:
    """Split bytes into fixed-size chunks, ignoring frame boundaries."""
    return [data[i:i + size] for i in range(0, len(data), size)]


async def aiter_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


# =============================================================================
# Target SSE Parsing
# =============================================================================


def parse_sse_events(raw: bytes | Iterable[bytes]) -> list[dict[str, Any]]:
    """Parse target SSE output into ``{"event": name, "data": payload}`` dicts."""
    if not isinstance(raw, (bytes, bytearray)):
        raw = b"".join(raw)
    events = []
    for block in raw.decode("utf-8").split("\n\n"):
        if not block.strip():
            continue
        lines = block.split("\n")
        event_line = next(line for line in lines if line.startswith("event: "))
        data_line = next(line for line in lines if line.startswith("data: "))
        events.append({
            "event": event_line[len("event: "):],
            "data": json.loads(data_line[len("data: "):]),
        })
    return events


def event_names(events: list[dict[str, Any]]) -> list[str]:
    return [event["event"] for event in events]


# =============================================================================
# Fake Upstream
# =============================================================================


class FakeUpstream:
    """Records backend requests and answers them with a handler-built response."""

    def __init__(self, responder: Callable[[dict[str, Any]], httpx.Response]) -> None:
        self.responder = responder
        self.requests: list[httpx.Request] = []

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(json.loads(request.content))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def json_responder(body: dict[str, Any], status_code: int = 200):
    return lambda payload: httpx.Response(status_code, json=body)


def stream_responder(chunks: list[bytes], status_code: int = 200):
    return lambda payload: httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=aiter_chunks(chunks),
    )
