"""Anthropic-compatible Messages API endpoint."""

import json
import logging
import time
import uuid
from typing import Any, AsyncIterator, Mapping

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from ...core.backend import format_httpx_error
from ...core.exceptions import BackendHTTPError, BackendPayloadError, BackendStreamError
from ...core.sse import format_sse_event
from ...messages import MessagesTranslator, TranslatedStream

logger = logging.getLogger("anthropic-proxy")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

DEFAULT_ROUTE_TEXT = "Anthropic Proxy Worker is running"
MESSAGES_PATH = "/v1/messages"


def _error_response(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _stream_error_event(message: str) -> bytes:
    return format_sse_event(
        "error",
        {"type": "error", "error": {"type": "api_error", "message": message}},
    )


async def _stream_with_error_event(
    stream: TranslatedStream,
    req_id: str,
    start_time: float,
) -> AsyncIterator[bytes]:
    """Forward translated events; report a mid-stream failure as an SSE error event.

    The 200 status is already on the wire once the first event is sent, so a
    failure can only be signalled inside the event stream.
    """
    try:
        async for event in stream:
            yield event
    except BackendStreamError as exc:
        logger.error(f"[{req_id}] Backend stream error: {exc.message}")
        yield _stream_error_event(exc.message)
    except httpx.HTTPError as exc:
        detail = format_httpx_error(exc)
        logger.error(f"[{req_id}] Backend stream interrupted: {detail}")
        yield _stream_error_event(detail)
    except Exception as exc:
        logger.exception(f"[{req_id}] Error while streaming response: {exc}")
        yield _stream_error_event(str(exc))
    finally:
        await stream.aclose()
        elapsed = time.perf_counter() - start_time
        logger.info(f"[{req_id}] Streaming response {stream.message_id} finished after {elapsed:.3f}s")


async def messages_endpoint(request: Request) -> Response:
    """POST /v1/messages - Anthropic Messages API compatible endpoint."""
    # Generate request ID for log correlation
    req_id = uuid.uuid4().hex[:8]
    start_time = time.perf_counter()

    client_host = request.client.host if request.client else "unknown"
    logger.info(f"[{req_id}] Messages API request from {client_host}")

    try:
        payload: Any = json.loads(await request.body() or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning(f"[{req_id}] Invalid JSON payload: {exc}")
        return _error_response(f"Invalid JSON payload: {exc}", status_code=400)

    if not isinstance(payload, Mapping):
        logger.warning(f"[{req_id}] Request body is not a JSON object")
        return _error_response("Request body must be a JSON object", status_code=400)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"[{req_id}] Incoming payload: {json.dumps(payload, ensure_ascii=False)[:4000]}")

    translator: MessagesTranslator = request.app.state.translator

    try:
        result = await translator.translate(payload)
    except BackendHTTPError as exc:
        logger.warning(f"[{req_id}] Backend returned status {exc.status_code}")
        return _error_response(exc.body, status_code=exc.status_code)
    except BackendPayloadError as exc:
        logger.error(f"[{req_id}] Backend error payload: {exc.message}")
        return _error_response(exc.message)
    except httpx.HTTPError as exc:
        detail = format_httpx_error(exc, url=translator.backend.url, timeout=translator.settings.timeout)
        logger.error(f"[{req_id}] Backend request failed: {detail}")
        return _error_response(detail, status_code=502)
    except Exception as exc:
        logger.exception(f"[{req_id}] Error in messages handler: {exc}")
        return _error_response(str(exc))

    if isinstance(result, TranslatedStream):
        elapsed = time.perf_counter() - start_time
        logger.info(f"[{req_id}] Starting translated streaming response, setup took {elapsed:.3f}s")
        return StreamingResponse(
            _stream_with_error_event(result, req_id, start_time),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    elapsed = time.perf_counter() - start_time
    logger.info(f"[{req_id}] Completed translated non-streaming response, took {elapsed:.3f}s")
    return JSONResponse(result)


async def preflight(request: Request) -> Response:
    """OPTIONS on any path: answer the CORS preflight."""
    return Response(status_code=200, headers=CORS_HEADERS)


async def default_route(request: Request) -> Response:
    """Any other path: liveness text.

    POSTs to a prefixed messages path (e.g. ``/anthropic/v1/messages``) are
    still translated.
    """
    if request.method == "POST" and MESSAGES_PATH in request.url.path:
        return await messages_endpoint(request)
    return PlainTextResponse(DEFAULT_ROUTE_TEXT)
