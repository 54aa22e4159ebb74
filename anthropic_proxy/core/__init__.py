"""Core module initialization."""

from .backend import (
    BackendClient,
    BackendStream,
    build_outbound_headers,
    format_httpx_error,
)
from .exceptions import (
    BackendHTTPError,
    BackendPayloadError,
    BackendStreamError,
    ConfigurationError,
    ProxyError,
)
from .sse import DONE_SENTINEL, SSELineDecoder, format_sse_event

__all__ = [
    "BackendClient",
    "BackendHTTPError",
    "BackendPayloadError",
    "BackendStream",
    "BackendStreamError",
    "ConfigurationError",
    "DONE_SENTINEL",
    "ProxyError",
    "SSELineDecoder",
    "build_outbound_headers",
    "format_httpx_error",
    "format_sse_event",
]
