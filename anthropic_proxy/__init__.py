"""anthropic-proxy - serve Anthropic Messages API clients from an OpenAI-compatible backend

Translates Messages API requests into Chat Completions requests, calls the
backend once, and translates the buffered or streamed answer back.

This module provides:
- MessagesTranslator: request normalization, backend call, response translation
- ChatToMessagesStreamAdapter: Chat Completions SSE -> Messages SSE state machine
- create_app: FastAPI application exposing POST /v1/messages

Example:
    >>> from anthropic_proxy import create_app, load_settings
    >>> import uvicorn
    >>> uvicorn.run(create_app(load_settings()), host="127.0.0.1", port=8000)
"""

from .config_loader import ProxySettings, load_config, load_settings
from .core import BackendHTTPError, BackendPayloadError, BackendStreamError, ProxyError
from .logging import logger, setup_logging
from .main import create_app, run
from .messages import ChatToMessagesStreamAdapter, MessagesTranslator

__all__ = [
    "BackendHTTPError",
    "BackendPayloadError",
    "BackendStreamError",
    "ChatToMessagesStreamAdapter",
    "MessagesTranslator",
    "ProxyError",
    "ProxySettings",
    "create_app",
    "load_config",
    "load_settings",
    "logger",
    "run",
    "setup_logging",
]
