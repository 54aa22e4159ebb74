"""Messages translation service: normalize, call the backend, translate back."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Mapping, Optional, Union

import httpx

from ..config_loader import ProxySettings
from ..core.backend import BackendClient, BackendStream
from .stream_adapter import ChatToMessagesStreamAdapter
from .translator import (
    chat_completion_to_messages,
    messages_to_chat_completions,
    new_message_id,
)
from .types import AnthropicResponse, ChatCompletionRequest

logger = logging.getLogger("anthropic-proxy")


class TranslatedStream:
    """Anthropic SSE bytes produced from one open backend stream.

    Finite and single-use: iterate it once. The backend response is closed
    when iteration ends, fails, or is abandoned via ``aclose``.
    """

    def __init__(self, adapter: ChatToMessagesStreamAdapter, backend_stream: BackendStream) -> None:
        self.adapter = adapter
        self.backend_stream = backend_stream

    @property
    def message_id(self) -> str:
        return self.adapter.message_id

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for event in self.adapter.adapt_stream(self.backend_stream.__aiter__()):
                yield event
        finally:
            await self.backend_stream.aclose()

    async def aclose(self) -> None:
        await self.backend_stream.aclose()


TranslationResult = Union[AnthropicResponse, TranslatedStream]


class MessagesTranslator:
    """Serves Anthropic Messages requests from an OpenAI-compatible backend.

    Stateless between requests; each call to ``translate`` builds its own
    request body and, for streams, its own adapter.
    """

    def __init__(
        self,
        settings: ProxySettings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(settings.timeout))
        self.backend = BackendClient(
            self.client,
            settings.chat_completions_url,
            api_key=settings.api_key if settings.requires_api_key else None,
            timeout=settings.timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def build_request(self, payload: Mapping[str, Any]) -> ChatCompletionRequest:
        openai_payload = messages_to_chat_completions(payload, self.settings)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"OpenAI payload: {json.dumps(openai_payload, ensure_ascii=False)[:4000]}")
        return openai_payload

    async def translate(self, payload: Mapping[str, Any]) -> TranslationResult:
        """Translate one Anthropic request and return the Anthropic response.

        Returns:
            The response message for non-streaming requests, or a
            TranslatedStream of SSE events when ``stream`` is true.

        Raises:
            BackendHTTPError: The backend rejected the request.
            BackendPayloadError: The backend answered with an ``error`` object.
            httpx.HTTPError: The backend could not be reached.
        """
        openai_payload = self.build_request(payload)

        if not openai_payload["stream"]:
            data = await self.backend.post_json(openai_payload)
            if not isinstance(data, Mapping):
                data = {}
            return chat_completion_to_messages(data, openai_payload)

        backend_stream = await self.backend.open_stream(openai_payload)
        adapter = ChatToMessagesStreamAdapter(
            new_message_id(),
            openai_payload["model"],
            finalize_on_eof=self.settings.finalize_on_eof,
        )
        return TranslatedStream(adapter, backend_stream)
