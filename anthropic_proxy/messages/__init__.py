"""Anthropic Messages API translation helpers.

Provides translation between Anthropic Messages API format and OpenAI Chat
Completions API format, enabling the proxy to serve Anthropic-format requests
from OpenAI-compatible backends.
"""

from .schema import strip_uri_format
from .service import MessagesTranslator, TranslatedStream
from .stream_adapter import (
    ChatToMessagesStreamAdapter,
    adapt_chat_stream_to_messages,
)
from .translator import (
    chat_completion_to_messages,
    convert_stop_reason,
    messages_to_chat_completions,
    normalize_content,
)

__all__ = [
    "messages_to_chat_completions",
    "chat_completion_to_messages",
    "convert_stop_reason",
    "normalize_content",
    "strip_uri_format",
    "ChatToMessagesStreamAdapter",
    "adapt_chat_stream_to_messages",
    "MessagesTranslator",
    "TranslatedStream",
]
