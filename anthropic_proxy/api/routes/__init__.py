"""API routes for the proxy."""

from .messages import MESSAGES_PATH, default_route, messages_endpoint, preflight

__all__ = [
    "MESSAGES_PATH",
    "default_route",
    "messages_endpoint",
    "preflight",
]
