"""API module for the proxy."""

from .routes import default_route, messages_endpoint, preflight

__all__ = [
    "default_route",
    "messages_endpoint",
    "preflight",
]
