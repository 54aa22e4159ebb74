"""Core exceptions for the proxy."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for proxy errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration."""
    pass


class BackendHTTPError(ProxyError):
    """The backend answered the initial call with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"backend returned status {status_code}")
        self.status_code = status_code
        self.body = body


class BackendPayloadError(ProxyError):
    """A buffered backend response carried a top-level ``error`` field."""

    def __init__(self, message: str, error: Optional[object] = None) -> None:
        super().__init__(message)
        self.error = error


class BackendStreamError(ProxyError):
    """A streamed backend frame carried a top-level ``error`` field."""

    def __init__(self, message: str, error: Optional[object] = None) -> None:
        super().__init__(message)
        self.error = error


def describe_backend_error(error: object) -> str:
    """Extract a human readable message from a backend ``error`` value."""
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
        return str(error)
    if error is None:
        return "unknown error"
    return str(error)
