"""Main FastAPI application for the Anthropic proxy."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import MESSAGES_PATH, default_route, messages_endpoint, preflight
from .config_loader import ProxySettings, load_settings
from .logging import setup_logging
from .messages import MessagesTranslator

OTHER_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


def create_app(
    settings: Optional[ProxySettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Proxy settings; loaded from config file and environment
            when omitted.
        client: httpx client used for backend calls. When omitted the
            translator creates one and closes it on shutdown.

    Returns:
        The configured FastAPI application instance.
    """
    if settings is None:
        settings = load_settings()
    logger = setup_logging(settings.debug)

    translator = MessagesTranslator(settings, client=client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Anthropic proxy starting up...")
        logger.info("Configured bind address %s:%s", settings.host, settings.port)
        logger.info("Backend endpoint: %s", settings.chat_completions_url)
        logger.info(
            "Models: reasoning=%s, completion=%s",
            settings.reasoning_model,
            settings.completion_model,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Debug logging enabled")
        try:
            yield
        finally:
            await translator.aclose()
            logger.info("Anthropic proxy shut down")

    app = FastAPI(title="Anthropic Proxy", lifespan=lifespan)
    app.state.settings = settings
    app.state.translator = translator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.post(MESSAGES_PATH)(messages_endpoint)
    app.options("/{path:path}")(preflight)
    app.api_route("/{path:path}", methods=OTHER_METHODS)(default_route)

    return app


def run() -> None:
    """Serve the proxy with uvicorn on the configured host and port."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
