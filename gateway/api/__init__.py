"""Provider Gateway API.

Hides provider credentials from the client application and exposes one
request surface over the chat-completion, text-to-speech and
speech-token providers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gateway.api.config import Settings
from gateway.api.routes import router
from gateway.api.security import add_security_headers
from gateway.core.dispatch import Dispatcher
from gateway.core.providers import ProviderSettings, build_registry
from gateway.core.speech_token import SpeechTokenIssuer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def create_app(
    settings: Settings | None = None,
    provider_settings: ProviderSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the gateway application.

    Args:
        settings: Server settings (read from environment if omitted)
        provider_settings: Provider credentials and endpoints
            (read from environment if omitted)
        transport: Optional httpx transport for upstream calls

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()
    provider_settings = provider_settings or ProviderSettings()

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    # One pooled client per app; closed on shutdown
    client = httpx.AsyncClient(
        transport=transport,
        timeout=provider_settings.default_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await client.aclose()
        logger.info("Upstream HTTP client closed")

    app = FastAPI(
        title=settings.api_title,
        description="Credential-hiding gateway for chat-completion, "
        "text-to-speech and speech-token providers.",
        version=settings.api_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Security headers middleware
    app.middleware("http")(add_security_headers)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    registry = build_registry(provider_settings)

    app.state.settings = settings
    app.state.provider_settings = provider_settings
    app.state.http_client = client
    app.state.registry = registry
    app.state.dispatcher = Dispatcher(registry, provider_settings, client)
    app.state.token_issuer = SpeechTokenIssuer(provider_settings, client)

    app.include_router(router)
    return app


app = create_app()
