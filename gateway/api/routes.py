"""Gateway endpoints.

- POST /api/{service}: dispatch to a registered provider
- GET /get-azure-token: temporary Azure Speech token
- GET /health: liveness and per-service configuration status
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from gateway.core.dispatch import Dispatcher
from gateway.core.errors import GatewayError
from gateway.core.speech_token import SpeechTokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================


class ServiceStatus(BaseModel):
    """Readiness of one routed service. Never includes secret values."""
    id: str
    response_mode: str
    configured: bool


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    services: list[ServiceStatus] = Field(default_factory=list)


class SpeechTokenResponse(BaseModel):
    """Temporary speech token for the browser SDK."""
    token: str
    region: str


# =============================================================================
# Helpers
# =============================================================================


async def _read_json_body(request: Request) -> Any:
    """Parse the inbound body; absent or malformed JSON yields None.

    The transformer decides whether None is acceptable, which keeps an
    unknown service reported as such even when its body is garbage.
    """
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Unparseable JSON body on %s", request.url.path)
        return None


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint."""
    dispatcher: Dispatcher = request.app.state.dispatcher
    return HealthResponse(
        version=request.app.version,
        services=[
            ServiceStatus(
                id=descriptor.id,
                response_mode=descriptor.response_mode.value,
                configured=dispatcher.is_configured(descriptor),
            )
            for descriptor in dispatcher.registry.services()
        ],
    )


@router.post("/api/{service}", tags=["Providers"])
async def call_service(service: str, request: Request) -> Response:
    """Forward a request to the provider registered as ``service``.

    The response shape depends on the provider: an event stream for
    streaming chat, JSON for buffered chat, audio/mpeg for TTS.
    """
    body = await _read_json_body(request)
    dispatcher: Dispatcher = request.app.state.dispatcher
    result = await dispatcher.dispatch(service, body)
    logger.debug("Dispatch of %s finished: %s", service, result.outcome.value)
    return result.response


@router.get(
    "/get-azure-token",
    response_model=SpeechTokenResponse,
    tags=["Speech"],
)
async def get_azure_token(request: Request) -> Response | SpeechTokenResponse:
    """Issue a temporary Azure Speech token and its region."""
    issuer: SpeechTokenIssuer = request.app.state.token_issuer
    try:
        issued = await issuer.issue()
    except GatewayError as e:
        return JSONResponse(status_code=500, content={"error": e.message})
    return SpeechTokenResponse(**issued)
