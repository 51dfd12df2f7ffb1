"""Provider Registry - logical service id to upstream configuration.

Descriptors are data: which credential to use, how to build the URL,
how the upstream answers. Adding a provider variant means adding a
descriptor, not another branch in the dispatcher.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

from gateway.core.errors import ServiceNotFoundError
from gateway.core.providers.config import ProviderSettings
from gateway.core.providers.voices import VoiceMap

logger = logging.getLogger(__name__)


class ResponseMode(str, Enum):
    """How the upstream delivers its result."""
    STREAM_TEXT = "stream_text"  # Server-sent events, relayed chunk by chunk
    JSON = "json"  # Buffered JSON document
    BINARY_AUDIO = "binary_audio"  # Buffered audio payload


class ProviderKind(str, Enum):
    """Selects the request transformer for a service."""
    CHAT_COMPLETION = "chat_completion"
    TEXT_TO_SPEECH = "text_to_speech"


class ServiceDescriptor(BaseModel):
    """Immutable configuration record for one routed service."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    kind: ProviderKind
    response_mode: ResponseMode

    # Name of the ProviderSettings field holding the secret
    credential_ref: str
    auth_header: str = "Authorization"
    auth_scheme: str | None = None  # e.g. "Bearer"

    # URL template; placeholders come from endpoint_params (settings field
    # names) or from the transformer (e.g. {voice_id})
    endpoint_template: str
    endpoint_params: dict[str, str] = Field(default_factory=dict)

    timeout: float | None = None
    fixed_body: dict[str, Any] = Field(default_factory=dict)
    voices: VoiceMap | None = None

    def credential_header(self, credential: str) -> dict[str, str]:
        value = f"{self.auth_scheme} {credential}" if self.auth_scheme else credential
        return {self.auth_header: value}


class ProviderRegistry:
    """Lookup table of service descriptors. Read-only after construction."""

    def __init__(self, descriptors: Iterable[ServiceDescriptor] = ()):
        self._services: dict[str, ServiceDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._services:
                raise ValueError(f"Duplicate service id: {descriptor.id}")
            self._services[descriptor.id] = descriptor

    def resolve(self, service_id: str) -> ServiceDescriptor:
        """Return the descriptor for a routed service id."""
        descriptor = self._services.get(service_id)
        if descriptor is None:
            raise ServiceNotFoundError(service_id)
        return descriptor

    def services(self) -> list[ServiceDescriptor]:
        return list(self._services.values())

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._services

    def __len__(self) -> int:
        return len(self._services)


# =============================================================================
# Default services
# =============================================================================

SIMULATEUR_SERVICE_ID = "openaiSimulateur"
ANALYSE_SERVICE_ID = "openaiAnalyse"
ELEVENLABS_SERVICE_ID = "elevenlabs"

AZURE_CHAT_TEMPLATE = (
    "{endpoint}/openai/deployments/{deployment}/chat/completions?api-version={api_version}"
)
AZURE_CHAT_PARAMS = {
    "endpoint": "azure_openai_endpoint_simulateur",
    "deployment": "azure_openai_deployment_simulateur",
    "api_version": "azure_openai_api_version",
}

TTS_VOICE_SETTINGS = {
    "stability": 0.6,
    "similarity_boost": 0.7,
    "style": 0.1,
}


def _chat_descriptor(
    settings: ProviderSettings,
    service_id: str,
    display_name: str,
    response_mode: ResponseMode,
    openai_key_ref: str,
) -> ServiceDescriptor:
    if settings.chat_provider == "openai":
        return ServiceDescriptor(
            id=service_id,
            display_name=display_name,
            kind=ProviderKind.CHAT_COMPLETION,
            response_mode=response_mode,
            credential_ref=openai_key_ref,
            auth_header="Authorization",
            auth_scheme="Bearer",
            endpoint_template=f"{settings.openai_base_url.rstrip('/')}/chat/completions",
            timeout=settings.chat_timeout_seconds,
        )

    # Both chat services share the one Azure deployment
    return ServiceDescriptor(
        id=service_id,
        display_name=display_name,
        kind=ProviderKind.CHAT_COMPLETION,
        response_mode=response_mode,
        credential_ref="azure_openai_key_simulateur",
        auth_header="api-key",
        endpoint_template=AZURE_CHAT_TEMPLATE,
        endpoint_params=AZURE_CHAT_PARAMS,
        timeout=settings.chat_timeout_seconds,
    )


def default_services(settings: ProviderSettings) -> list[ServiceDescriptor]:
    """Build the descriptors served by the gateway."""
    return [
        _chat_descriptor(
            settings,
            SIMULATEUR_SERVICE_ID,
            "OpenAI Simulateur",
            ResponseMode.STREAM_TEXT,
            "openai_api_key_simulateur",
        ),
        _chat_descriptor(
            settings,
            ANALYSE_SERVICE_ID,
            "OpenAI Analyse",
            ResponseMode.JSON,
            "openai_api_key_analyse",
        ),
        ServiceDescriptor(
            id=ELEVENLABS_SERVICE_ID,
            display_name="ElevenLabs",
            kind=ProviderKind.TEXT_TO_SPEECH,
            response_mode=ResponseMode.BINARY_AUDIO,
            credential_ref="elevenlab_api_key",
            auth_header="xi-api-key",
            endpoint_template=(
                f"{settings.elevenlabs_base_url.rstrip('/')}/text-to-speech/{{voice_id}}/stream"
            ),
            fixed_body={
                "model_id": settings.elevenlabs_model_id,
                "voice_settings": dict(TTS_VOICE_SETTINGS),
            },
            voices=VoiceMap.with_defaults(settings.tts_extra_voices),
        ),
    ]


def build_registry(settings: ProviderSettings) -> ProviderRegistry:
    """Create the registry for a settings snapshot."""
    registry = ProviderRegistry(default_services(settings))
    logger.info(
        "ProviderRegistry initialized with %d services (chat backend: %s)",
        len(registry),
        settings.chat_provider,
    )
    return registry


__all__ = [
    "ResponseMode",
    "ProviderKind",
    "ServiceDescriptor",
    "ProviderRegistry",
    "SIMULATEUR_SERVICE_ID",
    "ANALYSE_SERVICE_ID",
    "ELEVENLABS_SERVICE_ID",
    "TTS_VOICE_SETTINGS",
    "default_services",
    "build_registry",
]
