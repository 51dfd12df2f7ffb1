"""Request transformers - inbound body to upstream request.

One transformer per provider kind. Each returns a complete
OutboundRequest value and never touches shared state, so the same
inbound body and configuration always produce the same request.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from gateway.core.errors import ConfigurationError, InvalidRequestError
from gateway.core.providers.registry import ProviderKind, ServiceDescriptor

SENSITIVE_HEADERS = frozenset({"authorization", "api-key", "xi-api-key", "ocp-apim-subscription-key"})


@dataclass(frozen=True)
class ResolvedConfig:
    """Deployment values resolved for one dispatch."""
    credential: str
    params: dict[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"ResolvedConfig(credential='***', params={self.params!r})"


@dataclass(frozen=True)
class OutboundRequest:
    """Fully materialized upstream request."""
    url: str
    headers: dict[str, str]
    body: Any
    method: str = "POST"

    def redacted_headers(self) -> dict[str, str]:
        return {
            name: ("***" if name.lower() in SENSITIVE_HEADERS else value)
            for name, value in self.headers.items()
        }

    def __repr__(self) -> str:
        return (
            f"OutboundRequest(method={self.method!r}, url={self.url!r}, "
            f"headers={self.redacted_headers()!r})"
        )


class RequestTransformer(ABC):
    """Base class for per-provider request building."""

    kind: ProviderKind

    @abstractmethod
    def build(
        self,
        descriptor: ServiceDescriptor,
        config: ResolvedConfig,
        body: Any,
    ) -> OutboundRequest:
        """Build the upstream request.

        Args:
            descriptor: Service being dispatched
            config: Credential and endpoint values for this dispatch
            body: Parsed inbound JSON body (None if absent or unparseable)

        Returns:
            OutboundRequest ready for the transport

        Raises:
            InvalidRequestError: If the body cannot be sent upstream
        """

    def headers(self, descriptor: ServiceDescriptor, config: ResolvedConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(descriptor.credential_header(config.credential))
        return headers


class ChatCompletionTransformer(RequestTransformer):
    """Passes a provider-native chat payload through unmodified.

    Serves every chat backend; Azure and direct OpenAI differ only in
    descriptor data (URL template, credential header).
    """

    kind = ProviderKind.CHAT_COMPLETION

    def build(
        self,
        descriptor: ServiceDescriptor,
        config: ResolvedConfig,
        body: Any,
    ) -> OutboundRequest:
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")

        params = {name: value.rstrip("/") for name, value in config.params.items()}
        return OutboundRequest(
            url=descriptor.endpoint_template.format(**params),
            headers=self.headers(descriptor, config),
            body=body,
        )


class TextToSpeechTransformer(RequestTransformer):
    """Builds a fixed-shape synthesis request for the selected language."""

    kind = ProviderKind.TEXT_TO_SPEECH

    def build(
        self,
        descriptor: ServiceDescriptor,
        config: ResolvedConfig,
        body: Any,
    ) -> OutboundRequest:
        if not isinstance(body, dict):
            raise InvalidRequestError("Request body must be a JSON object")
        if descriptor.voices is None:
            raise ConfigurationError(
                f"{descriptor.display_name} configuration missing",
                setting="tts_extra_voices",
                code="voices_missing",
            )

        voice_id = descriptor.voices.resolve(body.get("selectedLanguage"))

        text = body.get("text")
        if not isinstance(text, str) or not text.strip():
            raise InvalidRequestError("Missing text", "missing_text")

        params = dict(config.params)
        params["voice_id"] = voice_id
        return OutboundRequest(
            url=descriptor.endpoint_template.format(**params),
            headers=self.headers(descriptor, config),
            body={"text": text, **copy.deepcopy(descriptor.fixed_body)},
        )


DEFAULT_TRANSFORMERS: dict[ProviderKind, RequestTransformer] = {
    ProviderKind.CHAT_COMPLETION: ChatCompletionTransformer(),
    ProviderKind.TEXT_TO_SPEECH: TextToSpeechTransformer(),
}


__all__ = [
    "ResolvedConfig",
    "OutboundRequest",
    "RequestTransformer",
    "ChatCompletionTransformer",
    "TextToSpeechTransformer",
    "DEFAULT_TRANSFORMERS",
]
