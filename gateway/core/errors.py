"""Error taxonomy and normalization for provider dispatch.

Every failure raised while dispatching a request is one of the
GatewayError subclasses below. The normalizer turns them (and raw
transport exceptions) into the caller-visible ``{"error": ...}`` shape.
Internal detail goes to the log, never into the response body.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from gateway.core.providers.registry import ServiceDescriptor

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "API request error"


class GatewayError(Exception):
    """Base class for dispatch failures."""

    status_code: int = 500

    def __init__(self, message: str, code: str = "gateway_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ServiceNotFoundError(GatewayError):
    """Raised when the routed service id has no descriptor."""

    status_code = 400

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__("Invalid service", "invalid_service")


class InvalidRequestError(GatewayError):
    """Raised when the inbound body cannot be turned into an upstream call."""

    status_code = 400

    def __init__(self, message: str, code: str = "invalid_request"):
        super().__init__(message, code)


class UnsupportedLanguageError(InvalidRequestError):
    """Raised when a TTS language label is not in the voice map."""

    def __init__(self, language: str):
        self.language = language
        super().__init__("Not supported language", "unsupported_language")


class ConfigurationError(GatewayError):
    """Raised when a deployment value needed by a service is missing."""

    status_code = 500

    def __init__(self, message: str, setting: str, code: str = "configuration_missing"):
        self.setting = setting
        super().__init__(message, code)


class UpstreamError(GatewayError):
    """Raised when the provider answered with a non-2xx status."""

    def __init__(self, service_name: str, status_code: int, content: bytes = b""):
        self.status_code = status_code
        self.content = content
        super().__init__(
            f"{service_name} responded with HTTP {status_code}", "upstream_error"
        )


class UpstreamTimeoutError(GatewayError):
    """Raised when the provider did not answer in the allotted time."""

    status_code = 504

    def __init__(self, service_name: str):
        super().__init__(f"Timeout in the request to {service_name}", "upstream_timeout")


class RelayError(GatewayError):
    """Raised when a stream fails after bytes have reached the caller.

    Never turned into a response: the only safe action is to end the stream.
    """

    def __init__(self, service_name: str, reason: str):
        super().__init__(f"Stream from {service_name} interrupted: {reason}", "relay_error")


class NormalizedError(BaseModel):
    """Caller-visible error.

    ``body`` carries an upstream JSON document that is relayed verbatim;
    when it is absent the caller gets ``{"error": public_message}``.
    """

    status_code: int = Field(default=500, ge=400, le=599)
    public_message: str = GENERIC_ERROR_MESSAGE
    body: Any = None

    def content(self) -> Any:
        if self.body is not None:
            return self.body
        return {"error": self.public_message}

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.content())


def unknown_error_message(service_name: str) -> str:
    return f"Unknown error with {service_name}"


def decode_error_text(content: bytes) -> str | None:
    """Decode an upstream error payload as text, or None if it is not text."""
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return text


def _upstream_status(status_code: int) -> int:
    # Upstream may send codes outside the error range (e.g. 3xx after redirects are off).
    return status_code if 400 <= status_code <= 599 else 500


def normalize_upstream_json(error: UpstreamError, descriptor: ServiceDescriptor) -> NormalizedError:
    """Relay a non-2xx JSON response; fall back to text, then to a generic message."""
    status_code = _upstream_status(error.status_code)
    try:
        payload = json.loads(error.content)
    except ValueError:
        payload = None

    if payload is not None:
        return NormalizedError(status_code=status_code, body=payload)

    text = decode_error_text(error.content)
    if text:
        return NormalizedError(status_code=status_code, public_message=text)
    return NormalizedError(
        status_code=status_code,
        public_message=unknown_error_message(descriptor.display_name),
    )


def normalize_upstream_binary(error: UpstreamError, descriptor: ServiceDescriptor) -> NormalizedError:
    """Relay a non-2xx binary-path response as decoded text, never as raw bytes."""
    status_code = _upstream_status(error.status_code)
    text = decode_error_text(error.content)
    if text is None:
        logger.error(
            "Undecodable error payload from %s (%d bytes, HTTP %d)",
            descriptor.display_name,
            len(error.content),
            error.status_code,
        )
        return NormalizedError(
            status_code=status_code,
            public_message=unknown_error_message(descriptor.display_name),
        )
    return NormalizedError(status_code=status_code, public_message=text)


def normalize_error(
    exc: BaseException,
    descriptor: ServiceDescriptor | None = None,
) -> NormalizedError:
    """Map any dispatch failure to the fixed caller-visible taxonomy."""
    from gateway.core.providers.registry import ResponseMode

    service_name = descriptor.display_name if descriptor else "unknown service"

    if isinstance(exc, (ServiceNotFoundError, InvalidRequestError, ConfigurationError)):
        return NormalizedError(status_code=exc.status_code, public_message=exc.message)

    if isinstance(exc, UpstreamTimeoutError):
        if descriptor is not None and descriptor.response_mode is ResponseMode.STREAM_TEXT:
            return NormalizedError(status_code=500, public_message=GENERIC_ERROR_MESSAGE)
        return NormalizedError(status_code=504, public_message=exc.message)

    if isinstance(exc, UpstreamError) and descriptor is not None:
        if descriptor.response_mode is ResponseMode.BINARY_AUDIO:
            return normalize_upstream_binary(exc, descriptor)
        return normalize_upstream_json(exc, descriptor)

    if isinstance(exc, httpx.TimeoutException) and descriptor is not None:
        return normalize_error(UpstreamTimeoutError(service_name), descriptor)

    if (
        isinstance(exc, httpx.HTTPError)
        and descriptor is not None
        and descriptor.response_mode is ResponseMode.BINARY_AUDIO
    ):
        return NormalizedError(
            status_code=500,
            public_message=unknown_error_message(service_name),
        )

    return NormalizedError(status_code=500, public_message=GENERIC_ERROR_MESSAGE)


__all__ = [
    "GENERIC_ERROR_MESSAGE",
    "GatewayError",
    "ServiceNotFoundError",
    "InvalidRequestError",
    "UnsupportedLanguageError",
    "ConfigurationError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "RelayError",
    "NormalizedError",
    "unknown_error_message",
    "decode_error_text",
    "normalize_error",
]
