"""Dispatcher - routes one inbound request to its upstream provider.

Every request ends in exactly one of three outcomes:

- RELAYED: the upstream result was handed to the caller
- REJECTED: the request was refused before any upstream call
- UPSTREAM_FAILED: the upstream call was made and failed

Exactly one response is produced per request. Failures inside an
already-started stream are absorbed by the stream relay.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import httpx
from fastapi import Response
from pydantic import BaseModel, ConfigDict

from gateway.core.errors import (
    ConfigurationError,
    GatewayError,
    InvalidRequestError,
    NormalizedError,
    ServiceNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
    normalize_error,
)
from gateway.core.dispatch.relay import get_relay
from gateway.core.dispatch.transformers import (
    DEFAULT_TRANSFORMERS,
    OutboundRequest,
    RequestTransformer,
    ResolvedConfig,
)
from gateway.core.providers.config import ProviderSettings
from gateway.core.providers.registry import (
    ProviderKind,
    ProviderRegistry,
    ResponseMode,
    ServiceDescriptor,
)

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    """Terminal state of a dispatched request."""
    RELAYED = "relayed"
    REJECTED = "rejected"
    UPSTREAM_FAILED = "upstream_failed"


class DispatchResult(BaseModel):
    """Outcome of a dispatch plus the response to send."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: DispatchOutcome
    response: Response
    service_id: str
    error: NormalizedError | None = None


class Dispatcher:
    """Resolves, transforms, calls and relays provider requests.

    Holds only read-only state (registry, settings snapshot, shared HTTP
    client), so concurrent requests never interfere with each other.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        settings: ProviderSettings,
        client: httpx.AsyncClient,
        transformers: dict[ProviderKind, RequestTransformer] | None = None,
    ):
        self.registry = registry
        self.settings = settings
        self.client = client
        self.transformers = transformers or DEFAULT_TRANSFORMERS

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def resolve_config(self, descriptor: ServiceDescriptor) -> ResolvedConfig:
        """Resolve credential and endpoint values for a service.

        Raises:
            ConfigurationError: If any required value is missing
        """
        credential = self.settings.lookup(descriptor.credential_ref)
        if credential is None:
            raise ConfigurationError(
                f"{descriptor.display_name} API key missing",
                setting=descriptor.credential_ref,
                code="credential_missing",
            )

        params: dict[str, str] = {}
        for placeholder, setting in descriptor.endpoint_params.items():
            value = self.settings.lookup(setting)
            if value is None:
                raise ConfigurationError(
                    f"{descriptor.display_name} configuration missing",
                    setting=setting,
                )
            params[placeholder] = value

        return ResolvedConfig(credential=credential, params=params)

    def is_configured(self, descriptor: ServiceDescriptor) -> bool:
        try:
            self.resolve_config(descriptor)
        except ConfigurationError:
            return False
        return True

    def timeout_for(self, descriptor: ServiceDescriptor) -> httpx.Timeout:
        seconds = descriptor.timeout
        if seconds is None:
            seconds = self.settings.default_timeout_seconds
        return httpx.Timeout(seconds)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def prepare(self, service_id: str, body: Any) -> tuple[ServiceDescriptor, OutboundRequest]:
        """Resolve and transform without any I/O.

        Raises:
            ServiceNotFoundError: Unknown service id
            ConfigurationError: Missing deployment value
            InvalidRequestError: Body cannot be sent upstream
        """
        descriptor = self.registry.resolve(service_id)
        config = self.resolve_config(descriptor)
        transformer = self.transformers[descriptor.kind]
        return descriptor, transformer.build(descriptor, config, body)

    async def send(self, descriptor: ServiceDescriptor, outbound: OutboundRequest) -> httpx.Response:
        """Issue the upstream call, leaving the body unread."""
        request = self.client.build_request(
            outbound.method,
            outbound.url,
            headers=outbound.headers,
            json=outbound.body,
            timeout=self.timeout_for(descriptor),
        )
        return await self.client.send(request, stream=True)

    async def dispatch(self, service_id: str, body: Any) -> DispatchResult:
        """Handle one inbound request end to end."""
        descriptor: ServiceDescriptor | None = None
        try:
            descriptor, outbound = self.prepare(service_id, body)
        except (ServiceNotFoundError, ConfigurationError, InvalidRequestError) as exc:
            return self._rejected(service_id, exc, descriptor)
        except Exception as exc:
            logger.exception("Unexpected error preparing %s", service_id)
            return self._rejected(service_id, exc, descriptor)

        logger.info("Dispatching %s -> %s", service_id, outbound.url.split("?", 1)[0])
        if descriptor.kind is ProviderKind.CHAT_COMPLETION:
            logger.debug("Request body for %s: %s", service_id, outbound.body)

        relay = get_relay(descriptor.response_mode)
        try:
            upstream = await self.send(descriptor, outbound)
            response = await relay(upstream, descriptor)
        except httpx.TimeoutException:
            return self._failed(service_id, UpstreamTimeoutError(descriptor.display_name), descriptor)
        except (httpx.HTTPError, GatewayError) as exc:
            return self._failed(service_id, exc, descriptor)
        except Exception as exc:
            logger.exception("Unexpected error dispatching %s", service_id)
            return self._failed(service_id, exc, descriptor)

        return DispatchResult(
            outcome=DispatchOutcome.RELAYED,
            response=response,
            service_id=service_id,
        )

    # -------------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------------

    def _rejected(
        self,
        service_id: str,
        exc: Exception,
        descriptor: ServiceDescriptor | None,
    ) -> DispatchResult:
        if isinstance(exc, ConfigurationError):
            logger.error("Service %s misconfigured: %s not set", service_id, exc.setting)
        elif isinstance(exc, GatewayError):
            logger.warning("Rejected request for %s: %s", service_id, exc.message)

        error = normalize_error(exc, descriptor)
        return DispatchResult(
            outcome=DispatchOutcome.REJECTED,
            response=error.to_response(),
            service_id=service_id,
            error=error,
        )

    def _failed(
        self,
        service_id: str,
        exc: BaseException,
        descriptor: ServiceDescriptor,
    ) -> DispatchResult:
        if isinstance(exc, UpstreamError):
            logger.error(
                "Upstream error from %s: HTTP %d, %d bytes",
                descriptor.display_name,
                exc.status_code,
                len(exc.content),
            )
            if descriptor.response_mode is not ResponseMode.BINARY_AUDIO:
                logger.error(
                    "Upstream error body from %s: %s",
                    descriptor.display_name,
                    exc.content.decode("utf-8", errors="replace"),
                )
        elif isinstance(exc, (GatewayError, httpx.HTTPError)):
            logger.error("API error %s: %s", service_id, exc)
        # Anything else was already logged with its traceback

        error = normalize_error(exc, descriptor)
        return DispatchResult(
            outcome=DispatchOutcome.UPSTREAM_FAILED,
            response=error.to_response(),
            service_id=service_id,
            error=error,
        )


__all__ = [
    "DispatchOutcome",
    "DispatchResult",
    "Dispatcher",
]
