"""Short-lived Azure Speech token issuance.

The browser talks to Azure Speech directly with a token from here, so
the subscription key itself never leaves the backend.
"""

from __future__ import annotations

import logging

import httpx

from gateway.core.errors import ConfigurationError, GatewayError
from gateway.core.providers.config import ProviderSettings

logger = logging.getLogger(__name__)

TOKEN_URL_TEMPLATE = "https://{region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"


class SpeechTokenIssuer:
    """Exchanges the Azure Speech key for a temporary access token."""

    def __init__(self, settings: ProviderSettings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def issue(self) -> dict[str, str]:
        """Request a token.

        Returns:
            Dict with 'token' and 'region'

        Raises:
            ConfigurationError: If the key or region is not configured
            GatewayError: If Azure refuses or cannot be reached
        """
        api_key = self.settings.lookup("azure_speech_api_key")
        region = self.settings.lookup("azure_region")
        if not api_key or not region:
            raise ConfigurationError(
                "Azure keys missing in the backend",
                setting="azure_speech_api_key" if not api_key else "azure_region",
            )

        try:
            response = await self.client.post(
                TOKEN_URL_TEMPLATE.format(region=region),
                headers={"Ocp-Apim-Subscription-Key": api_key},
                timeout=self.settings.default_timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Failed to generate Azure token: HTTP %d %s",
                e.response.status_code,
                e.response.text,
            )
            raise GatewayError("Failed to generate token", "token_failed") from e
        except httpx.HTTPError as e:
            logger.error("Failed to generate Azure token: %s", e)
            raise GatewayError("Failed to generate token", "token_failed") from e

        return {"token": response.text, "region": region}
