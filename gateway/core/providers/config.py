"""Provider configuration.

Values are read once at process start. Credentials are optional here:
a missing key is reported when a request for that provider arrives, so
one unconfigured provider does not take the whole gateway down.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Provider credentials and endpoints loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream timeouts, in seconds
    default_timeout_seconds: float = Field(default=60.0, gt=0)
    chat_timeout_seconds: float = Field(default=320.0, gt=0)

    # Chat completion backend: "azure" or "openai"
    chat_provider: Literal["azure", "openai"] = "azure"

    # Azure OpenAI
    azure_openai_key_simulateur: SecretStr | None = None
    azure_openai_endpoint_simulateur: str | None = None
    azure_openai_deployment_simulateur: str | None = None
    azure_openai_api_version: str | None = None

    # OpenAI (direct)
    openai_api_key_simulateur: SecretStr | None = None
    openai_api_key_analyse: SecretStr | None = None
    openai_base_url: str = "https://api.openai.com/v1"

    # ElevenLabs
    elevenlab_api_key: SecretStr | None = None
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_model_id: str = "eleven_flash_v2_5"
    tts_extra_voices: dict[str, str] = Field(
        default_factory=dict,
        description="Additional language label -> voice id entries (JSON object)",
    )

    # Azure Speech token issuer
    azure_speech_api_key: SecretStr | None = None
    azure_region: str | None = None

    def lookup(self, name: str) -> str | None:
        """Return a configured value by field name, unwrapping secrets.

        Blank values count as missing.
        """
        value = getattr(self, name, None)
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        if value is None:
            return None
        value = str(value).strip()
        return value or None
