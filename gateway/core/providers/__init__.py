"""Provider Registry - static service configuration.

Descriptors and voice maps are built once from settings and never
change for the life of the process.
"""

from .config import ProviderSettings

from .voices import (
    DEFAULT_VOICES,
    VoiceMap,
    normalize_label,
)

from .registry import (
    ResponseMode,
    ProviderKind,
    ServiceDescriptor,
    ProviderRegistry,
    SIMULATEUR_SERVICE_ID,
    ANALYSE_SERVICE_ID,
    ELEVENLABS_SERVICE_ID,
    default_services,
    build_registry,
)


__all__ = [
    # Config
    "ProviderSettings",

    # Voices
    "DEFAULT_VOICES",
    "VoiceMap",
    "normalize_label",

    # Registry
    "ResponseMode",
    "ProviderKind",
    "ServiceDescriptor",
    "ProviderRegistry",
    "SIMULATEUR_SERVICE_ID",
    "ANALYSE_SERVICE_ID",
    "ELEVENLABS_SERVICE_ID",
    "default_services",
    "build_registry",
]
