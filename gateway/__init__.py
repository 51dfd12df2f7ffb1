"""Provider gateway: one request surface over chat, TTS and speech-token providers."""

__version__ = "1.0.0"
