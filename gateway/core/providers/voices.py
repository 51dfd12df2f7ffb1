"""Language label to TTS voice mapping."""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gateway.core.errors import UnsupportedLanguageError


# Labels as sent by the client application (French names of the languages)
DEFAULT_VOICES: dict[str, str] = {
    "espagnol": "l1zE9xgNpUTaQCZzpNJa",
    "français": "1a3lMdKLUcfcMtvN772u",
    "anglais": "7tRwuZTD1EWi6nydVerp",
    "italien": "HuK8QKF35exsCh2e7fLT",
}


def normalize_label(label: Any) -> str:
    """Trim and lowercase a language label. Non-strings normalize to ''."""
    if not isinstance(label, str):
        return ""
    return label.strip().lower()


class VoiceMap(BaseModel):
    """Immutable mapping from a normalized language label to a voice id.

    Lookups ignore case and surrounding whitespace. A miss raises
    UnsupportedLanguageError instead of falling back to a default voice.
    """

    model_config = ConfigDict(frozen=True)

    voices: dict[str, str] = Field(default_factory=dict)

    @field_validator("voices", mode="before")
    @classmethod
    def _normalize_keys(cls, value: Mapping[str, str]) -> dict[str, str]:
        normalized: dict[str, str] = {}
        for label, voice_id in dict(value).items():
            key = normalize_label(label)
            if not key:
                raise ValueError(f"Invalid language label: {label!r}")
            normalized[key] = voice_id
        return normalized

    @classmethod
    def with_defaults(cls, extra: Mapping[str, str] | None = None) -> VoiceMap:
        """Build the default map, with ``extra`` entries added or overriding."""
        voices = dict(DEFAULT_VOICES)
        voices.update(extra or {})
        return cls(voices=voices)

    def resolve(self, label: Any) -> str:
        """Return the voice id for a label."""
        key = normalize_label(label)
        voice_id = self.voices.get(key)
        if voice_id is None:
            raise UnsupportedLanguageError(key)
        return voice_id

    def __contains__(self, label: object) -> bool:
        return normalize_label(label) in self.voices

    def languages(self) -> list[str]:
        return sorted(self.voices)
