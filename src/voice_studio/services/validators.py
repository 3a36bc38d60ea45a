"""
Input Validation.

Validation happens before any provider call or store mutation so a bad
request never costs quota.

Error codes follow the pattern:
    - {FIELD}_REQUIRED: Missing required field
    - {FIELD}_TOO_LONG: Exceeds max length
    - {FIELD}_OUT_OF_RANGE / {FIELD}_UNSUPPORTED: Value not allowed

Usage:
    try:
        text = validate_text(request.text)
        voice = validate_voice_config(request.voice_name, request.style,
                                      request.temperature, request.language)
    except ValidationError as e:
        return error_response(e.to_dict())
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from voice_studio.core.config import Defaults
from voice_studio.core.errors import InvalidInputError
from voice_studio.core.logging import get_logger, warn
from voice_studio.tts.provider import VoiceConfig
from voice_studio.tts.voices import VOICE_NAMES, find_language

_LOG = get_logger("voice-studio.validators")

MAX_TEXT_CHARS = 200_000
MAX_STYLE_CHARS = 500


class ValidationError(InvalidInputError):
    """
    Raised when input validation fails.

    Attributes:
        reason: Machine-readable reason, e.g. "TEXT_REQUIRED".
    """

    def __init__(self, message: str, reason: str = "VALIDATION_ERROR"):
        super().__init__(message, {"reason": reason})
        self.reason = reason


def validate_text(text: Optional[str], max_length: int = MAX_TEXT_CHARS) -> str:
    """Require non-blank text within ``max_length``; returns it stripped."""
    if not text or not text.strip():
        raise ValidationError("Text is required", "TEXT_REQUIRED")

    text = text.strip()
    if len(text) > max_length:
        raise ValidationError(
            f"Text exceeds maximum length ({len(text)} > {max_length})",
            "TEXT_TOO_LONG",
        )
    return text


def validate_temperature(value: float) -> float:
    if not (Defaults.TEMPERATURE_MIN <= value <= Defaults.TEMPERATURE_MAX):
        raise ValidationError(
            f"Temperature must be between {Defaults.TEMPERATURE_MIN} and {Defaults.TEMPERATURE_MAX}, got {value}",
            "TEMPERATURE_OUT_OF_RANGE",
        )
    return float(value)


def validate_language(code: Optional[str]) -> str:
    """Empty/None disables translation; otherwise the code must be supported."""
    if not code:
        return ""
    code = code.strip().lower()
    if find_language(code) is None:
        raise ValidationError(f"Unsupported language: {code}", "LANGUAGE_UNSUPPORTED")
    return code


def validate_voice_name(name: str) -> str:
    if name not in VOICE_NAMES:
        warn(_LOG, "unknown_voice", voice=name)
        raise ValidationError(f"Unknown voice: {name}", "VOICE_UNSUPPORTED")
    return name


def validate_style(style: Optional[str]) -> str:
    style = (style or "").strip()
    if len(style) > MAX_STYLE_CHARS:
        raise ValidationError(
            f"Style instruction exceeds maximum length ({len(style)} > {MAX_STYLE_CHARS})",
            "STYLE_TOO_LONG",
        )
    return style


def validate_voice_config(
    voice_name: str,
    style: Optional[str] = "",
    temperature: float = Defaults.VOICE_TEMPERATURE,
    language: Optional[str] = Defaults.VOICE_LANGUAGE,
) -> VoiceConfig:
    return VoiceConfig(
        voice_name=validate_voice_name(voice_name),
        style=validate_style(style),
        temperature=validate_temperature(temperature),
        language=validate_language(language),
    )


def validate_credentials(keys: Iterable[Optional[str]]) -> List[str]:
    """Require at least one key and no blank keys; returns stripped keys."""
    cleaned: List[str] = []
    for key in keys:
        key = (key or "").strip()
        if not key:
            raise ValidationError("API keys must not be blank", "CREDENTIAL_BLANK")
        cleaned.append(key)
    if not cleaned:
        raise ValidationError("At least one API key is required", "CREDENTIAL_REQUIRED")
    return cleaned
