"""
Configuration Management for voice-studio.

Configuration Hierarchy (highest priority first):
    1. Environment variables (VOICE_STUDIO_SYSTEM_KEY, VOICE_STUDIO_LOG_LEVEL, ...)
    2. YAML config file (config/settings.yaml, or VOICE_STUDIO_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    segmentation:
      max_words: 100

    quota:
      max_usage: 10
      window_seconds: 7200

    provider:
      name: gemini
      tts_model: gemini-2.5-flash-preview-tts

    voice:
      name: Puck
      language: vi
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict
import os
import yaml


class ConfigValidationError(ValueError):
    """Raised when a configuration value is out of bounds or malformed."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Segmentation: text partitioning
        - Quota: shared-credential usage window
        - Audio: PCM layout returned by the provider
        - Provider: remote synthesis endpoint
        - Voice: default generation parameters
        - Storage: persisted credentials/usage and output files
        - Logging
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Segmentation
    # ─────────────────────────────────────────────────────────────────────────
    SEGMENTATION_MAX_WORDS = 100        # Words per segment before a flush

    # ─────────────────────────────────────────────────────────────────────────
    # Quota (shared credential only)
    # ─────────────────────────────────────────────────────────────────────────
    QUOTA_MAX_USAGE = 10                # Successful generations per window
    QUOTA_WINDOW_SECONDS = 2 * 60 * 60  # 2 hours

    # ─────────────────────────────────────────────────────────────────────────
    # Audio
    # ─────────────────────────────────────────────────────────────────────────
    AUDIO_SAMPLE_RATE = 24000
    AUDIO_CHANNELS = 1
    AUDIO_BITS_PER_SAMPLE = 16

    # ─────────────────────────────────────────────────────────────────────────
    # Provider
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_NAME = "gemini"
    PROVIDER_TTS_MODEL = "gemini-2.5-flash-preview-tts"
    PROVIDER_TEXT_MODEL = "gemini-2.5-flash"
    PROVIDER_TIMEOUT_S = 60.0

    # ─────────────────────────────────────────────────────────────────────────
    # Voice
    # ─────────────────────────────────────────────────────────────────────────
    VOICE_NAME = "Puck"
    VOICE_STYLE = ""
    VOICE_TEMPERATURE = 1.0
    VOICE_LANGUAGE = "vi"
    TEMPERATURE_MIN = 0.0
    TEMPERATURE_MAX = 2.0

    # ─────────────────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_STATE_FILE = "./storage/state.json"
    STORAGE_OUTPUT_DIR = "./output"

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 60
    LOGGING_LEVEL = 2


@dataclass
class SegmentationConfig:
    max_words: int = Defaults.SEGMENTATION_MAX_WORDS


@dataclass
class QuotaConfig:
    """
    Usage window for the shared (system) credential.

    User-supplied credentials are never counted against this quota.
    """
    max_usage: int = Defaults.QUOTA_MAX_USAGE
    window_seconds: float = Defaults.QUOTA_WINDOW_SECONDS


@dataclass
class AudioConfig:
    """Layout of the raw PCM stream returned by the provider."""
    sample_rate: int = Defaults.AUDIO_SAMPLE_RATE
    channels: int = Defaults.AUDIO_CHANNELS
    bits_per_sample: int = Defaults.AUDIO_BITS_PER_SAMPLE


@dataclass
class ProviderConfig:
    name: str = Defaults.PROVIDER_NAME
    tts_model: str = Defaults.PROVIDER_TTS_MODEL
    text_model: str = Defaults.PROVIDER_TEXT_MODEL
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S


@dataclass
class VoiceDefaults:
    """Default generation parameters used when a caller gives none."""
    name: str = Defaults.VOICE_NAME
    style: str = Defaults.VOICE_STYLE
    temperature: float = Defaults.VOICE_TEMPERATURE
    language: str = Defaults.VOICE_LANGUAGE


@dataclass
class StorageConfig:
    state_file: str = Defaults.STORAGE_STATE_FILE
    output_dir: str = Defaults.STORAGE_OUTPUT_DIR


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL, 2 = NORMAL (default), 3 = VERBOSE, 4 = DEBUG
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class StudioConfig:
    """
    Validated configuration for StudioService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = StudioConfig.from_settings(settings)
        print(config.quota.max_usage)
    """
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    voice: VoiceDefaults = field(default_factory=VoiceDefaults)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "StudioConfig":
        """
        Build a validated StudioConfig from raw Settings.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Segmentation
        # ─────────────────────────────────────────────────────────────────────
        seg_raw = raw.get("segmentation", {}) or {}
        segmentation = SegmentationConfig(
            max_words=int(seg_raw.get("max_words", Defaults.SEGMENTATION_MAX_WORDS)),
        )
        cls._validate_positive("segmentation.max_words", segmentation.max_words)

        # ─────────────────────────────────────────────────────────────────────
        # Quota
        # ─────────────────────────────────────────────────────────────────────
        quota_raw = raw.get("quota", {}) or {}
        quota = QuotaConfig(
            max_usage=int(quota_raw.get("max_usage", Defaults.QUOTA_MAX_USAGE)),
            window_seconds=float(quota_raw.get("window_seconds", Defaults.QUOTA_WINDOW_SECONDS)),
        )
        cls._validate_non_negative("quota.max_usage", quota.max_usage)
        cls._validate_positive("quota.window_seconds", quota.window_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Audio
        # ─────────────────────────────────────────────────────────────────────
        audio_raw = raw.get("audio", {}) or {}
        audio = AudioConfig(
            sample_rate=int(audio_raw.get("sample_rate", Defaults.AUDIO_SAMPLE_RATE)),
            channels=int(audio_raw.get("channels", Defaults.AUDIO_CHANNELS)),
            bits_per_sample=int(audio_raw.get("bits_per_sample", Defaults.AUDIO_BITS_PER_SAMPLE)),
        )
        cls._validate_positive("audio.sample_rate", audio.sample_rate)
        cls._validate_range("audio.channels", audio.channels, 1, 8)
        if audio.bits_per_sample not in (8, 16, 24, 32):
            raise ConfigValidationError(
                f"audio.bits_per_sample must be 8, 16, 24 or 32, got {audio.bits_per_sample}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Provider
        # ─────────────────────────────────────────────────────────────────────
        provider_raw = raw.get("provider", {}) or {}
        provider = ProviderConfig(
            name=str(provider_raw.get("name", Defaults.PROVIDER_NAME)).strip().lower(),
            tts_model=str(provider_raw.get("tts_model", Defaults.PROVIDER_TTS_MODEL)),
            text_model=str(provider_raw.get("text_model", Defaults.PROVIDER_TEXT_MODEL)),
            timeout_s=float(provider_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
        )
        cls._validate_positive("provider.timeout_s", provider.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Voice defaults
        # ─────────────────────────────────────────────────────────────────────
        voice_raw = raw.get("voice", {}) or {}
        voice = VoiceDefaults(
            name=str(voice_raw.get("name", Defaults.VOICE_NAME)),
            style=str(voice_raw.get("style", Defaults.VOICE_STYLE) or ""),
            temperature=float(voice_raw.get("temperature", Defaults.VOICE_TEMPERATURE)),
            language=str(voice_raw.get("language", Defaults.VOICE_LANGUAGE) or ""),
        )
        cls._validate_range(
            "voice.temperature", voice.temperature,
            Defaults.TEMPERATURE_MIN, Defaults.TEMPERATURE_MAX,
        )

        # ─────────────────────────────────────────────────────────────────────
        # Storage
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            state_file=str(storage_raw.get("state_file", Defaults.STORAGE_STATE_FILE)),
            output_dir=str(storage_raw.get("output_dir", Defaults.STORAGE_OUTPUT_DIR)),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.strip().upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            segmentation=segmentation,
            quota=quota,
            audio=audio,
            provider=provider,
            voice=voice,
            storage=storage,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable raw settings loaded from YAML.

    Use get_studio_config() for the validated, typed view.
    """
    raw: Dict[str, Any]

    @property
    def system_key(self) -> str:
        """Shared credential, if one is configured (env wins over file)."""
        env = os.getenv("VOICE_STUDIO_SYSTEM_KEY")
        if env:
            return env.strip()
        return str(self.raw.get("credentials", {}).get("system_key", "") or "").strip()

    @property
    def provider_name(self) -> str:
        return str(self.raw.get("provider", {}).get("name", Defaults.PROVIDER_NAME)).strip().lower()

    @property
    def sample_rate(self) -> int:
        return int(self.raw.get("audio", {}).get("sample_rate", Defaults.AUDIO_SAMPLE_RATE))

    def get_studio_config(self) -> StudioConfig:
        """
        Raises:
            ConfigValidationError: If validation fails.
        """
        return StudioConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml", missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML file.
        missing_ok: Return empty settings (all defaults) instead of raising
            when the file does not exist.

    Raises:
        FileNotFoundError: If the file doesn't exist and missing_ok is False.
    """
    p = Path(path)
    if not p.exists():
        if missing_ok:
            return Settings(raw={})
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=raw)
