"""
Configuration Management for ssml-studio.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (AZURE_SPEECH_KEY, SSML_STUDIO_LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    ssml:
      global_voice: en-US-JennyNeural
      global_language: en-US

    azure:
      keys:
        - id: primary
          speech_key: "..."
          speech_region: eastasia
          total_quota: 500000

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or of the wrong type."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - SSML: Document-level voice defaults and prosody neutrals
        - Azure: Speech endpoint and credential quota defaults
        - Audio: Where synthesized files land and how they are served
        - Voices: Catalog caching
        - Sessions: Editing session registry limits
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # SSML Document Defaults
    # ─────────────────────────────────────────────────────────────────────────
    SSML_GLOBAL_VOICE = "zh-CN-XiaoxiaoNeural"  # Voice for text outside segments
    SSML_GLOBAL_LANGUAGE = "zh-CN"              # xml:lang of the speak element
    SSML_RATE = 1.0                             # Neutral speaking rate multiplier
    SSML_PITCH = 0                              # Neutral pitch shift in Hz
    SSML_VOLUME = 100                           # Neutral volume in percent
    SSML_STYLE_DEGREE = 1.0                     # Neutral emotion intensity
    SSML_MAX_TEXT_CHARS = 5000                  # Longest accepted source text

    # ─────────────────────────────────────────────────────────────────────────
    # Azure Speech
    # ─────────────────────────────────────────────────────────────────────────
    AZURE_OUTPUT_FORMAT = "audio-16khz-128kbitrate-mono-mp3"
    AZURE_TIMEOUT_S = 30.0              # Per-request HTTP timeout
    AZURE_USER_AGENT = "ssml-studio"
    AZURE_KEY_TOTAL_QUOTA = 500_000     # Characters per credential (F0 tier)

    # ─────────────────────────────────────────────────────────────────────────
    # Audio Output
    # ─────────────────────────────────────────────────────────────────────────
    AUDIO_BASE_DIR = "./public/uploads/tts"
    AUDIO_URL_PREFIX = "/uploads/tts"
    AUDIO_EXTENSION = "mp3"

    # ─────────────────────────────────────────────────────────────────────────
    # Voice Catalog
    # ─────────────────────────────────────────────────────────────────────────
    VOICES_CACHE_TTL_SECONDS = 3600     # Re-fetch the catalog hourly
    VOICES_ONLY_GA = True               # Hide preview voices

    # ─────────────────────────────────────────────────────────────────────────
    # Editing Sessions
    # ─────────────────────────────────────────────────────────────────────────
    SESSIONS_MAX = 256                  # Live sessions kept in memory
    SESSIONS_IDLE_TTL_SECONDS = 3600    # Idle sessions expire after 1 hour

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 60     # Characters of text shown in logs
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class SSMLConfig:
    """Document-level defaults used when a request leaves them out."""
    global_voice: str = Defaults.SSML_GLOBAL_VOICE
    global_language: str = Defaults.SSML_GLOBAL_LANGUAGE
    max_text_chars: int = Defaults.SSML_MAX_TEXT_CHARS


@dataclass
class AzureKeyConfig:
    """
    One Azure Speech credential.

    Several credentials form a pool; the backend picks the active one
    with the most remaining quota.
    """
    id: str
    speech_key: str
    speech_region: str
    total_quota: int = Defaults.AZURE_KEY_TOTAL_QUOTA
    used_quota: int = 0
    is_active: bool = True


@dataclass
class AzureConfig:
    """Azure Speech endpoint settings and the credential pool."""
    keys: List[AzureKeyConfig] = field(default_factory=list)
    output_format: str = Defaults.AZURE_OUTPUT_FORMAT
    timeout_s: float = Defaults.AZURE_TIMEOUT_S
    user_agent: str = Defaults.AZURE_USER_AGENT


@dataclass
class AudioConfig:
    """Where synthesized audio is written and the URL prefix it is served under."""
    base_dir: str = Defaults.AUDIO_BASE_DIR
    url_prefix: str = Defaults.AUDIO_URL_PREFIX
    extension: str = Defaults.AUDIO_EXTENSION


@dataclass
class VoicesConfig:
    """
    Voice catalog configuration.

    If ``file`` is set the catalog is read from that YAML/JSON file
    instead of the Azure voices-list endpoint.
    """
    file: Optional[str] = None
    cache_ttl_seconds: int = Defaults.VOICES_CACHE_TTL_SECONDS
    only_ga: bool = Defaults.VOICES_ONLY_GA


@dataclass
class SessionsConfig:
    max_sessions: int = Defaults.SESSIONS_MAX
    idle_ttl_seconds: int = Defaults.SESSIONS_IDLE_TTL_SECONDS


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, failures only
        2 = NORMAL: Synthesis lifecycle, session events (default)
        3 = VERBOSE: Compile timings, store mutations
        4 = DEBUG: Full markup and patch contents
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class StudioConfig:
    """
    Validated configuration for the whole service.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = StudioConfig.from_settings(settings)
        print(config.ssml.global_voice)
    """
    ssml: SSMLConfig = field(default_factory=SSMLConfig)
    azure: AzureConfig = field(default_factory=AzureConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    voices: VoicesConfig = field(default_factory=VoicesConfig)
    sessions: SessionsConfig = field(default_factory=SessionsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "StudioConfig":
        """
        Create StudioConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated StudioConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # SSML defaults
        # ─────────────────────────────────────────────────────────────────────
        ssml_raw = raw.get("ssml", {}) or {}
        ssml = SSMLConfig(
            global_voice=str(ssml_raw.get("global_voice", Defaults.SSML_GLOBAL_VOICE)),
            global_language=str(ssml_raw.get("global_language", Defaults.SSML_GLOBAL_LANGUAGE)),
            max_text_chars=int(ssml_raw.get("max_text_chars", Defaults.SSML_MAX_TEXT_CHARS)),
        )
        cls._validate_non_empty("ssml.global_voice", ssml.global_voice)
        cls._validate_non_empty("ssml.global_language", ssml.global_language)
        cls._validate_positive("ssml.max_text_chars", ssml.max_text_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Azure credentials and endpoint
        # ─────────────────────────────────────────────────────────────────────
        azure_raw = raw.get("azure", {}) or {}
        keys: List[AzureKeyConfig] = []
        for i, key_raw in enumerate(azure_raw.get("keys", []) or []):
            key = AzureKeyConfig(
                id=str(key_raw.get("id") or f"key-{i + 1}"),
                speech_key=str(key_raw.get("speech_key", "")),
                speech_region=str(key_raw.get("speech_region", "")),
                total_quota=int(key_raw.get("total_quota", Defaults.AZURE_KEY_TOTAL_QUOTA)),
                used_quota=int(key_raw.get("used_quota", 0)),
                is_active=bool(key_raw.get("is_active", True)),
            )
            cls._validate_non_empty(f"azure.keys[{i}].speech_key", key.speech_key)
            cls._validate_non_empty(f"azure.keys[{i}].speech_region", key.speech_region)
            cls._validate_positive(f"azure.keys[{i}].total_quota", key.total_quota)
            cls._validate_non_negative(f"azure.keys[{i}].used_quota", key.used_quota)
            keys.append(key)

        # The single-credential environment setup of the web app
        env_key = os.getenv("AZURE_SPEECH_KEY")
        env_region = os.getenv("AZURE_SPEECH_REGION")
        if env_key and env_region and not any(k.speech_key == env_key for k in keys):
            keys.append(AzureKeyConfig(id="env", speech_key=env_key, speech_region=env_region))

        azure = AzureConfig(
            keys=keys,
            output_format=str(azure_raw.get("output_format", Defaults.AZURE_OUTPUT_FORMAT)),
            timeout_s=float(azure_raw.get("timeout_s", Defaults.AZURE_TIMEOUT_S)),
            user_agent=str(azure_raw.get("user_agent", Defaults.AZURE_USER_AGENT)),
        )
        cls._validate_positive("azure.timeout_s", azure.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Audio output
        # ─────────────────────────────────────────────────────────────────────
        audio_raw = raw.get("audio", {}) or {}
        audio = AudioConfig(
            base_dir=str(audio_raw.get("base_dir", Defaults.AUDIO_BASE_DIR)),
            url_prefix=str(audio_raw.get("url_prefix", Defaults.AUDIO_URL_PREFIX)).rstrip("/"),
            extension=str(audio_raw.get("extension", Defaults.AUDIO_EXTENSION)).lstrip("."),
        )
        cls._validate_non_empty("audio.extension", audio.extension)

        # ─────────────────────────────────────────────────────────────────────
        # Voice catalog
        # ─────────────────────────────────────────────────────────────────────
        voices_raw = raw.get("voices", {}) or {}
        voices = VoicesConfig(
            file=voices_raw.get("file") or None,
            cache_ttl_seconds=int(voices_raw.get("cache_ttl_seconds", Defaults.VOICES_CACHE_TTL_SECONDS)),
            only_ga=bool(voices_raw.get("only_ga", Defaults.VOICES_ONLY_GA)),
        )
        cls._validate_non_negative("voices.cache_ttl_seconds", voices.cache_ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Sessions
        # ─────────────────────────────────────────────────────────────────────
        sessions_raw = raw.get("sessions", {}) or {}
        sessions = SessionsConfig(
            max_sessions=int(sessions_raw.get("max_sessions", Defaults.SESSIONS_MAX)),
            idle_ttl_seconds=int(sessions_raw.get("idle_ttl_seconds", Defaults.SESSIONS_IDLE_TTL_SECONDS)),
        )
        cls._validate_positive("sessions.max_sessions", sessions.max_sessions)
        cls._validate_non_negative("sessions.idle_ttl_seconds", sessions.idle_ttl_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # String levels ("INFO", "DEBUG") are accepted as well
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            ssml=ssml,
            azure=azure,
            audio=audio,
            voices=voices,
            sessions=sessions,
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

    @staticmethod
    def _validate_non_empty(name: str, value: str) -> None:
        if not value or not value.strip():
            raise ConfigValidationError(f"{name} must not be empty")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_studio_config() to get a validated StudioConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def global_voice(self) -> str:
        """Voice used for text not covered by any segment."""
        return (self.raw.get("ssml", {}) or {}).get("global_voice", Defaults.SSML_GLOBAL_VOICE)

    @property
    def global_language(self) -> str:
        """Document language (xml:lang)."""
        return (self.raw.get("ssml", {}) or {}).get("global_language", Defaults.SSML_GLOBAL_LANGUAGE)

    @property
    def max_text_chars(self) -> int:
        return int((self.raw.get("ssml", {}) or {}).get("max_text_chars", Defaults.SSML_MAX_TEXT_CHARS))

    def get_studio_config(self) -> StudioConfig:
        """
        Get validated StudioConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return StudioConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - SSML_STUDIO_GLOBAL_VOICE: Override ssml.global_voice
        - SSML_STUDIO_GLOBAL_LANGUAGE: Override ssml.global_language

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    voice = os.getenv("SSML_STUDIO_GLOBAL_VOICE")
    if voice:
        raw.setdefault("ssml", {})["global_voice"] = voice
    language = os.getenv("SSML_STUDIO_GLOBAL_LANGUAGE")
    if language:
        raw.setdefault("ssml", {})["global_language"] = language

    return Settings(raw=raw)
