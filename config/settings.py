"""
Configuration loader for the Aura companion service.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class LLMConfig:
    provider: str = "anthropic"                       # "anthropic" | "openai"
    model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.7
    max_tokens: int = 1024
    api_key: str = ""
    system_prompt_template: str = ""


@dataclass
class SpeechConfig:
    stt_provider: str = "openai"
    tts_provider: str = "openai"
    api_key: str = ""
    stt_model: str = "whisper-1"
    tts_model: str = "tts-1"
    voice: str = "alloy"
    language: str = ""                                 # empty = auto-detect
    tts_sample_rate: int = 24000


@dataclass
class MonitorConfig:
    window_ms: int = 4000
    frame_rate_hz: float = 60.0
    fft_size: int = 256
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0
    sample_rate: int = 16000
    device: Optional[str] = None                       # sounddevice name or index


@dataclass
class ConversationConfig:
    history_window: int = 10
    location_timeout_ms: int = 5000
    nearby_radius_km: int = 5
    personality: str = "professional"
    tone: str = "formal"
    verbosity: str = "detailed"


@dataclass
class PlacesConfig:
    base_url: str = ""
    endpoint: str = "/places/search"
    api_key: str = ""
    timeout_s: float = 15.0


@dataclass
class LocationConfig:
    provider: str = "none"                             # "none" | "static" | "ip"
    lat: Optional[float] = None
    lng: Optional[float] = None
    lookup_url: str = "https://ipapi.co/json/"


@dataclass
class Settings:
    app_name: str = "Aura"
    debug: bool = False
    llm: LLMConfig = field(default_factory=LLMConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    places: PlacesConfig = field(default_factory=PlacesConfig)
    location: LocationConfig = field(default_factory=LocationConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def is_configured(value: Optional[str]) -> bool:
    """False for empty values and unresolved ${VAR} placeholders."""
    return bool(value) and not value.startswith("${")


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _section(cls, raw: dict[str, Any], default):
    """Build a config dataclass from a YAML section, ignoring unknown keys."""
    known = {k: v for k, v in raw.items() if k in cls.__dataclass_fields__}
    base = {name: getattr(default, name) for name in cls.__dataclass_fields__}
    base.update(known)
    return cls(**base)


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "AURA_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "llm" in raw:
            settings.llm = _section(LLMConfig, raw["llm"], settings.llm)
        if "speech" in raw:
            settings.speech = _section(SpeechConfig, raw["speech"], settings.speech)
        if "monitor" in raw:
            settings.monitor = _section(MonitorConfig, raw["monitor"], settings.monitor)
        if "conversation" in raw:
            settings.conversation = _section(
                ConversationConfig, raw["conversation"], settings.conversation
            )
        if "places" in raw:
            settings.places = _section(PlacesConfig, raw["places"], settings.places)
        if "location" in raw:
            settings.location = _section(LocationConfig, raw["location"], settings.location)

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
