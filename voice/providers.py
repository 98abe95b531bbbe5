"""
Voice Providers — speech-to-text and text-to-speech collaborators.

Contracts used by the voice core:
  Transcriber.transcribe(audio_b64, mime_type)  → transcript text
  SpeechSynthesizer.synthesize(text)            → AudioBuffer | None

Both are black boxes to the core. The OpenAI-backed implementations
(Whisper transcription, PCM text-to-speech) are the defaults; provider
configs carry the request parameters the way the rest of the stack
expects them.
"""
from __future__ import annotations

import abc
import base64
import structlog
from enum import Enum
from typing import Any, Optional
from dataclasses import dataclass

from config.settings import SpeechConfig, get_settings, is_configured
from core.collaborators import CollaboratorError
from voice.devices import AudioBuffer

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════

class STTProvider(str, Enum):
    OPENAI = "openai"           # whisper-1 / gpt-4o-transcribe


class TTSProvider(str, Enum):
    OPENAI = "openai"           # tts-1 / tts-1-hd, raw 24kHz PCM


_MIME_EXTENSIONS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/flac": "flac",
}


# ══════════════════════════════════════════════════════════════
#  PROVIDER CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass
class STTConfig:
    provider: STTProvider = STTProvider.OPENAI
    api_key: str = ""
    model: str = "whisper-1"
    language: str = ""                   # empty = provider auto-detect

    def to_provider_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"model": self.model or "whisper-1"}
        if self.language:
            params["language"] = self.language[:2]
        return params


@dataclass
class TTSConfig:
    provider: TTSProvider = TTSProvider.OPENAI
    api_key: str = ""
    model: str = "tts-1"
    voice: str = "alloy"
    speed: float = 1.0                   # 0.25-4.0
    sample_rate: int = 24000             # openai "pcm" is fixed at 24kHz

    def to_provider_params(self) -> dict[str, Any]:
        return {
            "model": self.model or "tts-1",
            "voice": self.voice or "alloy",
            "response_format": "pcm",
            "speed": self.speed,
        }


# ══════════════════════════════════════════════════════════════
#  CONTRACTS
# ══════════════════════════════════════════════════════════════

class Transcriber(abc.ABC):

    @abc.abstractmethod
    async def transcribe(self, audio_b64: str, mime_type: str) -> str:
        """Transcribe base64-encoded audio. Raises CollaboratorError on failure."""
        ...


class SpeechSynthesizer(abc.ABC):

    @abc.abstractmethod
    async def synthesize(self, text: str) -> Optional[AudioBuffer]:
        """Synthesize speech for `text`; None when nothing can be produced."""
        ...


# ══════════════════════════════════════════════════════════════
#  OPENAI IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class _OpenAIClientMixin:
    _client = None
    _api_key: str = ""

    async def _get_client(self):
        if self._client is None:
            try:
                from openai import AsyncOpenAI
                self._client = AsyncOpenAI(api_key=self._api_key if is_configured(self._api_key) else None)
            except Exception as e:
                logger.error("speech_client_init_failed", provider="openai", error=str(e))
                raise CollaboratorError(f"OpenAI client unavailable: {e}", collaborator="speech") from e
        return self._client


class OpenAITranscriber(_OpenAIClientMixin, Transcriber):

    def __init__(self, config: STTConfig = None):
        self.config = config or STTConfig()
        self._api_key = self.config.api_key

    async def transcribe(self, audio_b64: str, mime_type: str) -> str:
        client = await self._get_client()
        audio = base64.b64decode(audio_b64)
        extension = _MIME_EXTENSIONS.get(mime_type.split(";")[0].strip(), "wav")
        try:
            result = await client.audio.transcriptions.create(
                file=(f"utterance.{extension}", audio, mime_type),
                **self.config.to_provider_params(),
            )
        except Exception as e:
            raise CollaboratorError(f"Transcription failed: {e}", collaborator="transcription") from e
        text = (getattr(result, "text", "") or "").strip()
        logger.info("transcription_complete", bytes=len(audio), chars=len(text))
        return text


class OpenAISpeechSynthesizer(_OpenAIClientMixin, SpeechSynthesizer):

    def __init__(self, config: TTSConfig = None):
        self.config = config or TTSConfig()
        self._api_key = self.config.api_key

    async def synthesize(self, text: str) -> Optional[AudioBuffer]:
        if not text.strip():
            return None
        client = await self._get_client()
        try:
            response = await client.audio.speech.create(
                input=text,
                **self.config.to_provider_params(),
            )
        except Exception as e:
            raise CollaboratorError(f"Speech synthesis failed: {e}", collaborator="speech") from e
        data = response.content
        if not data:
            return None
        return AudioBuffer.from_pcm16(data, sample_rate=self.config.sample_rate)


# ══════════════════════════════════════════════════════════════
#  FACTORIES
# ══════════════════════════════════════════════════════════════

def create_transcriber(config: SpeechConfig = None) -> Transcriber:
    config = config or get_settings().speech
    provider = STTProvider(config.stt_provider)
    if provider == STTProvider.OPENAI:
        return OpenAITranscriber(STTConfig(
            provider=provider,
            api_key=config.api_key,
            model=config.stt_model,
            language=config.language,
        ))
    raise ValueError(f"Unsupported STT provider: {config.stt_provider}")


def create_synthesizer(config: SpeechConfig = None) -> SpeechSynthesizer:
    config = config or get_settings().speech
    provider = TTSProvider(config.tts_provider)
    if provider == TTSProvider.OPENAI:
        return OpenAISpeechSynthesizer(TTSConfig(
            provider=provider,
            api_key=config.api_key,
            model=config.tts_model,
            voice=config.voice,
            sample_rate=config.tts_sample_rate,
        ))
    raise ValueError(f"Unsupported TTS provider: {config.tts_provider}")
