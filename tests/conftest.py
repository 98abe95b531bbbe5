"""Shared test fixtures for Aura."""
import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from config.settings import ConversationConfig, MonitorConfig
from core.collaborators import (
    AssistantService, LocationProvider, PlaceSearchService, LocationUnavailable,
)
from core.history import ChatHistory
from database.wellness_log import InMemoryWellnessLog
from models.schemas import (
    AssistantResponse, ChatSettings, ConversationSummary, GeoLocation, PlaceSearchResult,
)
from voice.devices import (
    AudioBuffer, AudioInput, AudioOutput, AudioStream, PlaybackContext,
)
from voice.providers import SpeechSynthesizer, Transcriber


# ══════════════════════════════════════════════════════════════
#  AUDIO DEVICE FAKES
# ══════════════════════════════════════════════════════════════

class FakeStream(AudioStream):
    """Microphone stream producing silence or seeded white noise."""

    def __init__(self, owner: "FakeMicrophone", amplitude: float = 0.0,
                 recorded: Optional[np.ndarray] = None, sample_rate: int = 16000):
        self.owner = owner
        self.amplitude = amplitude
        self.sample_rate = sample_rate
        self._recorded = recorded if recorded is not None else np.zeros(0, dtype=np.float32)
        self._closed = False
        self._rng = np.random.default_rng(7)
        self.close_calls = 0

    def latest_samples(self, count: int) -> np.ndarray:
        if self.amplitude == 0:
            return np.zeros(count, dtype=np.float32)
        return (self._rng.uniform(-1.0, 1.0, count) * self.amplitude).astype(np.float32)

    def drain(self) -> np.ndarray:
        data, self._recorded = self._recorded, np.zeros(0, dtype=np.float32)
        return data

    def close(self) -> None:
        self.close_calls += 1
        if not self._closed:
            self._closed = True
            self.owner.open_handles -= 1
            self.owner.events.append("close")

    @property
    def closed(self) -> bool:
        return self._closed


class FakeMicrophone(AudioInput):
    """Counts live handles so tests can assert at most one is ever open."""

    def __init__(self, amplitude: float = 0.0, error: Exception = None,
                 open_delay: float = 0.0, recorded: np.ndarray = None):
        self.amplitude = amplitude
        self.error = error
        self.open_delay = open_delay
        self.recorded = recorded
        self.open_calls = 0
        self.open_handles = 0
        self.max_open_handles = 0
        self.events: list[str] = []
        self.streams: list[FakeStream] = []

    async def open(self, record: bool = False) -> AudioStream:
        self.open_calls += 1
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.error is not None:
            raise self.error
        stream = FakeStream(
            self, self.amplitude,
            recorded=self.recorded.copy() if (record and self.recorded is not None) else None,
        )
        self.open_handles += 1
        self.max_open_handles = max(self.max_open_handles, self.open_handles)
        self.events.append("open")
        self.streams.append(stream)
        return stream


class FakeContext(PlaybackContext):

    def __init__(self, owner: "FakeOutput", index: int):
        self.owner = owner
        self.index = index
        self.closed = False
        self._done = asyncio.Event()

    async def play(self, audio: AudioBuffer) -> None:
        self.owner.events.append(("play", self.index))
        try:
            await asyncio.wait_for(self._done.wait(), timeout=self.owner.play_seconds)
        except asyncio.TimeoutError:
            pass
        self.owner.events.append(("ended", self.index))

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.owner.open_contexts -= 1
            self.owner.events.append(("close", self.index))
        self._done.set()


class FakeOutput(AudioOutput):

    def __init__(self, play_seconds: float = 5.0, error: Exception = None):
        self.play_seconds = play_seconds
        self.error = error
        self.events: list[tuple[str, int]] = []
        self.contexts: list[FakeContext] = []
        self.open_contexts = 0
        self.max_open_contexts = 0

    async def open(self, sample_rate: int) -> PlaybackContext:
        if self.error is not None:
            raise self.error
        context = FakeContext(self, len(self.contexts))
        self.contexts.append(context)
        self.open_contexts += 1
        self.max_open_contexts = max(self.max_open_contexts, self.open_contexts)
        self.events.append(("open", context.index))
        return context


# ══════════════════════════════════════════════════════════════
#  SPEECH FAKES
# ══════════════════════════════════════════════════════════════

class FakeSynthesizer(SpeechSynthesizer):

    def __init__(self, delay: float = 0.0, result: str = "audio"):
        self.delay = delay
        self.result = result        # "audio" | "none" | "error"
        self.calls: list[str] = []

    async def synthesize(self, text: str) -> Optional[AudioBuffer]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.result == "error":
            raise RuntimeError("tts down")
        if self.result == "none":
            return None
        return AudioBuffer(samples=np.zeros(2400, dtype=np.float32), sample_rate=24000)


class FakeTranscriber(Transcriber):

    def __init__(self, transcript: str = "I feel tense today", error: Exception = None,
                 delay: float = 0.0):
        self.transcript = transcript
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def transcribe(self, audio_b64: str, mime_type: str) -> str:
        self.calls.append((audio_b64, mime_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.transcript


# ══════════════════════════════════════════════════════════════
#  CONVERSATION FAKES
# ══════════════════════════════════════════════════════════════

class SlowLocator(LocationProvider):

    def __init__(self, delay: float):
        self.delay = delay
        self.cancelled = False

    async def locate(self) -> GeoLocation:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return GeoLocation(lat=12.97, lng=77.59)


class FixedLocator(LocationProvider):

    def __init__(self, location: GeoLocation = None):
        self.location = location

    async def locate(self) -> GeoLocation:
        if self.location is None:
            raise LocationUnavailable("denied")
        return self.location


def make_assistant(response: AssistantResponse = None, error: Exception = None) -> MagicMock:
    assistant = MagicMock(spec=AssistantService)
    if error is not None:
        assistant.process_prompt = AsyncMock(side_effect=error)
    else:
        assistant.process_prompt = AsyncMock(return_value=response or AssistantResponse())
    assistant.summarize_conversation = AsyncMock(return_value=ConversationSummary(
        title="Work stress",
        key_takeaways=["Deadlines are the main trigger"],
        action_items=["Take a 10 minute walk after lunch"],
    ))
    return assistant


def make_place_search(text: str = "Try Cubbon Park Yoga.", grounding: dict = None) -> MagicMock:
    search = MagicMock(spec=PlaceSearchService)
    search.search = AsyncMock(return_value=PlaceSearchResult(
        text=text,
        grounding_metadata=grounding or {"groundingChunks": [{"maps": {"title": "Cubbon Park"}}]},
    ))
    return search


# ══════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════

@pytest.fixture
def monitor_config() -> MonitorConfig:
    """A short analysis window so sessions finish quickly in tests."""
    return MonitorConfig(window_ms=150, frame_rate_hz=200.0)


@pytest.fixture
def conversation_config() -> ConversationConfig:
    return ConversationConfig(history_window=10, location_timeout_ms=100, nearby_radius_km=5)


@pytest.fixture
def wellness_log() -> InMemoryWellnessLog:
    return InMemoryWellnessLog()


@pytest.fixture
def history() -> ChatHistory:
    return ChatHistory()


@pytest.fixture
def chat_settings() -> ChatSettings:
    return ChatSettings()
