"""
Audio Devices — microphone and speaker abstractions.

The core only talks to these interfaces:
  AudioInput.open()      → AudioStream (live capture, explicit close)
  AudioOutput.open()     → PlaybackContext (one playback, explicit close)

Concrete adapters use `sounddevice` (PortAudio). PortAudio delivers
audio on its own thread; the adapters keep that thread confined to
their internal buffers and hand completion back to the event loop.
"""
from __future__ import annotations

import abc
import asyncio
import threading
import structlog
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class MicrophoneError(Exception):
    """Base exception for microphone acquisition failures."""

    def __init__(self, message: str, device: str = ""):
        self.device = device
        super().__init__(message)


class MicrophonePermissionDenied(MicrophoneError):
    def __init__(self, device: str = ""):
        super().__init__(f"Microphone access denied{f' for {device}' if device else ''}", device)


class MicrophoneUnavailable(MicrophoneError):
    pass


class AudioOutputError(Exception):
    pass


# ══════════════════════════════════════════════════════════════
#  AUDIO BUFFER
# ══════════════════════════════════════════════════════════════

@dataclass
class AudioBuffer:
    """Mono float32 samples in [-1, 1] ready for playback."""
    samples: np.ndarray
    sample_rate: int = 24000

    @property
    def duration_s(self) -> float:
        return len(self.samples) / self.sample_rate if self.sample_rate else 0.0

    @classmethod
    def from_pcm16(cls, data: bytes, sample_rate: int = 24000) -> "AudioBuffer":
        pcm = np.frombuffer(data, dtype=np.int16)
        return cls(samples=pcm.astype(np.float32) / 32768.0, sample_rate=sample_rate)


# ══════════════════════════════════════════════════════════════
#  INTERFACES
# ══════════════════════════════════════════════════════════════

class AudioStream(abc.ABC):
    """A live microphone stream. Must be closed explicitly."""

    sample_rate: int = 16000
    channels: int = 1

    @abc.abstractmethod
    def latest_samples(self, count: int) -> np.ndarray:
        """Most recent `count` mono samples (float32), zero-padded if short."""
        ...

    @abc.abstractmethod
    def drain(self) -> np.ndarray:
        """All samples buffered since the last drain (recording mode only).

        Stays readable after close().
        """
        ...

    @abc.abstractmethod
    def close(self) -> None:
        """Stop capture and release the device. Idempotent."""
        ...

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        ...


class AudioInput(abc.ABC):

    @abc.abstractmethod
    async def open(self, record: bool = False) -> AudioStream:
        """
        Acquire the microphone.

        Raises:
            MicrophonePermissionDenied: access refused
            MicrophoneUnavailable: no usable device
        """
        ...


class PlaybackContext(abc.ABC):
    """One open audio-output resource."""

    @abc.abstractmethod
    async def play(self, audio: AudioBuffer) -> None:
        """Play `audio`; returns when playback ends or the context is closed."""
        ...

    @abc.abstractmethod
    def close(self) -> None:
        """Stop immediately and release the output. Idempotent."""
        ...


class AudioOutput(abc.ABC):

    @abc.abstractmethod
    async def open(self, sample_rate: int) -> PlaybackContext:
        ...


# ══════════════════════════════════════════════════════════════
#  SOUNDDEVICE ADAPTERS
# ══════════════════════════════════════════════════════════════

def _load_sounddevice():
    """Import sounddevice lazily; PortAudio may be absent on headless hosts."""
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise MicrophoneUnavailable(f"sounddevice not available: {e}") from e
    return sd


def _is_permission_error(error: Exception) -> bool:
    text = str(error).lower()
    return "permission" in text or "not authorized" in text or "access denied" in text


class SoundDeviceStream(AudioStream):
    """Wraps a sounddevice.InputStream with a rolling analysis buffer."""

    def __init__(
        self,
        sd: Any,
        sample_rate: int,
        device: Optional[Union[int, str]] = None,
        record: bool = False,
        history_seconds: float = 1.0,
    ):
        self.sample_rate = sample_rate
        self.channels = 1
        self._record = record
        self._lock = threading.Lock()
        self._ring: deque = deque(maxlen=max(int(sample_rate * history_seconds), 1024))
        self._chunks: list[np.ndarray] = []
        self._closed = False
        self._stream = sd.InputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            device=device,
            callback=self._on_audio,
        )

    def _on_audio(self, indata, frames, time_info, status) -> None:
        mono = indata[:, 0]
        with self._lock:
            self._ring.extend(mono)
            if self._record:
                self._chunks.append(mono.copy())

    def start(self) -> None:
        self._stream.start()

    def latest_samples(self, count: int) -> np.ndarray:
        with self._lock:
            tail = list(self._ring)[-count:]
        out = np.zeros(count, dtype=np.float32)
        if tail:
            out[-len(tail):] = tail
        return out

    def drain(self) -> np.ndarray:
        with self._lock:
            chunks, self._chunks = self._chunks, []
        if not chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(chunks)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.stop()
        finally:
            self._stream.close()

    @property
    def closed(self) -> bool:
        return self._closed


class SoundDeviceMicrophone(AudioInput):

    def __init__(self, sample_rate: int = 16000, device: Optional[Union[int, str]] = None):
        self.sample_rate = sample_rate
        self.device = device

    async def open(self, record: bool = False) -> AudioStream:
        sd = _load_sounddevice()
        device_name = str(self.device or "default")
        stream = None
        try:
            stream = SoundDeviceStream(sd, self.sample_rate, self.device, record=record)
            await asyncio.to_thread(stream.start)
        except (sd.PortAudioError, ValueError) as e:
            if stream is not None:
                stream.close()
            if _is_permission_error(e):
                raise MicrophonePermissionDenied(device_name) from e
            raise MicrophoneUnavailable(str(e), device=device_name) from e
        except asyncio.CancelledError:
            if stream is not None:
                stream.close()
            raise
        logger.info("microphone_opened", device=self.device, sample_rate=self.sample_rate, record=record)
        return stream


class SoundDevicePlayback(PlaybackContext):

    def __init__(self, sd: Any, sample_rate: int, device: Optional[Union[int, str]] = None):
        self._sd = sd
        self.sample_rate = sample_rate
        self.device = device
        self._loop = asyncio.get_running_loop()
        self._done = asyncio.Event()
        self._stream = None
        self._closed = False

    def _finished(self) -> None:
        # Called on the PortAudio thread
        try:
            self._loop.call_soon_threadsafe(self._done.set)
        except RuntimeError:
            pass  # loop already closed

    async def play(self, audio: AudioBuffer) -> None:
        if self._closed:
            return
        data = np.asarray(audio.samples, dtype=np.float32).reshape(-1, 1)
        position = 0
        sd = self._sd

        def callback(outdata, frames, time_info, status):
            nonlocal position
            chunk = data[position:position + frames]
            outdata[:len(chunk)] = chunk
            position += len(chunk)
            if len(chunk) < frames:
                outdata[len(chunk):] = 0
                raise sd.CallbackStop()

        try:
            self._stream = sd.OutputStream(
                samplerate=audio.sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=callback,
                finished_callback=self._finished,
            )
            self._stream.start()
        except sd.PortAudioError as e:
            self.close()
            raise AudioOutputError(str(e)) from e
        await self._done.wait()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._stream is not None:
            try:
                self._stream.abort()
            finally:
                self._stream.close()
        self._done.set()


class SoundDeviceOutput(AudioOutput):

    def __init__(self, device: Optional[Union[int, str]] = None):
        self.device = device

    async def open(self, sample_rate: int) -> PlaybackContext:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise AudioOutputError(f"sounddevice not available: {e}") from e
        return SoundDevicePlayback(sd, sample_rate, self.device)
