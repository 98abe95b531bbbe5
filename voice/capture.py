"""
Voice Capture — record one utterance and turn it into text.

start_recording() opens the microphone in recording mode.
stop_recording() releases the microphone first, then packages the
buffered audio as a WAV clip, base64-encodes it and hands it to the
transcription collaborator. A slow or failing transcription never
holds the device.
"""
from __future__ import annotations

import base64
import io
import uuid
import wave
import structlog
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from voice.devices import AudioInput, AudioStream, MicrophoneError
from voice.providers import Transcriber
from voice.slots import SingleSlot

logger = structlog.get_logger()

MICROPHONE_NOTICE = "Could not access microphone."


@dataclass
class AudioClip:
    data: bytes
    mime_type: str
    sample_rate: int
    duration_s: float

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def encode_wav(samples: np.ndarray, sample_rate: int) -> AudioClip:
    """Pack mono float samples into a 16-bit PCM WAV clip."""
    pcm = (np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0) * 32767).astype("<i2")
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return AudioClip(
        data=buf.getvalue(),
        mime_type="audio/wav",
        sample_rate=sample_rate,
        duration_s=len(pcm) / sample_rate if sample_rate else 0.0,
    )


@dataclass
class RecordingSession:
    stream: AudioStream
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def release(self) -> None:
        try:
            self.stream.close()
        except Exception as e:
            logger.error("recording_close_failed", recording_id=self.id, error=str(e))


class VoiceCaptureService:
    """Single-flight utterance recorder with transcription."""

    def __init__(self, microphone: AudioInput, transcriber: Transcriber):
        self.microphone = microphone
        self.transcriber = transcriber
        self._slot: SingleSlot[RecordingSession] = SingleSlot(
            "voice_capture", release=lambda r: r.release()
        )
        self._starting = False
        self._generation = 0
        self.is_transcribing = False
        self.notice: Optional[str] = None
        self.pending_input: str = ""

    @property
    def is_recording(self) -> bool:
        return self._starting or self._slot.occupied

    async def start_recording(self) -> bool:
        """Open the microphone and start buffering. False if not started."""
        if self.is_recording:
            logger.info("recording_already_active")
            return False

        self.notice = None
        self._starting = True
        generation = self._generation
        try:
            stream = await self.microphone.open(record=True)
        except MicrophoneError as e:
            logger.warning("recording_start_failed", error=str(e))
            self.notice = MICROPHONE_NOTICE
            return False
        except Exception as e:
            logger.error("recording_start_failed", error=str(e))
            self.notice = MICROPHONE_NOTICE
            return False
        finally:
            self._starting = False

        if generation != self._generation:
            # cancelled while the device was opening
            stream.close()
            return False

        recording = RecordingSession(stream=stream)
        self._slot.replace(recording)
        logger.info("recording_started", recording_id=recording.id)
        return True

    async def stop_recording(self) -> str:
        """Release the microphone, then transcribe what was captured."""
        self._generation += 1
        recording = self._slot.clear()
        if recording is None:
            return ""

        clip = encode_wav(recording.stream.drain(), recording.stream.sample_rate)
        logger.info("recording_stopped", recording_id=recording.id, duration_s=round(clip.duration_s, 2))
        if clip.duration_s == 0:
            return ""

        self.is_transcribing = True
        try:
            transcript = await self.transcriber.transcribe(clip.to_base64(), clip.mime_type)
        except Exception as e:
            logger.error("transcription_failed", recording_id=recording.id, error=str(e))
            transcript = ""
        finally:
            self.is_transcribing = False

        self.pending_input = transcript
        return transcript

    def cancel(self) -> None:
        """Discard any recording in progress and release the device."""
        self._generation += 1
        recording = self._slot.clear()
        if recording is not None:
            logger.info("recording_cancelled", recording_id=recording.id)
