"""
Speech Synthesis Player — read a chat message aloud, one at a time.

toggle(text, message_id):
  - same message active   → stop (idempotent)
  - another message active → tear it down, then synthesize and play
  - synthesis fails/empty  → clear the marker, play nothing

A toggle that gets superseded while its synthesis is still in flight
never opens an output context.
"""
from __future__ import annotations

import asyncio
import structlog
from dataclasses import dataclass
from typing import Optional

from voice.devices import AudioBuffer, AudioOutput, PlaybackContext
from voice.providers import SpeechSynthesizer
from voice.slots import SingleSlot

logger = structlog.get_logger()


@dataclass
class PlaybackSession:
    message_id: str
    context: PlaybackContext
    task: Optional[asyncio.Task] = None

    def release(self) -> None:
        try:
            self.context.close()
        except Exception as e:
            logger.error("playback_close_failed", message_id=self.message_id, error=str(e))
        task = self.task
        if task is not None and not task.done():
            try:
                running = asyncio.current_task()
            except RuntimeError:
                running = None
            if task is not running:
                task.cancel()


class SpeechSynthesisPlayer:

    def __init__(self, synthesizer: SpeechSynthesizer, output: AudioOutput):
        self.synthesizer = synthesizer
        self.output = output
        self._slot: SingleSlot[PlaybackSession] = SingleSlot(
            "speech_playback", release=lambda p: p.release()
        )
        self._generation = 0
        self.active_message_id: Optional[str] = None

    @property
    def is_playing(self) -> bool:
        return self._slot.occupied

    async def toggle(self, text: str, message_id: str) -> Optional[str]:
        """Returns the message id now marked active, or None."""
        if self.active_message_id == message_id:
            self.stop()
            return None

        self.stop()
        generation = self._generation
        self.active_message_id = message_id

        try:
            audio = await self.synthesizer.synthesize(text)
        except Exception as e:
            logger.error("speech_synthesis_failed", message_id=message_id, error=str(e))
            audio = None

        if generation != self._generation:
            return self.active_message_id
        if audio is None:
            self.active_message_id = None
            return None

        try:
            context = await self.output.open(audio.sample_rate)
        except Exception as e:
            logger.error("audio_output_open_failed", message_id=message_id, error=str(e))
            if generation == self._generation:
                self.active_message_id = None
            return self.active_message_id

        if generation != self._generation:
            context.close()
            return self.active_message_id

        session = PlaybackSession(message_id=message_id, context=context)
        self._slot.replace(session)
        session.task = asyncio.create_task(
            self._play(session, audio, generation), name=f"speech_{message_id}"
        )
        logger.info("speech_playback_started", message_id=message_id, duration_s=round(audio.duration_s, 2))
        return message_id

    def stop(self) -> None:
        """Stop whatever is playing and clear the active marker."""
        self._generation += 1
        session = self._slot.clear()
        if session is not None:
            logger.info("speech_playback_stopped", message_id=session.message_id)
        self.active_message_id = None

    async def wait(self) -> None:
        """Wait for the current playback (if any) to end."""
        session = self._slot.current
        if session is None or session.task is None:
            return
        try:
            await session.task
        except asyncio.CancelledError:
            pass

    async def _play(self, session: PlaybackSession, audio: AudioBuffer, generation: int) -> None:
        try:
            await session.context.play(audio)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("speech_playback_failed", message_id=session.message_id, error=str(e))
        finally:
            if self._slot.compare_and_clear(session) and generation == self._generation:
                self.active_message_id = None
                logger.info("speech_playback_ended", message_id=session.message_id)
