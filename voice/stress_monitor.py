"""
Audio Stress Monitor — bounded real-time stress estimation from the microphone.

One session = one analysis window:

    idle ──start()──▶ analyzing ──window elapsed──▶ complete
                         │
      mic refused ───────┴──────────────────────▶ permission_denied
      stop() from any state ────────────────────▶ idle

While analyzing, a session owns exactly three handles: the microphone
stream, the per-frame sampling task and the window timer. They are
released together by MonitoringSession.teardown(), which is the only
cleanup path (stop, window expiry, device error, disposal).
"""
from __future__ import annotations

import asyncio
import uuid
import structlog
from typing import Optional

from config.settings import MonitorConfig
from models.schemas import MonitorStatus
from voice.analysis import (
    FrequencyAnalyser,
    average_energy,
    final_level,
    raw_stress,
    smooth,
)
from voice.devices import AudioInput, AudioStream, MicrophoneError
from voice.slots import SingleSlot

logger = structlog.get_logger()

TERMINAL_STATES = (MonitorStatus.COMPLETE, MonitorStatus.PERMISSION_DENIED)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class MonitoringSession:
    """Handles and readings for a single analysis window."""

    def __init__(self, analyser: FrequencyAnalyser):
        self.id = uuid.uuid4().hex[:12]
        self.state = MonitorStatus.IDLE
        self.raw_readings: list[float] = []
        self.smoothed_level: float = 0.0
        self.analyser = analyser
        self.stream: Optional[AudioStream] = None
        self.frame_task: Optional[asyncio.Task] = None
        self.timer: Optional[asyncio.TimerHandle] = None
        self.released = False
        self.finished = asyncio.Event()

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def sample(self) -> float:
        """Take one frame reading. Returns the raw stress value."""
        samples = self.stream.latest_samples(self.analyser.fft_size)
        energy = average_energy(self.analyser.byte_frequency_data(samples))
        raw = raw_stress(energy)
        self.raw_readings.append(raw)
        self.smoothed_level = smooth(self.smoothed_level, raw)
        return raw

    def teardown(self) -> None:
        """Release timer, sampling task and microphone. Runs once."""
        if self.released:
            return
        self.released = True

        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

        task, self.frame_task = self.frame_task, None
        if task is not None and task is not _current_task() and not task.done():
            task.cancel()

        stream, self.stream = self.stream, None
        if stream is not None:
            try:
                stream.close()
            except Exception as e:
                logger.error("microphone_close_failed", session_id=self.id, error=str(e))

        self.finished.set()


class AudioStressMonitor:
    """
    Derives a smoothed 0-100 stress estimate from live microphone energy.

    Usage:
        monitor = AudioStressMonitor(SoundDeviceMicrophone())
        await monitor.start()
        ...                     # poll monitor.stress_level for the live value
        await monitor.wait()    # → MonitorStatus.COMPLETE after the window
    """

    def __init__(self, microphone: AudioInput, config: MonitorConfig = None):
        self.microphone = microphone
        self.config = config or MonitorConfig()
        self._slot: SingleSlot[MonitoringSession] = SingleSlot(
            "stress_monitor", release=lambda s: s.teardown()
        )
        self._session: Optional[MonitoringSession] = None
        self._acquire_lock = asyncio.Lock()

    # ── Observed state ────────────────────────────────────────

    @property
    def status(self) -> MonitorStatus:
        return self._session.state if self._session else MonitorStatus.IDLE

    @property
    def stress_level(self) -> float:
        return self._session.smoothed_level if self._session else 0.0

    @property
    def session(self) -> Optional[MonitoringSession]:
        return self._session

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> MonitorStatus:
        """Begin a new analysis window, tearing down any previous session first."""
        session = MonitoringSession(self._new_analyser())
        self._session = session
        self._slot.replace(session)

        async with self._acquire_lock:
            if not self._slot.holds(session):
                return session.state
            try:
                stream = await self.microphone.open()
            except MicrophoneError as e:
                logger.warning("microphone_permission_denied", session_id=session.id, error=str(e))
                self._finish(session, MonitorStatus.PERMISSION_DENIED)
                return session.state
            except Exception as e:
                logger.error("microphone_open_failed", session_id=session.id, error=str(e))
                self._finish(session, MonitorStatus.PERMISSION_DENIED)
                return session.state

            if not self._slot.holds(session):
                # stopped or superseded while the device was opening
                stream.close()
                return session.state
            session.stream = stream

        loop = asyncio.get_running_loop()
        session.state = MonitorStatus.ANALYZING
        session.frame_task = loop.create_task(
            self._sample_frames(session), name=f"stress_frames_{session.id}"
        )
        session.timer = loop.call_later(
            self.config.window_ms / 1000.0, self._on_window_elapsed, session
        )
        logger.info("stress_session_started", session_id=session.id, window_ms=self.config.window_ms)
        return session.state

    def stop(self) -> None:
        """Cancel the current session and return to idle."""
        session = self._session
        self._slot.clear()
        if session is not None:
            session.teardown()
            logger.info("stress_session_stopped", session_id=session.id, state=session.state.value)
        self._session = None

    def close(self) -> None:
        self.stop()

    async def wait(self) -> MonitorStatus:
        """Wait for the current session to end; returns the resulting status."""
        session = self._session
        if session is None:
            return MonitorStatus.IDLE
        await session.finished.wait()
        return self.status

    async def __aenter__(self) -> "AudioStressMonitor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Internals ─────────────────────────────────────────────

    def _new_analyser(self) -> FrequencyAnalyser:
        return FrequencyAnalyser(
            fft_size=self.config.fft_size,
            smoothing_time_constant=self.config.smoothing_time_constant,
            min_decibels=self.config.min_decibels,
            max_decibels=self.config.max_decibels,
        )

    async def _sample_frames(self, session: MonitoringSession) -> None:
        interval = 1.0 / self.config.frame_rate_hz
        try:
            while not session.released:
                session.sample()
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("stress_sampling_failed", session_id=session.id, error=str(e))
            self._finish(session, MonitorStatus.COMPLETE)

    def _on_window_elapsed(self, session: MonitoringSession) -> None:
        session.timer = None
        self._finish(session, MonitorStatus.COMPLETE)

    def _finish(self, session: MonitoringSession, state: MonitorStatus) -> None:
        if session.terminal:
            return
        if not self._slot.compare_and_clear(session):
            session.teardown()
        if state == MonitorStatus.COMPLETE:
            session.smoothed_level = final_level(session.raw_readings)
        session.state = state
        logger.info(
            "stress_session_ended",
            session_id=session.id,
            state=state.value,
            readings=len(session.raw_readings),
            level=round(session.smoothed_level, 1),
        )
