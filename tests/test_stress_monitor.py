"""
Tests for AudioStressMonitor — session lifecycle and device exclusivity.

Coverage:
- Window completes with the mean of raw readings
- Permission / device failures end in permission_denied with no handle held
- stop() returns to idle and cancels the pending window
- Overlapping start() calls never hold two microphone handles
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import FakeMicrophone
from models.schemas import MonitorStatus
from voice.analysis import ACTIVITY_FLOOR, final_level
from voice.devices import MicrophonePermissionDenied, MicrophoneUnavailable
from voice.stress_monitor import AudioStressMonitor


# ══════════════════════════════════════════════════════════════
#  COMPLETION
# ══════════════════════════════════════════════════════════════

class TestSessionCompletion:

    @pytest.mark.asyncio
    async def test_initial_state(self, monitor_config):
        monitor = AudioStressMonitor(FakeMicrophone(), monitor_config)
        assert monitor.status == MonitorStatus.IDLE
        assert monitor.stress_level == 0.0
        assert await monitor.wait() == MonitorStatus.IDLE

    @pytest.mark.asyncio
    async def test_silence_completes_at_zero(self, monitor_config):
        mic = FakeMicrophone()
        monitor = AudioStressMonitor(mic, monitor_config)

        assert await monitor.start() == MonitorStatus.ANALYZING
        assert mic.open_handles == 1

        assert await monitor.wait() == MonitorStatus.COMPLETE
        assert monitor.stress_level == 0.0
        assert mic.open_handles == 0
        assert monitor.session.raw_readings
        assert mic.streams[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_voice_completes_with_mean_of_readings(self, monitor_config):
        monitor = AudioStressMonitor(FakeMicrophone(amplitude=0.5), monitor_config)
        await monitor.start()
        await monitor.wait()

        session = monitor.session
        assert monitor.status == MonitorStatus.COMPLETE
        assert ACTIVITY_FLOOR <= monitor.stress_level <= 100
        assert monitor.stress_level == pytest.approx(final_level(session.raw_readings))

    @pytest.mark.asyncio
    async def test_live_level_rises_while_analyzing(self, monitor_config):
        monitor = AudioStressMonitor(FakeMicrophone(amplitude=0.5), monitor_config)
        await monitor.start()
        await asyncio.sleep(0.05)
        assert monitor.status == MonitorStatus.ANALYZING
        assert monitor.stress_level > 0
        monitor.stop()

    @pytest.mark.asyncio
    async def test_sampling_error_completes_with_readings_so_far(self, monitor_config):
        mic = FakeMicrophone()
        monitor = AudioStressMonitor(mic, monitor_config)
        await monitor.start()
        monitor.session.stream.latest_samples = MagicMock(side_effect=RuntimeError("device lost"))

        assert await monitor.wait() == MonitorStatus.COMPLETE
        assert monitor.stress_level == 0.0
        assert mic.open_handles == 0


# ══════════════════════════════════════════════════════════════
#  DEVICE FAILURES
# ══════════════════════════════════════════════════════════════

class TestDeviceFailures:

    @pytest.mark.asyncio
    async def test_permission_denied(self, monitor_config):
        mic = FakeMicrophone(error=MicrophonePermissionDenied())
        monitor = AudioStressMonitor(mic, monitor_config)

        assert await monitor.start() == MonitorStatus.PERMISSION_DENIED
        assert monitor.stress_level == 0.0
        assert mic.open_handles == 0
        assert mic.streams == []

    @pytest.mark.asyncio
    async def test_unavailable_device_reads_as_denied(self, monitor_config):
        mic = FakeMicrophone(error=MicrophoneUnavailable("no input device"))
        monitor = AudioStressMonitor(mic, monitor_config)
        assert await monitor.start() == MonitorStatus.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_restart_after_denial(self, monitor_config):
        mic = FakeMicrophone(error=MicrophonePermissionDenied())
        monitor = AudioStressMonitor(mic, monitor_config)
        await monitor.start()

        mic.error = None
        assert await monitor.start() == MonitorStatus.ANALYZING
        monitor.stop()
        assert mic.open_handles == 0


# ══════════════════════════════════════════════════════════════
#  STOP & OVERLAP
# ══════════════════════════════════════════════════════════════

class TestStopAndOverlap:

    @pytest.mark.asyncio
    async def test_stop_returns_to_idle(self, monitor_config):
        mic = FakeMicrophone(amplitude=0.5)
        monitor = AudioStressMonitor(mic, monitor_config)
        await monitor.start()
        await asyncio.sleep(0.03)

        monitor.stop()
        assert monitor.status == MonitorStatus.IDLE
        assert monitor.stress_level == 0.0
        assert mic.open_handles == 0
        assert mic.streams[0].close_calls == 1

        # the cancelled window must not fire later
        await asyncio.sleep(monitor_config.window_ms / 1000 + 0.05)
        assert monitor.status == MonitorStatus.IDLE

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, monitor_config):
        monitor = AudioStressMonitor(FakeMicrophone(), monitor_config)
        monitor.stop()
        await monitor.start()
        monitor.stop()
        monitor.stop()
        assert monitor.status == MonitorStatus.IDLE

    @pytest.mark.asyncio
    async def test_stop_while_device_is_opening(self, monitor_config):
        mic = FakeMicrophone(open_delay=0.05)
        monitor = AudioStressMonitor(mic, monitor_config)

        task = asyncio.create_task(monitor.start())
        await asyncio.sleep(0.01)
        monitor.stop()
        await task

        assert monitor.status == MonitorStatus.IDLE
        assert mic.open_handles == 0
        assert mic.events == ["open", "close"]
        assert mic.streams[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_overlapping_starts_hold_one_handle(self, monitor_config):
        mic = FakeMicrophone(open_delay=0.02)
        monitor = AudioStressMonitor(mic, monitor_config)

        await asyncio.gather(monitor.start(), monitor.start(), monitor.start())
        assert mic.max_open_handles == 1
        assert monitor.status == MonitorStatus.ANALYZING

        assert await monitor.wait() == MonitorStatus.COMPLETE
        assert mic.open_handles == 0
        assert all(s.close_calls == 1 for s in mic.streams)

    @pytest.mark.asyncio
    async def test_restart_replaces_running_session(self, monitor_config):
        mic = FakeMicrophone()
        monitor = AudioStressMonitor(mic, monitor_config)
        await monitor.start()
        first = monitor.session

        await monitor.start()
        assert first.released
        assert first.stream is None
        assert mic.streams[0].closed
        assert mic.max_open_handles == 1
        monitor.stop()
        assert [s.close_calls for s in mic.streams] == [1, 1]

    @pytest.mark.asyncio
    async def test_stop_after_complete_closes_once(self, monitor_config):
        mic = FakeMicrophone()
        monitor = AudioStressMonitor(mic, monitor_config)
        await monitor.start()
        await monitor.wait()

        monitor.stop()
        monitor.close()
        assert monitor.status == MonitorStatus.IDLE
        assert mic.streams[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_context_manager_releases_device(self, monitor_config):
        mic = FakeMicrophone()
        async with AudioStressMonitor(mic, monitor_config) as monitor:
            await monitor.start()
            assert mic.open_handles == 1
        assert mic.open_handles == 0
