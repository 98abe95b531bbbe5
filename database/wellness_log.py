"""
InMemoryWellnessLog — list-backed wellness log for the single local user.

Implements DomainHooks so the command dispatcher can write to it, and
hands out WellnessSnapshot copies for prompts and the API.
All data is lost on process restart.
"""
from __future__ import annotations

import structlog

from core.collaborators import DomainHooks
from models.schemas import (
    EventLogEntry,
    SleepLogEntry,
    StressLogEntry,
    WellnessActivityEntry,
    WellnessSnapshot,
)

logger = structlog.get_logger()


class InMemoryWellnessLog(DomainHooks):

    def __init__(self):
        self._stress: list[StressLogEntry] = []
        self._sleep: list[SleepLogEntry] = []
        self._events: list[EventLogEntry] = []
        self._activities: list[WellnessActivityEntry] = []
        logger.info("wellness_log_initialized")

    # ── Writes ────────────────────────────────────────────

    async def add_stress_log(self, level: float) -> None:
        entry = StressLogEntry(level=level)
        self._stress.append(entry)
        logger.info("stress_logged", entry_id=entry.id, level=level)

    async def add_sleep_log(self, hours: float) -> None:
        entry = SleepLogEntry(hours=hours)
        self._sleep.append(entry)
        logger.info("sleep_logged", entry_id=entry.id, hours=hours)

    async def add_event_log(self, description: str) -> None:
        entry = EventLogEntry(description=description)
        self._events.append(entry)
        logger.info("event_logged", entry_id=entry.id)

    async def add_wellness_activity(self, description: str) -> None:
        entry = WellnessActivityEntry(description=description)
        self._activities.append(entry)
        logger.info("wellness_activity_logged", entry_id=entry.id)

    # ── Reads ─────────────────────────────────────────────

    def snapshot(self) -> WellnessSnapshot:
        return WellnessSnapshot(
            stress_logs=list(self._stress),
            sleep_logs=list(self._sleep),
            event_logs=list(self._events),
            wellness_activities=list(self._activities),
        )

    def clear(self) -> None:
        self._stress.clear()
        self._sleep.clear()
        self._events.clear()
        self._activities.clear()
