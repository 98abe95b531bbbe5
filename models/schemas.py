"""
Core data models for the Aura companion.
These are the universal types shared across all modules.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class ChatRole(str, Enum):
    USER = "user"
    MODEL = "model"


class CommandType(str, Enum):
    LOG_STRESS = "LOG_STRESS"
    WELLNESS_ACTIVITY = "WELLNESS_ACTIVITY"
    LOG_SLEEP = "LOG_SLEEP"
    LOG_EVENT = "LOG_EVENT"
    FIND_PLACES = "FIND_PLACES"
    ANALYZE_BURNOUT = "ANALYZE_BURNOUT"
    NONE = "NONE"


class MonitorStatus(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    PERMISSION_DENIED = "permission_denied"
    COMPLETE = "complete"


class Personality(str, Enum):
    EMPATHETIC = "empathetic"
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    STOIC = "stoic"


class Tone(str, Enum):
    CASUAL = "casual"
    FORMAL = "formal"


class Verbosity(str, Enum):
    CONCISE = "concise"
    BALANCED = "balanced"
    DETAILED = "detailed"


# ──────────────────────────────────────────────────────────────
#  Chat settings — passed through to the assistant verbatim
# ──────────────────────────────────────────────────────────────

class ChatSettings(BaseModel):
    personality: Personality = Personality.PROFESSIONAL
    tone: Tone = Tone.FORMAL
    verbosity: Verbosity = Verbosity.DETAILED


# ──────────────────────────────────────────────────────────────
#  Commands — structured output of the assistant
# ──────────────────────────────────────────────────────────────

class ConversationCommand(BaseModel):
    type: CommandType = CommandType.NONE
    payload: dict[str, Any] = {}

    @property
    def is_none(self) -> bool:
        return self.type == CommandType.NONE


class AssistantResponse(BaseModel):
    """
    Raw structured response from the assistant collaborator.

    `command` stays a plain string so an unrecognised command never fails
    parsing; core.dispatcher.parse_command resolves it to a CommandType.
    """
    command: Optional[str] = None
    payload: Optional[dict[str, Any]] = None
    commentary: Optional[str] = None


# ──────────────────────────────────────────────────────────────
#  Messages
# ──────────────────────────────────────────────────────────────

class ConversationSummary(BaseModel):
    title: str
    key_takeaways: list[str] = []
    action_items: list[str] = []


class ChatMessage(BaseModel):
    """A single entry in the chat history. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: ChatRole
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    command: Optional[CommandType] = None
    payload: Optional[dict[str, Any]] = None
    grounding_metadata: Optional[dict[str, Any]] = None    # source citations
    summary: Optional[ConversationSummary] = None
    is_analysis: bool = False
    is_summary: bool = False


# ──────────────────────────────────────────────────────────────
#  Places / location
# ──────────────────────────────────────────────────────────────

class GeoLocation(BaseModel):
    lat: float
    lng: float


class PlaceSearchResult(BaseModel):
    text: str
    grounding_metadata: Optional[dict[str, Any]] = None


# ──────────────────────────────────────────────────────────────
#  Wellness log — the domain data the assistant reasons over
# ──────────────────────────────────────────────────────────────

class StressLogEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    level: float
    timestamp: datetime = Field(default_factory=_utcnow)


class SleepLogEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    hours: float
    timestamp: datetime = Field(default_factory=_utcnow)


class EventLogEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    description: str
    timestamp: datetime = Field(default_factory=_utcnow)


class WellnessActivityEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    description: str
    timestamp: datetime = Field(default_factory=_utcnow)


class WellnessSnapshot(BaseModel):
    """Read-only copy of the wellness log handed to the assistant."""
    stress_logs: list[StressLogEntry] = []
    sleep_logs: list[SleepLogEntry] = []
    event_logs: list[EventLogEntry] = []
    wellness_activities: list[WellnessActivityEntry] = []

    def trailing(self, limit: int) -> dict[str, Any]:
        """JSON-ready view holding only the most recent `limit` entries per log."""
        return {
            "stress_logs": [e.model_dump(mode="json") for e in self.stress_logs[-limit:]],
            "sleep_logs": [e.model_dump(mode="json") for e in self.sleep_logs[-limit:]],
            "event_logs": [e.model_dump(mode="json") for e in self.event_logs[-limit:]],
            "wellness_activities": [
                e.model_dump(mode="json") for e in self.wellness_activities[-limit:]
            ],
        }
