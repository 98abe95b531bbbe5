"""
Collaborator contracts consumed by the conversation core.

Every external service is a black box behind one of these interfaces:
  AssistantService    — structured response + conversation summaries
  PlaceSearchService  — nearby place lookup with grounding citations
  LocationProvider    — best-effort device location (caller bounds time)
  DomainHooks         — wellness-log mutators
"""
from __future__ import annotations

import abc
from typing import Optional, Sequence

from models.schemas import (
    AssistantResponse,
    ChatMessage,
    ChatSettings,
    ConversationSummary,
    GeoLocation,
    PlaceSearchResult,
    WellnessSnapshot,
)


class CollaboratorError(Exception):
    """A remote collaborator (assistant, transcription, speech, places) failed."""

    def __init__(self, message: str, collaborator: str = ""):
        self.collaborator = collaborator
        super().__init__(message)


class LocationUnavailable(Exception):
    """Location was denied or could not be determined."""


class AssistantService(abc.ABC):

    @abc.abstractmethod
    async def process_prompt(
        self,
        prompt: str,
        history: Sequence[ChatMessage],
        settings: ChatSettings,
        snapshot: WellnessSnapshot,
    ) -> AssistantResponse:
        ...

    @abc.abstractmethod
    async def summarize_conversation(self, history: Sequence[ChatMessage]) -> ConversationSummary:
        ...


class PlaceSearchService(abc.ABC):

    @abc.abstractmethod
    async def search(self, query: str, location: Optional[GeoLocation] = None) -> PlaceSearchResult:
        ...


class LocationProvider(abc.ABC):

    @abc.abstractmethod
    async def locate(self) -> GeoLocation:
        """Raises LocationUnavailable when no location can be given."""
        ...


class DomainHooks(abc.ABC):

    @abc.abstractmethod
    async def add_stress_log(self, level: float) -> None:
        ...

    @abc.abstractmethod
    async def add_sleep_log(self, hours: float) -> None:
        ...

    @abc.abstractmethod
    async def add_event_log(self, description: str) -> None:
        ...

    @abc.abstractmethod
    async def add_wellness_activity(self, description: str) -> None:
        ...
