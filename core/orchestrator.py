"""
Conversation Orchestrator — one chat turn from user text to reply message.

Flow for handle_turn():
  1. Append the user's message to the caller-owned history
  2. Ask the assistant for {command, payload, commentary}
  3. Mutating command with a valid payload → CommandDispatcher, before the reply
  4. FIND_PLACES → bounded geolocation, place search, reply with its citations
  5. ANALYZE_BURNOUT → commentary reply flagged as analysis
  6. Anything else → commentary (or a safe fallback)

Any collaborator failure becomes a single apologetic reply. The loading
flag is cleared on every exit path.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Optional

from config.settings import ConversationConfig, get_settings
from core.collaborators import (
    AssistantService,
    CollaboratorError,
    DomainHooks,
    LocationProvider,
    LocationUnavailable,
    PlaceSearchService,
)
from core.dispatcher import MUTATING_COMMANDS, CommandDispatcher, parse_command
from core.history import ChatHistory
from models.schemas import (
    AssistantResponse,
    ChatMessage,
    ChatRole,
    ChatSettings,
    CommandType,
    ConversationCommand,
    GeoLocation,
    WellnessSnapshot,
)

logger = structlog.get_logger()

FALLBACK_REPLY = "I'm not sure how to respond to that."
ERROR_REPLY = "I'm sorry, I'm having trouble responding right now. Please try again in a moment."
SUMMARY_TITLE = "Conversation Summary"
SUMMARY_ERROR_REPLY = "Sorry, I couldn't summarize our conversation right now."
MIN_MESSAGES_TO_SUMMARIZE = 3


class ConversationOrchestrator:
    """
    Routes chat turns through the assistant and applies its commands.

    Collaborators are injected; the orchestrator owns no I/O itself.
    """

    def __init__(
        self,
        assistant: AssistantService,
        hooks: DomainHooks,
        place_search: PlaceSearchService = None,
        locator: LocationProvider = None,
        dispatcher: CommandDispatcher = None,
        config: ConversationConfig = None,
    ):
        self.assistant = assistant
        self.hooks = hooks
        self.place_search = place_search
        self.locator = locator
        self.dispatcher = dispatcher or CommandDispatcher()
        self.config = config or get_settings().conversation
        self.is_loading = False
        self.is_summarizing = False

    # ══════════════════════════════════════════════════════════
    #  CHAT TURN
    # ══════════════════════════════════════════════════════════

    async def handle_turn(
        self,
        text: str,
        history: ChatHistory,
        settings: ChatSettings,
        snapshot: WellnessSnapshot,
    ) -> Optional[ChatMessage]:
        """
        Process one user turn and append the reply to `history`.

        Returns the reply, or None when the input was blank or another
        turn is still in flight (nothing is appended in that case).
        """
        if not text or not text.strip() or self.is_loading:
            return None

        prior = history.trailing(self.config.history_window)
        history.append(ChatMessage(role=ChatRole.USER, text=text))
        self.is_loading = True

        try:
            response = await self.assistant.process_prompt(text, prior, settings, snapshot)
            reply = await self._interpret(response)
        except Exception as e:
            logger.error("chat_turn_failed", error=str(e), error_type=type(e).__name__)
            reply = ChatMessage(role=ChatRole.MODEL, text=ERROR_REPLY)
        finally:
            self.is_loading = False

        return history.append(reply)

    async def _interpret(self, response: AssistantResponse) -> ChatMessage:
        command = parse_command(response.command, response.payload)

        if command.type in MUTATING_COMMANDS:
            await self.dispatcher.dispatch(command.type, command.payload, self.hooks)
        elif command.type == CommandType.FIND_PLACES:
            return await self._find_places(command)

        return ChatMessage(
            role=ChatRole.MODEL,
            text=response.commentary or FALLBACK_REPLY,
            command=None if command.is_none else command.type,
            payload=command.payload or None,
            is_analysis=command.type == CommandType.ANALYZE_BURNOUT,
        )

    # ══════════════════════════════════════════════════════════
    #  PLACES
    # ══════════════════════════════════════════════════════════

    async def _find_places(self, command: ConversationCommand) -> ChatMessage:
        if self.place_search is None:
            raise CollaboratorError("No place search service configured", collaborator="places")

        query = command.payload["query"].strip()
        location = await self._locate()
        if location is not None:
            query = f"{query} within {self.config.nearby_radius_km}km"

        result = await self.place_search.search(query, location)
        logger.info("places_found", located=location is not None, has_grounding=bool(result.grounding_metadata))
        return ChatMessage(
            role=ChatRole.MODEL,
            text=result.text,
            command=CommandType.FIND_PLACES,
            payload=command.payload,
            grounding_metadata=result.grounding_metadata,
        )

    async def _locate(self) -> Optional[GeoLocation]:
        """Best-effort location, never longer than the configured bound."""
        if self.locator is None:
            return None
        try:
            return await asyncio.wait_for(
                self.locator.locate(),
                timeout=self.config.location_timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            logger.info("location_timed_out", timeout_ms=self.config.location_timeout_ms)
        except LocationUnavailable as e:
            logger.info("location_unavailable", reason=str(e))
        except Exception as e:
            logger.warning("location_lookup_failed", error=str(e))
        return None

    # ══════════════════════════════════════════════════════════
    #  SUMMARY
    # ══════════════════════════════════════════════════════════

    async def summarize(self, history: ChatHistory) -> Optional[ChatMessage]:
        """Append a summary of the conversation so far (needs 3+ messages)."""
        if self.is_loading or self.is_summarizing or len(history) < MIN_MESSAGES_TO_SUMMARIZE:
            return None

        self.is_summarizing = True
        try:
            summary = await self.assistant.summarize_conversation(history.messages)
            message = ChatMessage(
                role=ChatRole.MODEL,
                text=SUMMARY_TITLE,
                summary=summary,
                is_summary=True,
            )
        except Exception as e:
            logger.error("summarization_failed", error=str(e))
            message = ChatMessage(role=ChatRole.MODEL, text=SUMMARY_ERROR_REPLY)
        finally:
            self.is_summarizing = False

        return history.append(message)
