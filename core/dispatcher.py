"""
Command Dispatcher — structured assistant commands → wellness-log mutations.

Routing table:
  LOG_STRESS         payload.level (number)        → add_stress_log
  LOG_SLEEP          payload.hours (number)        → add_sleep_log
  LOG_EVENT          payload.description (text)    → add_event_log
  WELLNESS_ACTIVITY  payload.description (text)    → add_wellness_activity

FIND_PLACES and ANALYZE_BURNOUT are handled by the orchestrator and are
never dispatched here.
"""
from __future__ import annotations

import math
import structlog
from typing import Any, Callable, Optional, Union

from core.collaborators import DomainHooks
from models.schemas import CommandType, ConversationCommand

logger = structlog.get_logger()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


# command → (required payload field, validator)
REQUIRED_FIELDS: dict[CommandType, tuple[str, Callable[[Any], bool]]] = {
    CommandType.LOG_STRESS: ("level", _is_number),
    CommandType.LOG_SLEEP: ("hours", _is_number),
    CommandType.LOG_EVENT: ("description", _is_text),
    CommandType.WELLNESS_ACTIVITY: ("description", _is_text),
    CommandType.FIND_PLACES: ("query", _is_text),
}

MUTATING_COMMANDS = (
    CommandType.LOG_STRESS,
    CommandType.LOG_SLEEP,
    CommandType.LOG_EVENT,
    CommandType.WELLNESS_ACTIVITY,
)


def payload_is_valid(command_type: CommandType, payload: Optional[dict[str, Any]]) -> bool:
    required = REQUIRED_FIELDS.get(command_type)
    if required is None:
        return True
    field_name, check = required
    return isinstance(payload, dict) and field_name in payload and check(payload[field_name])


def parse_command(command: Optional[str], payload: Optional[dict[str, Any]]) -> ConversationCommand:
    """
    Resolve a raw assistant command into a ConversationCommand.

    Unknown command names and commands whose required payload field is
    missing or ill-typed both resolve to NONE.
    """
    if not command:
        return ConversationCommand()
    try:
        command_type = CommandType(str(command).strip().upper())
    except ValueError:
        logger.info("unknown_command_ignored", command=command)
        return ConversationCommand()

    if not payload_is_valid(command_type, payload):
        logger.info("invalid_command_payload", command=command_type.value, payload=payload)
        return ConversationCommand()
    return ConversationCommand(type=command_type, payload=payload or {})


class CommandDispatcher:

    async def dispatch(
        self,
        command: Union[CommandType, str, None],
        payload: Optional[dict[str, Any]],
        hooks: DomainHooks,
    ) -> Optional[CommandType]:
        """Call exactly one mutator for a valid command. Returns what ran, or None."""
        if isinstance(command, CommandType):
            command_type = command
        else:
            try:
                command_type = CommandType(str(command or "").strip().upper())
            except ValueError:
                return None

        if command_type not in MUTATING_COMMANDS or not payload_is_valid(command_type, payload):
            return None

        if command_type == CommandType.LOG_STRESS:
            await hooks.add_stress_log(payload["level"])
        elif command_type == CommandType.LOG_SLEEP:
            await hooks.add_sleep_log(payload["hours"])
        elif command_type == CommandType.LOG_EVENT:
            await hooks.add_event_log(payload["description"].strip())
        elif command_type == CommandType.WELLNESS_ACTIVITY:
            await hooks.add_wellness_activity(payload["description"].strip())

        logger.info("command_dispatched", command=command_type.value)
        return command_type
