"""
Tests for command parsing and dispatch to the wellness log hooks.
"""
import math
from unittest.mock import AsyncMock

import pytest

from core.collaborators import DomainHooks
from core.dispatcher import CommandDispatcher, parse_command, payload_is_valid
from models.schemas import CommandType


@pytest.fixture
def hooks():
    return AsyncMock(spec=DomainHooks)


def _calls(hooks):
    return [
        name for name in ("add_stress_log", "add_sleep_log", "add_event_log", "add_wellness_activity")
        if getattr(hooks, name).await_count
    ]


# ══════════════════════════════════════════════════════════════
#  PARSING
# ══════════════════════════════════════════════════════════════

class TestParseCommand:

    def test_known_command(self):
        cmd = parse_command("LOG_STRESS", {"level": 7})
        assert cmd.type == CommandType.LOG_STRESS
        assert cmd.payload == {"level": 7}

    def test_case_insensitive(self):
        assert parse_command("log_sleep", {"hours": 6.5}).type == CommandType.LOG_SLEEP

    @pytest.mark.parametrize("command", [None, "", "DANCE", "LOG STRESS"])
    def test_unknown_is_none(self, command):
        assert parse_command(command, {"level": 3}).is_none

    def test_analyze_burnout_needs_no_payload(self):
        assert parse_command("ANALYZE_BURNOUT", None).type == CommandType.ANALYZE_BURNOUT

    @pytest.mark.parametrize("command,payload", [
        ("LOG_STRESS", None),
        ("LOG_STRESS", {}),
        ("LOG_STRESS", {"level": "7"}),
        ("LOG_STRESS", {"level": True}),
        ("LOG_STRESS", {"level": math.nan}),
        ("LOG_STRESS", {"level": math.inf}),
        ("LOG_SLEEP", {"hours": -math.inf}),
        ("LOG_SLEEP", {"hours": None}),
        ("LOG_EVENT", {"description": "   "}),
        ("WELLNESS_ACTIVITY", {"description": 5}),
        ("FIND_PLACES", {"query": ""}),
    ])
    def test_invalid_payload_degrades_to_none(self, command, payload):
        assert parse_command(command, payload).is_none

    def test_payload_validity(self):
        assert payload_is_valid(CommandType.FIND_PLACES, {"query": "yoga"})
        assert payload_is_valid(CommandType.NONE, None)
        assert not payload_is_valid(CommandType.LOG_SLEEP, {"sleep": 8})


# ══════════════════════════════════════════════════════════════
#  DISPATCH
# ══════════════════════════════════════════════════════════════

class TestDispatch:

    @pytest.mark.asyncio
    async def test_stress(self, hooks):
        ran = await CommandDispatcher().dispatch(CommandType.LOG_STRESS, {"level": 7}, hooks)
        assert ran == CommandType.LOG_STRESS
        hooks.add_stress_log.assert_awaited_once_with(7)
        assert _calls(hooks) == ["add_stress_log"]

    @pytest.mark.asyncio
    async def test_sleep(self, hooks):
        await CommandDispatcher().dispatch("LOG_SLEEP", {"hours": 6.5}, hooks)
        hooks.add_sleep_log.assert_awaited_once_with(6.5)
        assert _calls(hooks) == ["add_sleep_log"]

    @pytest.mark.asyncio
    async def test_event_description_is_trimmed(self, hooks):
        await CommandDispatcher().dispatch(
            CommandType.LOG_EVENT, {"description": "  Missed a deadline "}, hooks
        )
        hooks.add_event_log.assert_awaited_once_with("Missed a deadline")

    @pytest.mark.asyncio
    async def test_wellness_activity(self, hooks):
        await CommandDispatcher().dispatch(
            CommandType.WELLNESS_ACTIVITY, {"description": "20 minute walk"}, hooks
        )
        hooks.add_wellness_activity.assert_awaited_once_with("20 minute walk")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command,payload", [
        (CommandType.FIND_PLACES, {"query": "yoga"}),
        (CommandType.ANALYZE_BURNOUT, {}),
        (CommandType.NONE, None),
        ("NOT_A_COMMAND", {"level": 3}),
        (None, None),
        (CommandType.LOG_STRESS, {"level": "high"}),
    ])
    async def test_non_mutating_or_invalid_calls_nothing(self, hooks, command, payload):
        assert await CommandDispatcher().dispatch(command, payload, hooks) is None
        assert _calls(hooks) == []
