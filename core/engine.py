"""
Assistant Engine — LLM-powered structured responses for the wellness chat.

Takes the user's prompt, recent history, chat settings and a wellness-log
snapshot and asks Claude (or OpenAI) for a single JSON object:

    {"command": "LOG_STRESS" | ... | null, "payload": {...}, "commentary": "..."}

Also produces conversation summaries (title, key takeaways, action items).
Errors are raised as CollaboratorError; the orchestrator decides the fallback.
"""
from __future__ import annotations

import json
import structlog
from typing import Any, Optional, Sequence

from config.settings import LLMConfig, get_settings, is_configured
from core.collaborators import AssistantService, CollaboratorError
from models.schemas import (
    AssistantResponse,
    ChatMessage,
    ChatRole,
    ChatSettings,
    ConversationSummary,
    Personality,
    Tone,
    Verbosity,
    WellnessSnapshot,
)

logger = structlog.get_logger()

PERSONALITY_INSTRUCTIONS = {
    Personality.EMPATHETIC: "Be warm and validating. Acknowledge feelings before offering suggestions.",
    Personality.PROFESSIONAL: "Be calm, clear and evidence-minded, like a workplace wellness coach.",
    Personality.FRIENDLY: "Be upbeat and encouraging, like a supportive friend.",
    Personality.STOIC: "Be steady and pragmatic. Focus on what is within the user's control.",
}

TONE_INSTRUCTIONS = {
    Tone.CASUAL: "Use relaxed, everyday language and contractions.",
    Tone.FORMAL: "Use polite, well-structured language.",
}

VERBOSITY_INSTRUCTIONS = {
    Verbosity.CONCISE: "Keep commentary to one or two sentences.",
    Verbosity.BALANCED: "Keep commentary to a short paragraph.",
    Verbosity.DETAILED: "Give thorough commentary with concrete, actionable suggestions.",
}

COMMAND_VOCABULARY = """COMMANDS (pick at most one):
  LOG_STRESS         user reports a stress level      payload: {"level": <number 1-10>}
  LOG_SLEEP          user reports sleep duration      payload: {"hours": <number>}
  LOG_EVENT          user describes a notable event   payload: {"description": "<text>"}
  WELLNESS_ACTIVITY  user did a wellness activity     payload: {"description": "<text>"}
  FIND_PLACES        user wants nearby places/help    payload: {"query": "<what to search>"}
  ANALYZE_BURNOUT    user asks about burnout risk     payload: {}
  null               anything else                    payload: null"""


class LLMAssistant(AssistantService):
    """
    Structured-response assistant backed by Claude or OpenAI.
    The client is created lazily on first use.
    """

    def __init__(self, config: LLMConfig = None, history_window: int = None):
        settings = get_settings()
        self._config = config or settings.llm
        self._history_window = history_window or settings.conversation.history_window
        self._client = None
        self._provider = self._config.provider

    @property
    def is_openai(self) -> bool:
        return self._provider == "openai"

    async def _get_client(self):
        if self._client is None:
            api_key = self._config.api_key if is_configured(self._config.api_key) else None
            try:
                if self.is_openai:
                    from openai import AsyncOpenAI
                    self._client = AsyncOpenAI(api_key=api_key)
                else:
                    import anthropic
                    self._client = anthropic.AsyncAnthropic(api_key=api_key)
                logger.info("llm_client_initialized", provider=self._provider, model=self._config.model)
            except Exception as e:
                logger.error("llm_client_init_failed", provider=self._provider, error=str(e))
                raise CollaboratorError(f"LLM client unavailable: {e}", collaborator="assistant") from e
        return self._client

    async def _call_llm(
        self,
        system: str,
        messages: list[dict[str, str]],
        max_tokens: int = None,
        temperature: float = None,
    ) -> str:
        """Unified LLM call that handles both Anthropic and OpenAI APIs."""
        client = await self._get_client()
        max_tokens = max_tokens or self._config.max_tokens
        temperature = temperature if temperature is not None else self._config.temperature

        try:
            if self.is_openai:
                # OpenAI: system prompt is a message in the messages list
                response = await client.chat.completions.create(
                    model=self._config.model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=[{"role": "system", "content": system}] + messages,
                    response_format={"type": "json_object"},
                )
                return response.choices[0].message.content or ""
            # Anthropic: system prompt is a separate parameter
            response = await client.messages.create(
                model=self._config.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=messages,
            )
            return response.content[0].text
        except Exception as e:
            raise CollaboratorError(f"LLM call failed: {e}", collaborator="assistant") from e

    # ── Structured turn ───────────────────────────────────────

    async def process_prompt(
        self,
        prompt: str,
        history: Sequence[ChatMessage],
        settings: ChatSettings,
        snapshot: WellnessSnapshot,
    ) -> AssistantResponse:
        system = self._build_system_prompt(settings, snapshot)
        messages = self._build_messages(history, prompt)
        result = await self._call_llm(system=system, messages=messages)
        response = parse_assistant_response(result)
        logger.info(
            "assistant_response",
            command=response.command,
            has_commentary=bool(response.commentary),
        )
        return response

    async def summarize_conversation(self, history: Sequence[ChatMessage]) -> ConversationSummary:
        transcript = [
            {"role": m.role.value, "text": m.text}
            for m in history
            if not m.is_summary
        ]
        result = await self._call_llm(
            system=(
                "Summarize this wellness conversation. Return ONLY a JSON object with: "
                '"title" (short string), "keyTakeaways" (list of strings), '
                '"actionItems" (list of strings the user could do next).'
            ),
            messages=[{"role": "user", "content": json.dumps(transcript, ensure_ascii=False)}],
            max_tokens=500,
            temperature=0.3,
        )
        data = _load_json(result)
        if not isinstance(data, dict):
            raise CollaboratorError("Summary was not a JSON object", collaborator="assistant")
        return ConversationSummary(
            title=str(data.get("title") or "Conversation summary"),
            key_takeaways=[str(x) for x in data.get("keyTakeaways", data.get("key_takeaways", [])) or []],
            action_items=[str(x) for x in data.get("actionItems", data.get("action_items", [])) or []],
        )

    # ── Prompt Construction ───────────────────────────────────

    def _build_system_prompt(self, settings: ChatSettings, snapshot: WellnessSnapshot) -> str:
        wellness_json = json.dumps(snapshot.trailing(self._history_window), indent=2)
        template = self._config.system_prompt_template or self._default_system_prompt()

        return template.replace(
            "{{personality}}", PERSONALITY_INSTRUCTIONS[settings.personality]
        ).replace(
            "{{tone}}", TONE_INSTRUCTIONS[settings.tone]
        ).replace(
            "{{verbosity}}", VERBOSITY_INSTRUCTIONS[settings.verbosity]
        ).replace(
            "{{commands}}", COMMAND_VOCABULARY
        ).replace(
            "{{wellness_data}}", wellness_json
        )

    def _build_messages(self, history: Sequence[ChatMessage], prompt: str) -> list[dict[str, str]]:
        """Build the message history for the LLM."""
        messages = []
        for entry in list(history)[-self._history_window:]:
            if entry.is_summary:
                continue
            role = "assistant" if entry.role == ChatRole.MODEL else "user"
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"] += "\n" + entry.text
            else:
                messages.append({"role": role, "content": entry.text})

        if messages and messages[-1]["role"] == "user":
            messages[-1]["content"] += "\n" + prompt
        else:
            messages.append({"role": "user", "content": prompt})

        # Ensure messages start with user
        if messages[0]["role"] == "assistant":
            messages.insert(0, {"role": "user", "content": "[Conversation started]"})
        return messages

    def _default_system_prompt(self) -> str:
        return """You are Aura, a supportive wellness companion helping the user track and manage stress.

PERSONALITY: {{personality}}
TONE: {{tone}}
LENGTH: {{verbosity}}

{{commands}}

The user's recent wellness log:
{{wellness_data}}

GUIDELINES:
- Read the user's latest message and decide whether it maps to one of the commands.
- Only emit a command when the user clearly provides the data it needs.
- For ANALYZE_BURNOUT, use the wellness log to explain the user's burnout risk in the commentary.
- Never diagnose. Suggest professional help when the user describes a crisis.

Return ONLY a JSON object, no other text:
{"command": <command name or null>, "payload": <object or null>, "commentary": "<what you say to the user>"}"""


def _load_json(text: Optional[str]) -> Any:
    result = (text or "").strip()
    if result.startswith("```"):
        result = result.split("```")[1].strip()
        if result.startswith("json"):
            result = result[4:].strip()
    return json.loads(result)


def parse_assistant_response(text: Optional[str]) -> AssistantResponse:
    """
    Parse the LLM output into an AssistantResponse.
    Non-JSON output is treated as plain commentary.
    """
    if not text or not text.strip():
        return AssistantResponse()
    try:
        data = _load_json(text)
    except (json.JSONDecodeError, IndexError):
        return AssistantResponse(commentary=text.strip())
    if not isinstance(data, dict):
        return AssistantResponse(commentary=text.strip())

    command = data.get("command")
    payload = data.get("payload")
    commentary = data.get("commentary")
    return AssistantResponse(
        command=str(command) if command else None,
        payload=payload if isinstance(payload, dict) else None,
        commentary=str(commentary) if commentary else None,
    )
