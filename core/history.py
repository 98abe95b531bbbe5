"""
Chat history — append-only, caller-owned message log.

The orchestrator reads from it and appends to it but never rewrites
entries. clear() starts a fresh conversation seeded with the greeting.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator, Optional

from models.schemas import ChatMessage, ChatRole

GREETINGS = (
    "Hello! I'm Aura. I can understand many Indian languages like Kannada, Hindi, "
    "and Tamil. How can I support you today?",
    "Hi there! How are you doing today? I'm here to help you keep an eye on your well-being.",
)


def greeting_messages(now: Optional[datetime] = None) -> list[ChatMessage]:
    now = now or datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)
    return [
        ChatMessage(
            id=f"init-{i + 1}-{stamp}",
            role=ChatRole.MODEL,
            text=text,
            timestamp=now + timedelta(seconds=i),
        )
        for i, text in enumerate(GREETINGS)
    ]


class ChatHistory:

    def __init__(self, messages: Iterable[ChatMessage] = None):
        self._messages: list[ChatMessage] = (
            list(messages) if messages is not None else greeting_messages()
        )

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def append(self, message: ChatMessage) -> ChatMessage:
        self._messages.append(message)
        return message

    def get(self, message_id: str) -> Optional[ChatMessage]:
        return next((m for m in self._messages if m.id == message_id), None)

    def trailing(self, count: int) -> list[ChatMessage]:
        if count <= 0:
            return []
        return self._messages[-count:]

    def clear(self) -> None:
        self._messages = greeting_messages()
