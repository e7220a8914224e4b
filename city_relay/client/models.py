from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

Sender = Literal["user", "bot"]

NEW_CHAT_TITLE = "new chat"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ChatMessage:
    sender: Sender
    message: str
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"sender": self.sender, "message": self.message, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ChatMessage:
        sender = payload.get("sender")
        return cls(
            sender="bot" if sender == "bot" else "user",
            message=str(payload.get("message") or ""),
            timestamp=str(payload.get("timestamp") or utc_now_iso()),
        )


@dataclass
class Chat:
    title: str = NEW_CHAT_TITLE
    messages: list[ChatMessage] = field(default_factory=list)

    @property
    def is_untitled(self) -> bool:
        return self.title == NEW_CHAT_TITLE

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "messages": [item.to_dict() for item in self.messages]}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Chat:
        raw_messages = payload.get("messages")
        if not isinstance(raw_messages, list):
            raw_messages = []
        return cls(
            title=str(payload.get("title") or NEW_CHAT_TITLE),
            messages=[ChatMessage.from_dict(item) for item in raw_messages if isinstance(item, dict)],
        )


@dataclass
class ChatHistory:
    """Chat id -> chat, in insertion order."""

    chats: dict[str, Chat] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"chatHistory": {chat_id: chat.to_dict() for chat_id, chat in self.chats.items()}}

    @classmethod
    def from_dict(cls, payload: Any) -> ChatHistory:
        if not isinstance(payload, dict):
            return cls()
        raw = payload.get("chatHistory")
        if not isinstance(raw, dict):
            return cls()
        return cls(
            chats={
                str(chat_id): Chat.from_dict(item)
                for chat_id, item in raw.items()
                if isinstance(item, dict)
            }
        )
