from __future__ import annotations

import logging
from collections.abc import Callable
from time import time
from typing import Protocol

from city_relay.client.models import NEW_CHAT_TITLE, Chat, ChatHistory, ChatMessage
from city_relay.client.relay_client import RelayClientError
from city_relay.client.store import ChatStore

logger = logging.getLogger(__name__)

FALLBACK_BOT_REPLY = "Sorry, I encountered an error. Please try again."

TOPICS: tuple[str, ...] = (
    "Tourist Places",
    "Local Food",
    "Tech Parks",
    "Transportation",
    "Neighborhood",
    "Education",
    "Events & festivals",
)

QUICK_SUGGESTIONS: tuple[str, ...] = (
    "What are the best places to visit in Bangalore?",
    "Tell me about Bangalore's weather throughout the year",
    "Recommend some local Bangalore street food",
    "Which tech parks are famous in Bangalore?",
)


class ChatSender(Protocol):
    def send(self, message: str) -> str: ...


def frame_message(*, title: str, text: str, city: str = "Bangalore") -> str:
    return (
        f"Context: You are a helpful assistant specializing in {city} city information. "
        f'The user asked about "{title}" (if it is "{NEW_CHAT_TITLE}" then ignore the title and '
        f"just answer the user's message, but remember you are a helpful assistant specializing "
        f"in {city} city information). Please provide relevant and helpful information about "
        f"this topic in {city}.\n\n"
        f"User's message: {text}"
    )


class ChatSession:
    """Local chat history driven against the relay; persists after every change."""

    def __init__(
        self,
        *,
        store: ChatStore,
        sender: ChatSender,
        city: str = "Bangalore",
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._city = city
        self._clock_ms = clock_ms or (lambda: int(time() * 1000))
        self._history = store.load()

    @property
    def history(self) -> ChatHistory:
        return self._history

    def get(self, chat_id: str) -> Chat:
        try:
            return self._history.chats[chat_id]
        except KeyError:
            raise KeyError(f"chat not found: {chat_id}") from None

    def new_chat(self, title: str = NEW_CHAT_TITLE) -> str:
        chat_id = self._next_chat_id()
        self._history.chats[chat_id] = Chat(title=title.strip() or NEW_CHAT_TITLE)
        self._persist()
        return chat_id

    def start_topic(self, title: str) -> tuple[str, ChatMessage | None]:
        chat_id = self.new_chat(title)
        return chat_id, self.send(chat_id, title)

    def send(self, chat_id: str, text: str) -> ChatMessage | None:
        chat = self.get(chat_id)
        normalized = text.strip()
        if not normalized:
            return None
        if chat.is_untitled and not chat.messages:
            chat.title = normalized
        chat.messages.append(ChatMessage(sender="user", message=normalized))
        self._persist()

        try:
            reply = self._sender.send(
                frame_message(title=chat.title, text=normalized, city=self._city)
            )
        except RelayClientError as exc:
            logger.warning(
                "chat_send_failed chat_id=%s status=%s error=%s",
                chat_id,
                exc.status_code,
                exc,
            )
            reply = FALLBACK_BOT_REPLY
        bot_message = ChatMessage(sender="bot", message=reply)
        chat.messages.append(bot_message)
        self._persist()
        return bot_message

    def rename(self, chat_id: str, title: str) -> None:
        self.get(chat_id).title = title.strip() or NEW_CHAT_TITLE
        self._persist()

    def delete_chat(self, chat_id: str) -> bool:
        removed = self._history.chats.pop(chat_id, None)
        if removed is not None:
            self._persist()
        return removed is not None

    def clear_all(self) -> int:
        count = len(self._history.chats)
        self._history.chats.clear()
        self._persist()
        return count

    def search(self, query: str = "") -> list[tuple[str, Chat]]:
        needle = query.strip().lower()
        return [
            (chat_id, chat)
            for chat_id, chat in self._history.chats.items()
            if not needle or needle in chat.title.lower()
        ]

    def _next_chat_id(self) -> str:
        base = f"chat_{self._clock_ms()}"
        chat_id = base
        suffix = 1
        while chat_id in self._history.chats:
            chat_id = f"{base}_{suffix}"
            suffix += 1
        return chat_id

    def _persist(self) -> None:
        self._store.save(self._history)
