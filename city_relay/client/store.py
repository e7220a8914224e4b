from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from city_relay.client.models import ChatHistory

logger = logging.getLogger(__name__)


class ChatStore(Protocol):
    def load(self) -> ChatHistory: ...

    def save(self, history: ChatHistory) -> None: ...


class InMemoryChatStore:
    def __init__(self, history: ChatHistory | None = None) -> None:
        self._payload = (history or ChatHistory()).to_dict()

    def load(self) -> ChatHistory:
        return ChatHistory.from_dict(json.loads(json.dumps(self._payload)))

    def save(self, history: ChatHistory) -> None:
        self._payload = history.to_dict()


class JsonFileChatStore:
    """Chat history persisted as one JSON document, replaced atomically on save."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ChatHistory:
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ChatHistory()
        try:
            payload = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("chat_store_corrupt path=%s detail=starting_empty", self._path)
            return ChatHistory()
        return ChatHistory.from_dict(payload)

    def save(self, history: ChatHistory) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps(history.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        os.replace(tmp_path, self._path)
