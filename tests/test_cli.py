from __future__ import annotations

import json
from pathlib import Path

import pytest

from city_relay import cli


class _FakeRelayClient:
    sent: list[str] = []

    def __init__(self, *, base_url: str, timeout_sec: float = 90.0) -> None:
        self.base_url = base_url

    def __enter__(self) -> _FakeRelayClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        return None

    def send(self, message: str) -> str:
        _FakeRelayClient.sent.append(message)
        return "Try Vidyarthi Bhavan."


@pytest.fixture
def chats_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    _FakeRelayClient.sent = []
    monkeypatch.setattr(cli, "RelayClient", _FakeRelayClient)
    return tmp_path / "chats.json"


def _history(path: Path) -> dict[str, dict[str, object]]:
    return json.loads(path.read_text(encoding="utf-8"))["chatHistory"]


def test_cli_ask_creates_chat_and_prints_reply(chats_file: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    code = cli.main(["--chats-file", str(chats_file), "ask", "Best", "dosa", "in", "Basavanagudi?"])

    out = capsys.readouterr().out
    history = _history(chats_file)
    assert code == 0
    assert "bot: Try Vidyarthi Bhavan." in out
    assert len(history) == 1
    chat = next(iter(history.values()))
    assert chat["title"] == "Best dosa in Basavanagudi?"
    assert "User's message: Best dosa in Basavanagudi?" in _FakeRelayClient.sent[0]


def test_cli_ask_with_topic_sends_title_then_message(chats_file: Path) -> None:
    code = cli.main(["--chats-file", str(chats_file), "ask", "--topic", "Local Food", "Veg options?"])

    chat = next(iter(_history(chats_file).values()))
    assert code == 0
    assert chat["title"] == "Local Food"
    assert len(chat["messages"]) == 4
    assert len(_FakeRelayClient.sent) == 2


def test_cli_ask_unknown_chat_fails(chats_file: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    code = cli.main(["--chats-file", str(chats_file), "ask", "--chat-id", "chat_0", "hello"])

    assert code == 1
    assert "chat not found" in capsys.readouterr().err


def test_cli_chats_search_delete_and_clear(chats_file: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    base = ["--chats-file", str(chats_file)]
    cli.main([*base, "new", "--title", "Tech Parks"])
    cli.main([*base, "new", "--title", "Education"])
    capsys.readouterr()

    cli.main([*base, "chats", "--search", "tech"])
    listing = capsys.readouterr().out
    assert "Tech Parks" in listing
    assert "Education" not in listing

    cli.main([*base, "chats", "--search", "metro"])
    assert 'No chats found for "metro"' in capsys.readouterr().out

    tech_id = listing.split("\t")[0]
    assert cli.main([*base, "delete", tech_id]) == 0
    assert cli.main([*base, "delete", tech_id]) == 1

    assert cli.main([*base, "clear"]) == 1
    assert cli.main([*base, "clear", "--yes"]) == 0
    assert _history(chats_file) == {}


def test_cli_serve_refuses_without_credential(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    assert cli.main(["serve"]) == 1


def test_cli_serve_runs_uvicorn_with_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    import uvicorn

    seen: dict[str, object] = {}

    def _fake_run(app, host: str, port: int) -> None:  # type: ignore[no-untyped-def]
        seen["app"] = app
        seen["host"] = host
        seen["port"] = port

    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.setenv("PORT", "5099")
    monkeypatch.setattr(uvicorn, "run", _fake_run)

    assert cli.main(["serve", "--host", "127.0.0.1"]) == 0
    assert seen["host"] == "127.0.0.1"
    assert seen["port"] == 5099
    assert seen["app"].state.container.settings.api_key == "sk-test"


def test_cli_rename_retitles_chat(chats_file: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    base = ["--chats-file", str(chats_file)]
    cli.main([*base, "new"])
    chat_id = capsys.readouterr().out.strip()

    assert cli.main([*base, "rename", chat_id, "Weekend", "in", "Nandi", "Hills"]) == 0
    assert _history(chats_file)[chat_id]["title"] == "Weekend in Nandi Hills"

    assert cli.main([*base, "rename", chat_id]) == 0
    assert _history(chats_file)[chat_id]["title"] == "new chat"

    assert cli.main([*base, "rename", "chat_0", "Anything"]) == 1
    assert "chat not found: chat_0" in capsys.readouterr().err
