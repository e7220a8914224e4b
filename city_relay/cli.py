from __future__ import annotations

import argparse
import logging
import os
import sys

from city_relay.client.relay_client import RelayClient
from city_relay.client.session import QUICK_SUGGESTIONS, TOPICS, ChatSession
from city_relay.client.store import JsonFileChatStore
from city_relay.config import RelaySettings
from city_relay.errors import ConfigError

logger = logging.getLogger(__name__)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from city_relay.container import build_container
    from city_relay.main import create_app

    try:
        settings = RelaySettings.from_env()
    except ConfigError as exc:
        logger.error("relay_startup_refused error=%s", exc)
        return 1
    host = args.host or settings.host
    port = args.port or settings.port
    container = build_container(settings)
    try:
        uvicorn.run(create_app(container), host=host, port=port)
    finally:
        container.close()
    return 0


def _open_session(args: argparse.Namespace, client: RelayClient) -> ChatSession:
    return ChatSession(
        store=JsonFileChatStore(args.chats_file),
        sender=client,
        city=args.city,
    )


def _print_chat(chat_id: str, session: ChatSession) -> None:
    chat = session.get(chat_id)
    print(f"[{chat_id}] {chat.title}")
    for item in chat.messages:
        print(f"  {item.timestamp} {item.sender}: {item.message}")


def _run_client_command(args: argparse.Namespace) -> int:
    with RelayClient(base_url=args.relay_url, timeout_sec=args.timeout_sec) as client:
        session = _open_session(args, client)

        if args.command == "topics":
            print("Topics:")
            for title in TOPICS:
                print(f"  - {title}")
            print("Quick suggestions:")
            for suggestion in QUICK_SUGGESTIONS:
                print(f"  - {suggestion}")
            return 0

        if args.command == "new":
            print(session.new_chat(args.title))
            return 0

        if args.command == "ask":
            text = " ".join(args.message).strip()
            if args.topic:
                chat_id, reply = session.start_topic(args.topic)
                if reply is not None:
                    print(f"bot: {reply.message}")
            elif args.chat_id:
                if args.chat_id not in session.history.chats:
                    print(f"chat not found: {args.chat_id}", file=sys.stderr)
                    return 1
                chat_id = args.chat_id
            else:
                chat_id = session.new_chat()
            if text:
                reply = session.send(chat_id, text)
                if reply is not None:
                    print(f"bot: {reply.message}")
            print(f"[chat_id={chat_id}]")
            return 0

        if args.command == "chats":
            matches = session.search(args.search or "")
            if not matches:
                if args.search:
                    print(f'No chats found for "{args.search}"')
                else:
                    print("No chats yet")
                return 0
            for chat_id, chat in matches:
                print(f"{chat_id}\t{chat.title}\t{len(chat.messages)} messages")
            return 0

        if args.command == "show":
            try:
                _print_chat(args.chat_id, session)
            except KeyError as exc:
                print(exc.args[0], file=sys.stderr)
                return 1
            return 0

        if args.command == "rename":
            try:
                session.rename(args.chat_id, " ".join(args.title))
            except KeyError as exc:
                print(exc.args[0], file=sys.stderr)
                return 1
            print(session.get(args.chat_id).title)
            return 0

        if args.command == "delete":
            if not session.delete_chat(args.chat_id):
                print(f"chat not found: {args.chat_id}", file=sys.stderr)
                return 1
            return 0

        if args.command == "clear":
            if not args.yes:
                print(
                    "This action cannot be undone. Re-run with --yes to delete all chats.",
                    file=sys.stderr,
                )
                return 1
            print(f"deleted {session.clear_all()} chats")
            return 0

    return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="City guide chat relay")
    parser.add_argument(
        "--relay-url",
        default=os.getenv("CITY_RELAY_URL", "http://localhost:5000"),
    )
    parser.add_argument(
        "--chats-file",
        default=os.getenv("CITY_RELAY_CHATS_FILE", "./data/city_chats.json"),
    )
    parser.add_argument("--city", default=os.getenv("RELAY_CITY", "Bangalore"))
    parser.add_argument("--timeout-sec", type=float, default=90.0)
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="run the relay server")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("-p", "--port", type=int, default=None)

    subparsers.add_parser("topics", help="list starter topics and quick suggestions")

    new_parser = subparsers.add_parser("new", help="create an empty chat")
    new_parser.add_argument("--title", default="new chat")

    ask_parser = subparsers.add_parser("ask", help="send a message through the relay")
    target = ask_parser.add_mutually_exclusive_group()
    target.add_argument("--chat-id", default=None)
    target.add_argument("--topic", default=None, help="start a new chat on a topic")
    ask_parser.add_argument("message", nargs="*")

    chats_parser = subparsers.add_parser("chats", help="list chats")
    chats_parser.add_argument("--search", default="")

    show_parser = subparsers.add_parser("show", help="print one chat")
    show_parser.add_argument("chat_id")

    rename_parser = subparsers.add_parser("rename", help="retitle one chat")
    rename_parser.add_argument("chat_id")
    rename_parser.add_argument("title", nargs="*")

    delete_parser = subparsers.add_parser("delete", help="delete one chat")
    delete_parser.add_argument("chat_id")

    clear_parser = subparsers.add_parser("clear", help="delete all chats")
    clear_parser.add_argument("--yes", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "serve":
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        return _serve(args)
    return _run_client_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
