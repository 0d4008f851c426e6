"""CLI entry point for recap-bot."""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

from recap_bot.app import RecapBotApp
from recap_bot.config import AppConfig, load_config
from recap_bot.errors import StorageFailure, ValidationError
from recap_bot.log import setup_logging
from recap_bot.storage.database import Database
from recap_bot.storage.session_repo import SessionStateRepository


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="recap-bot",
        description="Summarize URLs and text, then answer follow-up questions",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Interactive session on stdin")
    _add_config_args(chat_parser)
    chat_parser.add_argument("-s", "--session", default=None, help="Session id (random if omitted)")

    ask_parser = subparsers.add_parser("ask", help="Send one message and print the reply")
    _add_config_args(ask_parser)
    ask_parser.add_argument("-s", "--session", required=True, help="Session id")
    ask_parser.add_argument("message", help="URL, text to summarize, or a question")

    stats_parser = subparsers.add_parser("stats", help="Show session statistics")
    _add_config_args(stats_parser)
    stats_parser.add_argument("-s", "--session", required=True, help="Session id")

    clear_parser = subparsers.add_parser("clear", help="Clear a session's history")
    _add_config_args(clear_parser)
    clear_parser.add_argument("-s", "--session", required=True, help="Session id")

    sessions_parser = subparsers.add_parser("sessions", help="List stored sessions")
    _add_config_args(sessions_parser)

    init_parser = subparsers.add_parser("init", help="Create the session store database")
    _add_config_args(init_parser)

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        args.command = "chat"
        args.config = "config.yaml"
        args.env = ".env"
        args.session = None

    if args.command == "config-check":
        _check_config(args.config, args.env)
        return

    config = _load_or_exit(args.config, args.env)
    setup_logging(config.log_level)

    try:
        match args.command:
            case "chat":
                asyncio.run(_chat(config, args.session or uuid.uuid4().hex[:12]))
            case "ask":
                asyncio.run(_ask(config, args.session, args.message))
            case "stats":
                asyncio.run(_stats(config, args.session))
            case "clear":
                asyncio.run(_clear(config, args.session))
            case "sessions":
                asyncio.run(_sessions(config))
            case "init":
                asyncio.run(_init_store(config))
    except ValidationError as e:
        print(f"Invalid request: {e}", file=sys.stderr)
        sys.exit(2)
    except StorageFailure as e:
        print(f"Storage error: {e}", file=sys.stderr)
        sys.exit(1)


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    model = config.claude_code.model if config.ai.backend == "claude_code" else config.ai.model
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory: {config.data_dir}")
    print(f"  Backend: {config.ai.backend} ({model})")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  Fetch timeout: {config.extraction.timeout:g}s")
    print(f"  Max message length: {config.conversation.max_message_chars:,}")


async def _chat(config: AppConfig, session_id: str) -> None:
    async with RecapBotApp(config) as app:
        print(f"Session: {session_id}  (/reset clears history, /stats shows counts, /quit exits)")
        loop = asyncio.get_running_loop()
        while True:
            line = await loop.run_in_executor(None, _prompt)
            if line is None:
                break
            text = line.strip()
            if not text:
                continue
            if text.lower() in ("/quit", "/exit"):
                break
            if text.lower() == "/reset":
                await app.orchestrator.reset(session_id)
                print("Session reset. Starting fresh.")
                continue
            if text.lower() == "/stats":
                _print_stats(await app.orchestrator.stats(session_id))
                continue
            try:
                reply = await app.orchestrator.handle(session_id, text)
            except ValidationError as e:
                print(f"Invalid request: {e}")
                continue
            print(f"\n{reply}\n")


def _prompt() -> str | None:
    try:
        return input("> ")
    except EOFError:
        return None


async def _ask(config: AppConfig, session_id: str, message: str) -> None:
    async with RecapBotApp(config) as app:
        print(await app.orchestrator.handle(session_id, message))


async def _stats(config: AppConfig, session_id: str) -> None:
    async with RecapBotApp(config) as app:
        _print_stats(await app.orchestrator.stats(session_id))


async def _clear(config: AppConfig, session_id: str) -> None:
    async with RecapBotApp(config) as app:
        await app.orchestrator.reset(session_id)
        print(f"Conversation cleared: {session_id}")


async def _sessions(config: AppConfig) -> None:
    async with RecapBotApp(config) as app:
        for session_id in await app.session_repo.list_sessions():
            print(session_id)


async def _init_store(config: AppConfig) -> None:
    """Open the database once so the schema exists before the first turn."""
    db = Database(config.storage.db_path)
    await db.initialize()
    try:
        stored = await SessionStateRepository(db).list_sessions()
    finally:
        await db.close()
    print(f"Session store ready: {config.storage.db_path} ({len(stored)} sessions)")


def _print_stats(stats) -> None:
    print(f"Entries       : {stats.count}")
    print(f"Created at    : {stats.created_at.isoformat()}")
    print(f"Last accessed : {stats.last_accessed_at.isoformat()}")


if __name__ == "__main__":
    main()
