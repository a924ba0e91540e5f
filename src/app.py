"""Application entry point for the autolinker userbot."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.json_store import JsonRuleStore
from adapters.telegram_host import TelegramAutolinker, TelegramChannelResolver, TelegramUserResolver
from client import build_client
from core.commands import AutolinkCommands
from core.config import RuleRegistry
from core.errors import ResolutionError
from core.models import ChannelInfo, Post, UserInfo
from core.rewriter import process_message

NAME = "AUTOLINKER"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/autolinker.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting autolinker")

    # Rules come from config.json; admin commands write back to the same file.
    registry = RuleRegistry(settings.AUTOLINK)
    store = JsonRuleStore(settings.CONFIG_PATH)

    client = build_client()
    client.start()
    me = client.loop.run_until_complete(client.get_me())

    channels = TelegramChannelResolver(client)
    users = TelegramUserResolver(client, owner_id=me.id)
    commands = AutolinkCommands(registry, store, users)
    TelegramAutolinker(client, registry, commands, channels, users).register()

    logger.info("Client connected. Rewriting outgoing messages...")
    client.run_until_disconnected()


def _setup() -> None:
    _print_banner()
    from frontend.app import ConfigPanelApp

    ConfigPanelApp().run()


class _StaticChannel:
    def __init__(self, team: str, channel: str) -> None:
        self._info = ChannelInfo(channel_name=channel, team_name=team)

    def resolve(self, channel_id: str) -> ChannelInfo:
        if not self._info.team_name:
            raise ResolutionError("no --team given")
        return self._info


class _StaticUser:
    def __init__(self, is_bot: bool) -> None:
        self._is_bot = is_bot

    def get_user(self, user_id: str) -> UserInfo:
        return UserInfo(user_id=user_id, is_bot=self._is_bot)


def _test(text: str, team: str, channel: str, bot: bool) -> None:
    registry = RuleRegistry(settings.AUTOLINK)
    post, changed = process_message(
        Post(message=text, channel_id="cli", user_id="cli"),
        registry.snapshot().compiled,
        _StaticChannel(team, channel),
        _StaticUser(bot),
    )
    print(post.message)
    if not changed:
        print("(no change)")
    elif post.hashtags:
        print(f"hashtags: {post.hashtags}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="autolinker")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the userbot")
    subparsers.add_parser("config", aliases=["setup"], help="Launch the config TUI")
    test_parser = subparsers.add_parser("test", help="Apply the configured rules to a sample text")
    test_parser.add_argument("text", nargs="+")
    test_parser.add_argument("--team", default="", help="Team name for scoped rules")
    test_parser.add_argument("--channel", default="", help="Channel name for scoped rules")
    test_parser.add_argument("--bot", action="store_true", help="Treat the author as a bot")

    args = parser.parse_args(argv)
    if args.command in {"setup", "config"}:
        _setup()
        return
    if args.command == "test":
        _configure_logging()
        _test(" ".join(args.text), args.team, args.channel, args.bot)
        return
    _run()


if __name__ == "__main__":
    main()
