"""Application entry point for the scout watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_handlers import register_handlers
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_mapper import build_context
from client import build_bot_client, build_client
from core.config import DedupConfig, NotificationConfig
from core.processor import MessageGate, MessageProcessor, purge_expired, run_cleanup_loop
from core.rules_engine import KeywordMatcher, MatchResult

NAME = "SCOUT"
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
    for name in redact_cfg.get("patterns", ["API_HASH", "BOT_TOKEN"]):
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
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/scout.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _dedup_config() -> DedupConfig:
    return DedupConfig(
        retention_hours=settings.DEDUP_RETENTION_HOURS,
        notified_retention_days=settings.NOTIFIED_RETENTION_DAYS,
        cleanup_interval_minutes=settings.CLEANUP_INTERVAL_MINUTES,
    )


def _open_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    if storage.get_ruleset(settings.OWNER_USER_ID) is None:
        storage.save_ruleset(settings.OWNER_USER_ID, settings.DEFAULT_RULESET)
    return storage


async def _serve(storage: SQLiteStorage) -> None:
    logger = logging.getLogger(__name__)

    client = build_client()
    await client.connect()
    if not await client.is_user_authorized():
        raise RuntimeError("Telegram session is not authorized; log in with Telethon first")

    bot, bot_token = build_bot_client()
    await bot.start(bot_token=bot_token)

    notifier = TelegramBotNotifier(bot, {settings.OWNER_USER_ID: settings.NOTIFY_CHAT_ID})
    gate = MessageGate(
        matcher=KeywordMatcher(settings.LEXICON),
        rulesets=storage,
        dedup_store=storage,
        block_store=storage,
        dedup_config=_dedup_config(),
    )
    processor = MessageProcessor(
        gate=gate,
        dedup_store=storage,
        notifier=notifier,
        notification_config=NotificationConfig(
            body_chars=settings.BODY_CHARS,
            action_buttons=settings.ACTION_BUTTONS,
        ),
        stats=storage,
    )

    # The bot chat is where the owner manages keywords and the blocklist.
    register_handlers(bot, storage, {settings.NOTIFY_CHAT_ID: settings.OWNER_USER_ID})

    # Single handler keeps Telethon integration minimal and defers all filtering
    # to our core processor for consistency and testability.
    @client.on(events.NewMessage(chats=settings.CHATS or None))
    async def handler(event) -> None:
        try:
            context = await build_context(event.message, settings.OWNER_USER_ID)
            await processor.handle(context)
        except Exception:
            logger.exception("Error while processing message")

    logger.info("Client connected. Watching %s chats...", len(settings.CHATS) or "all")
    cleanup = asyncio.create_task(run_cleanup_loop(storage, _dedup_config()))
    try:
        await asyncio.gather(client.run_until_disconnected(), bot.run_until_disconnected())
    finally:
        cleanup.cancel()
        logger.info("Stopped dedup cleanup")


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting scout")
    storage = _open_storage()
    purge_expired(storage, _dedup_config())

    ruleset = storage.get_ruleset(settings.OWNER_USER_ID)
    logger.info("%s keywords are loaded", len(ruleset.keywords) if ruleset else 0)

    asyncio.run(_serve(storage))


def _describe(result: MatchResult) -> str:
    if not result.matched:
        return "No match."
    lines = [f'"{detail.keyword}" ({detail.label}): {detail.evidence}' for detail in result.details]
    lines.extend(f'"{p.phrase}" -> {p.target}' for p in result.pattern_matches)
    return "\n".join(lines)


def _check(text: str) -> None:
    storage = _open_storage()
    ruleset = storage.get_ruleset(settings.OWNER_USER_ID) or settings.DEFAULT_RULESET
    matcher = KeywordMatcher(settings.LEXICON)
    print(_describe(matcher.analyze(text, ruleset.keywords, ruleset.patterns)))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="scout")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    check_parser = subparsers.add_parser(
        "check",
        help="Match a text against the stored keywords without connecting to Telegram.",
    )
    check_parser.add_argument("text")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check(args.text)
        return
    _run()


if __name__ == "__main__":
    main()
