"""Telegram client factories for scout.

The watcher needs two clients: a user client that reads the monitored chats
and a bot client that delivers notifications with buttons. Both reuse
existing session files; there is no interactive login here.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def _credentials() -> tuple[int, str]:
    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    return int(api_id), api_hash


def build_client() -> TelegramClient:
    """Create the user client that listens to monitored chats."""

    api_id, api_hash = _credentials()
    session_name = os.getenv("SESSION_NAME", "scout")
    logging.getLogger(__name__).info("Initializing Telegram client")
    return TelegramClient(session_name, api_id, api_hash)


def build_bot_client() -> tuple[TelegramClient, str]:
    """Create the bot client used for notifications, with its token."""

    api_id, api_hash = _credentials()
    bot_token = os.getenv("BOT_TOKEN")
    if not bot_token:
        raise RuntimeError("Missing BOT_TOKEN in environment")
    session_name = os.getenv("BOT_SESSION_NAME", "scout-bot")
    logging.getLogger(__name__).info("Initializing Telegram bot client")
    return TelegramClient(session_name, api_id, api_hash), bot_token
