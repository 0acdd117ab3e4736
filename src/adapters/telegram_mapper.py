"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from telethon.tl.custom import Message

from core.models import MessageContext
from core.notification_formatting import UNKNOWN_CHAT, UNKNOWN_SENDER

LOGGER = logging.getLogger(__name__)


def display_name(entity: Any) -> str:
    """Return a human-readable name for a user, chat or channel entity."""

    if entity is None:
        return UNKNOWN_SENDER
    first = getattr(entity, "first_name", None)
    last = getattr(entity, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    title = getattr(entity, "title", None)
    if title:
        return str(title)
    return UNKNOWN_SENDER


async def _safe_sender(message: Message) -> Optional[Any]:
    try:
        return await message.get_sender()
    except Exception:
        # Senders of anonymous admins or deleted accounts may not resolve.
        LOGGER.debug("Could not resolve sender for message %s", message.id, exc_info=True)
        return None


async def _safe_chat(message: Message) -> Optional[Any]:
    try:
        return await message.get_chat()
    except Exception:
        LOGGER.debug("Could not resolve chat for message %s", message.id, exc_info=True)
        return None


async def build_context(message: Message, user_id: int) -> MessageContext:
    """Build a core MessageContext from a Telethon Message."""

    sender = await _safe_sender(message)
    chat = await _safe_chat(message)

    username = getattr(sender, "username", None)
    chat_title = getattr(chat, "title", None) or UNKNOWN_CHAT

    return MessageContext(
        user_id=user_id,
        chat_id=message.chat_id,
        message_id=message.id,
        text=message.raw_text or "",
        chat_title=str(chat_title),
        sender_id=message.sender_id,
        sender_display_name=display_name(sender),
        sender_handle=username if isinstance(username, str) and username else None,
        date=message.date,
    )
