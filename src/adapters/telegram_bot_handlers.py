"""Bot-side commands and button callbacks.

The handlers are plain functions over the store ports so they can be tested
without a Telegram connection; `register_handlers` wires them to Telethon.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from telethon import Button, events

from core.keyword_rules import parse_keyword_list
from core.models import Ruleset
from core.notification_formatting import BLOCK_CALLBACK_PREFIX, UNKNOWN_SENDER, escape_md
from core.ports import BlockStore, RulesetStore

LOGGER = logging.getLogger(__name__)

NOOP_CALLBACK = b"noop"


@dataclass(frozen=True)
class BlockReply:
    """Outcome of a block button press."""

    blocked: bool
    toast: str
    message: Optional[str] = None


def parse_block_callback(data: str) -> Optional[tuple[int, str]]:
    """Return (author_id, label) from a block callback payload."""

    if not data.startswith(BLOCK_CALLBACK_PREFIX):
        return None
    author_part, _, label = data[len(BLOCK_CALLBACK_PREFIX):].partition(":")
    try:
        author_id = int(author_part)
    except ValueError:
        return None
    return author_id, label or UNKNOWN_SENDER


def handle_block_callback(block_store: BlockStore, user_id: int, data: str) -> Optional[BlockReply]:
    """Block the author referenced by a callback payload."""

    parsed = parse_block_callback(data)
    if parsed is None:
        return None
    author_id, label = parsed

    if not block_store.block(user_id, author_id, label):
        return BlockReply(blocked=False, toast="Author is already blocked")

    total = block_store.count(user_id)
    LOGGER.info("User %s blocked author %s", user_id, author_id)
    message = "\n".join(
        [
            "**Author blocked**",
            "",
            f"You will no longer get notifications for messages from **{escape_md(label)}** (ID: `{author_id}`).",
            "",
            f"Blocked authors: {total}",
        ]
    )
    return BlockReply(blocked=True, toast=f"Author {label} blocked", message=message)


def handle_keywords_command(rulesets: RulesetStore, user_id: int, argument: str) -> str:
    """Replace the user's keywords, or show them when no argument is given."""

    current = rulesets.get_ruleset(user_id)
    keywords = parse_keyword_list(argument)
    if not keywords:
        if current is None or not current.keywords:
            return "No keywords configured."
        listed = "\n".join(f"• {escape_md(k)}" for k in current.keywords)
        return f"**Keywords ({len(current.keywords)}):**\n{listed}"

    folder_name = current.folder_name if current else ""
    patterns = current.patterns if current else ()
    rulesets.save_ruleset(
        user_id,
        Ruleset(folder_name=folder_name, keywords=tuple(keywords), patterns=patterns),
    )
    LOGGER.info("User %s updated keywords (%s)", user_id, len(keywords))
    return f"Keywords saved: {len(keywords)}"


def format_stats(today: dict[str, int], total: dict[str, int]) -> str:
    return "\n".join(
        [
            "**Today:**",
            f"├ Messages processed: {today.get('messages_processed', 0)}",
            f"├ Matches found: {today.get('matches_found', 0)}",
            f"└ Notifications sent: {today.get('notifications_sent', 0)}",
            "",
            "**Total:**",
            f"├ Messages processed: {total.get('messages_processed', 0)}",
            f"├ Matches found: {total.get('matches_found', 0)}",
            f"└ Notifications sent: {total.get('notifications_sent', 0)}",
        ]
    )


def register_handlers(bot, storage, owners: dict[int, int]) -> None:
    """Attach command and callback handlers to a bot client.

    `owners` maps the Telegram id of whoever talks to the bot to the core
    user id whose rules and blocklist they manage.
    """

    @bot.on(events.CallbackQuery(data=NOOP_CALLBACK))
    async def on_noop(event) -> None:
        await event.answer()

    @bot.on(events.CallbackQuery(pattern=BLOCK_CALLBACK_PREFIX.encode("utf-8")))
    async def on_block(event) -> None:
        user_id = owners.get(event.sender_id)
        if user_id is None:
            await event.answer()
            return
        try:
            reply = handle_block_callback(storage, user_id, event.data.decode("utf-8", errors="ignore"))
        except Exception:
            LOGGER.exception("Error while blocking author")
            await event.answer("Could not block the author")
            return
        if reply is None:
            await event.answer()
            return
        await event.answer(reply.toast, alert=reply.blocked)
        if reply.blocked:
            await event.edit(buttons=[[Button.inline("Author blocked", data=NOOP_CALLBACK)]])
            await event.respond(reply.message, parse_mode="md")

    @bot.on(events.NewMessage(pattern=r"^/keywords(?:@\w+)?(?:\s+([\s\S]*))?$"))
    async def on_keywords(event) -> None:
        user_id = owners.get(event.sender_id)
        if user_id is None:
            return
        argument = event.pattern_match.group(1) or ""
        await event.respond(handle_keywords_command(storage, user_id, argument), parse_mode="md")

    @bot.on(events.NewMessage(pattern=r"^/blocked(?:@\w+)?$"))
    async def on_blocked(event) -> None:
        user_id = owners.get(event.sender_id)
        if user_id is None:
            return
        await event.respond(f"Blocked authors: {storage.count(user_id)}")

    @bot.on(events.NewMessage(pattern=r"^/stats(?:@\w+)?$"))
    async def on_stats(event) -> None:
        if event.sender_id not in owners:
            return
        await event.respond(
            format_stats(storage.get_stats(date.today()), storage.get_stats()),
            parse_mode="md",
        )
