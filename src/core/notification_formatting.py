"""Notification composition (core domain).

Keeping formatting here prevents drift between delivery adapters and keeps
messages consistent regardless of delivery channel. Output targets
Telegram's Markdown parse mode.
"""

from __future__ import annotations

from typing import List, Optional

from core.config import DEFAULT_BODY_CHARS
from core.models import ActionButton, ButtonKind, MessageContext
from core.rules_engine import MatchResult

ELLIPSIS = "..."
BLOCK_CALLBACK_PREFIX = "block_author:"
UNKNOWN_SENDER = "Unknown"
UNKNOWN_CHAT = "Unknown chat"


def escape_md(value: Optional[str]) -> str:
    """Escape characters with meaning in Telegram Markdown."""

    if not value:
        return ""
    for ch in "*_[]`":
        value = value.replace(ch, f"\\{ch}")
    return value


def truncate_text(text: Optional[str], max_chars: int) -> str:
    """Clip text to max_chars, ellipsis included."""

    if not text:
        return ""
    if len(text) <= max_chars:
        return text
    return text[: max(max_chars - len(ELLIPSIS), 0)] + ELLIPSIS


def build_message_link(chat_id: int, message_id: int) -> str:
    """Return a t.me/c deep link to a message.

    Supergroup and channel ids carry a -100 prefix that the link omits;
    basic group ids are negative and the link uses the absolute value.
    """

    raw = str(chat_id)
    if raw.startswith("-100"):
        link_id = raw[4:]
    else:
        link_id = str(abs(chat_id))
    return f"https://t.me/c/{link_id}/{message_id}"


def _format_matches(result: MatchResult) -> List[str]:
    lines: List[str] = []
    if result.details:
        lines.append("**Matches:**")
        for detail in result.details:
            lines.append(f'"{escape_md(detail.keyword)}" ({detail.label})')
            if detail.evidence:
                lines.append(f'   └ Found: "{escape_md(detail.evidence)}"')
    elif result.matched_keywords:
        keywords = ", ".join(escape_md(k) for k in result.matched_keywords)
        lines.append(f"**Keywords:** {keywords}")

    if result.pattern_matches:
        lines.append("**Requests:**")
        for pattern in result.pattern_matches:
            lines.append(f'"{escape_md(pattern.phrase)}" → {escape_md(pattern.target)}')
    return lines


def format_notification(
    context: MessageContext,
    result: MatchResult,
    body_chars: int = DEFAULT_BODY_CHARS,
) -> str:
    """Create the Markdown notification body for one matched message."""

    sender = escape_md(context.sender_display_name or UNKNOWN_SENDER)
    handle = f"@{escape_md(context.sender_handle)}" if context.sender_handle else "none"
    sender_id = context.sender_id if context.sender_id is not None else "unknown"
    body = escape_md(truncate_text(context.text, body_chars))
    chat_title = escape_md(context.chat_title or UNKNOWN_CHAT)
    link = build_message_link(context.chat_id, context.message_id)

    lines = ["**Match found!**", ""]
    lines.extend(_format_matches(result))
    lines.extend(
        [
            "",
            f"**{sender}**",
            f"├ Username: {handle}",
            f"└ User ID: `{sender_id}`",
            "",
            "**Message:**",
            f'"{body}"',
            "",
            f"**Chat:** [{chat_title}]({link})",
        ]
    )
    return "\n".join(lines)


def build_action_buttons(context: MessageContext) -> List[ActionButton]:
    """Return the "message author" and "block author" actions, if possible."""

    if context.sender_id is None:
        return []
    label = context.sender_display_name or UNKNOWN_SENDER
    return [
        ActionButton(
            text="Message author",
            kind=ButtonKind.URL,
            value=f"tg://user?id={context.sender_id}",
        ),
        ActionButton(
            text="Block author",
            kind=ButtonKind.CALLBACK,
            value=f"{BLOCK_CALLBACK_PREFIX}{context.sender_id}:{label}",
        ),
    ]
