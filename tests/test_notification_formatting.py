from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from core.models import ButtonKind, MessageContext
from core.notification_formatting import (
    build_action_buttons,
    build_message_link,
    escape_md,
    format_notification,
    truncate_text,
)
from core.rules_engine import MatchDetail, MatchResult, MatchType, PatternMatch


def _context(
    *,
    text: str = "Ищу фронтенд разработчика",
    chat_id: int = -1001234567890,
    sender_id: Optional[int] = 42,
    sender_handle: Optional[str] = "anna_dev",
) -> MessageContext:
    return MessageContext(
        user_id=1,
        chat_id=chat_id,
        message_id=77,
        text=text,
        chat_title="Jobs *IT*",
        sender_id=sender_id,
        sender_display_name="Anna",
        sender_handle=sender_handle,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_escape_md() -> None:
    assert escape_md("a*b_c[d]`e") == "a\\*b\\_c\\[d\\]\\`e"
    assert escape_md(None) == ""


def test_truncate_text_respects_limit_including_ellipsis() -> None:
    text = "x" * 600
    clipped = truncate_text(text, 500)
    assert len(clipped) == 500
    assert clipped.endswith("...")
    assert truncate_text("short", 500) == "short"
    assert truncate_text(None, 10) == ""


def test_build_message_link_for_supergroup() -> None:
    assert build_message_link(-1001234567890, 77) == "https://t.me/c/1234567890/77"


def test_build_message_link_for_basic_group() -> None:
    assert build_message_link(-4567, 3) == "https://t.me/c/4567/3"


def test_format_notification_lists_matches_with_labels_and_evidence() -> None:
    result = MatchResult(
        matched_keywords=("маркетолог", "[head of marketing]"),
        details=(
            MatchDetail("маркетолог", MatchType.SYNONYM, "таргетолог → таргетолог (synonym of маркетолог)"),
            MatchDetail(
                "[head of marketing]",
                MatchType.ALL_REQUIRED,
                "head + of + marketing",
                (MatchType.EXACT, MatchType.EXACT, MatchType.EXACT),
            ),
        ),
    )
    text = format_notification(_context(), result)

    assert text.startswith("**Match found!**")
    assert '"маркетолог" (synonym)' in text
    assert '"\\[head of marketing\\]" (all-required (exact+exact+exact))' in text
    assert '   └ Found: "head + of + marketing"' in text
    assert "├ Username: @anna\\_dev" in text
    assert "└ User ID: `42`" in text
    assert '"Ищу фронтенд разработчика"' in text
    assert "**Chat:** [Jobs \\*IT\\*](https://t.me/c/1234567890/77)" in text


def test_format_notification_includes_pattern_requests() -> None:
    result = MatchResult(pattern_matches=(PatternMatch("ищу дизайнера", "дизайнер", "дизайнера"),))
    text = format_notification(_context(), result)
    assert "**Requests:**" in text
    assert '"ищу дизайнера" → дизайнер' in text
    assert "**Matches:**" not in text


def test_format_notification_handles_missing_sender_details() -> None:
    text = format_notification(_context(sender_id=None, sender_handle=None), MatchResult(("smm",)))
    assert "├ Username: none" in text
    assert "└ User ID: `unknown`" in text
    assert "**Keywords:** smm" in text


def test_format_notification_truncates_body() -> None:
    text = format_notification(_context(text="слово " * 200), MatchResult(("слово",)), body_chars=50)
    body_line = next(line for line in text.splitlines() if line.startswith('"слово'))
    assert body_line.endswith('..."')
    assert len(body_line) == 52


def test_build_action_buttons() -> None:
    buttons = build_action_buttons(_context())
    assert [(b.text, b.kind) for b in buttons] == [
        ("Message author", ButtonKind.URL),
        ("Block author", ButtonKind.CALLBACK),
    ]
    assert buttons[0].value == "tg://user?id=42"
    assert buttons[1].value == "block_author:42:Anna"


def test_build_action_buttons_without_sender() -> None:
    assert build_action_buttons(_context(sender_id=None)) == []
