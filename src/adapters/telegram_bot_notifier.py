"""Telegram bot notification adapter.

Sends notifications through a bot-authorized Telethon client so they can
carry inline action buttons.
"""

from __future__ import annotations

from typing import Sequence

from telethon import Button, errors

from core.errors import DeliveryError, InvalidButtonError
from core.models import ActionButton, ButtonKind

# Telegram rejects inline callback payloads above this size.
MAX_CALLBACK_BYTES = 64

_BUTTON_ERRORS = (
    errors.ButtonDataInvalidError,
    errors.ButtonUrlInvalidError,
    errors.ReplyMarkupInvalidError,
)


def _fit_callback_data(value: str) -> bytes:
    """Encode callback data, trimming the trailing label to the size limit."""

    data = value.encode("utf-8")
    if len(data) <= MAX_CALLBACK_BYTES:
        return data
    # Drop whole characters so the payload stays valid UTF-8.
    trimmed = data[:MAX_CALLBACK_BYTES].decode("utf-8", errors="ignore")
    return trimmed.encode("utf-8")


def to_telethon_buttons(buttons: Sequence[ActionButton]) -> list:
    """Map core action buttons to a single row of Telethon buttons."""

    row = []
    for button in buttons:
        if button.kind is ButtonKind.URL:
            row.append(Button.url(button.text, button.value))
        elif button.kind is ButtonKind.CALLBACK:
            row.append(Button.inline(button.text, data=_fit_callback_data(button.value)))
    return [row] if row else []


def _is_button_error(exc: errors.RPCError) -> bool:
    if isinstance(exc, _BUTTON_ERRORS):
        return True
    # e.g. BUTTON_USER_PRIVACY_RESTRICTED on older Telethon releases
    return "BUTTON" in (getattr(exc, "message", "") or "").upper()


class TelegramBotNotifier:
    """Notifier adapter that sends messages from a Telegram bot."""

    def __init__(self, client, chat_ids: dict[int, int]) -> None:
        # chat_ids maps a core user id to the chat where that user gets alerts.
        self._client = client
        self._chat_ids = chat_ids

    async def send(self, user_id: int, text: str, buttons: Sequence[ActionButton] = ()) -> None:
        """Send the formatted notification to the user's alert chat."""

        chat_id = self._chat_ids.get(user_id)
        if chat_id is None:
            raise DeliveryError(f"No notification chat configured for user {user_id}")

        try:
            await self._client.send_message(
                chat_id,
                text,
                parse_mode="md",
                link_preview=False,
                buttons=to_telethon_buttons(buttons) or None,
            )
        except errors.RPCError as exc:
            if buttons and _is_button_error(exc):
                raise InvalidButtonError(str(exc)) from exc
            raise DeliveryError(str(exc)) from exc
        except (ConnectionError, OSError) as exc:
            raise DeliveryError(str(exc)) from exc
