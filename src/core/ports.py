"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage and notification adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from core.models import ActionButton, Ruleset


class RulesetStore(Protocol):
    """Current keyword rules per user. Read on every message, never cached."""

    def get_ruleset(self, user_id: int) -> Optional[Ruleset]:
        ...

    def save_ruleset(self, user_id: int, ruleset: Ruleset) -> None:
        ...


class DedupStore(Protocol):
    """Records of notifications already sent."""

    def is_notified(self, user_id: int, chat_id: int, message_id: int) -> bool:
        ...

    def mark_notified(self, user_id: int, chat_id: int, message_id: int) -> None:
        ...

    def is_seen(self, user_id: int, fingerprint: str, since: datetime) -> bool:
        ...

    def mark_seen(self, user_id: int, fingerprint: str) -> None:
        ...

    def cleanup_seen(self, retention_hours: int) -> int:
        ...

    def cleanup_notified(self, retention_days: int) -> int:
        ...


class BlockStore(Protocol):
    """Per-user author blocklist."""

    def is_blocked(self, user_id: int, author_id: int) -> bool:
        ...

    def block(self, user_id: int, author_id: int, label: str) -> bool:
        ...

    def unblock(self, user_id: int, author_id: int) -> bool:
        ...

    def count(self, user_id: int) -> int:
        ...


class StatsStore(Protocol):
    """Daily processing counters."""

    def increment(self, field: str) -> None:
        ...


class NotifierPort(Protocol):
    """Delivery sink for composed notifications.

    Raises DeliveryError on failure, InvalidButtonError when the buttons
    were the reason.
    """

    async def send(self, user_id: int, text: str, buttons: Sequence[ActionButton] = ()) -> None:
        ...
