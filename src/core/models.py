"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from core.rules_engine import MatchResult


@dataclass(frozen=True)
class MessageContext:
    """One inbound chat message, as seen by the user it is evaluated for."""

    user_id: int
    chat_id: int
    message_id: int
    text: str
    chat_title: str
    sender_id: Optional[int] = None
    sender_display_name: str = ""
    sender_handle: Optional[str] = None
    date: Optional[datetime] = None


@dataclass(frozen=True)
class Ruleset:
    """A user's keyword rules, as stored."""

    folder_name: str
    keywords: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()


class ButtonKind(str, Enum):
    URL = "url"
    CALLBACK = "callback"


@dataclass(frozen=True)
class ActionButton:
    """Structured action attached to a notification."""

    text: str
    kind: ButtonKind
    value: str


class GateOutcome(str, Enum):
    EMPTY = "empty"
    BLOCKED = "blocked"
    ALREADY_NOTIFIED = "already_notified"
    NO_MATCH = "no_match"
    DUPLICATE_CONTENT = "duplicate_content"
    NOTIFY = "notify"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


@dataclass(frozen=True)
class GateDecision:
    """What the gate decided for one message."""

    outcome: GateOutcome
    result: MatchResult = field(default_factory=MatchResult)
    fingerprint: Optional[str] = None

    @property
    def should_notify(self) -> bool:
        return self.outcome is GateOutcome.NOTIFY
