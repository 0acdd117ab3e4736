"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

DEFAULT_RETENTION_HOURS = 24
DEFAULT_BODY_CHARS = 500
DEFAULT_NOTIFIED_RETENTION_DAYS = 7
DEFAULT_CLEANUP_INTERVAL_MINUTES = 60


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the message gate."""

    retention_hours: int = DEFAULT_RETENTION_HOURS
    notified_retention_days: int = DEFAULT_NOTIFIED_RETENTION_DAYS
    cleanup_interval_minutes: int = DEFAULT_CLEANUP_INTERVAL_MINUTES

    @property
    def retention(self) -> timedelta:
        return timedelta(hours=self.retention_hours)


@dataclass(frozen=True)
class NotificationConfig:
    """Notification composition settings."""

    body_chars: int = DEFAULT_BODY_CHARS
    action_buttons: bool = True
