"""SQLite storage adapter.

Implements the core store ports (rulesets, dedup, blocklist, stats) using a
simple SQLite database.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from core.models import Ruleset

STAT_FIELDS = ("messages_processed", "matches_found", "notifications_sent")


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the core store contracts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - rulesets: current keywords per user
        - sent_notifications: one row per delivered notification
        - seen_content: content fingerprints per user, for near-duplicates
        - blocked_authors: per-user author blocklist
        - stats: daily counters
        """

        with self._connect() as conn:
            # keywords and patterns are JSON arrays of raw strings, kept in the
            # order the user entered them.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS rulesets (
                    user_id INTEGER PRIMARY KEY,
                    folder_name TEXT NOT NULL,
                    keywords TEXT NOT NULL,
                    patterns TEXT NOT NULL DEFAULT '[]',
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            # The unique triple is what makes replayed events idempotent.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sent_notifications (
                    user_id INTEGER NOT NULL,
                    chat_id INTEGER NOT NULL,
                    message_id INTEGER NOT NULL,
                    sent_at TIMESTAMP NOT NULL,
                    UNIQUE (user_id, chat_id, message_id)
                )
                """
            )
            # Fingerprints are keyed per user: two users watching the same chat
            # each get their own notification.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS seen_content (
                    user_id INTEGER NOT NULL,
                    fingerprint TEXT NOT NULL,
                    first_seen TIMESTAMP NOT NULL,
                    PRIMARY KEY (user_id, fingerprint)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blocked_authors (
                    user_id INTEGER NOT NULL,
                    author_id INTEGER NOT NULL,
                    label TEXT,
                    blocked_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (user_id, author_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS stats (
                    day TEXT PRIMARY KEY,
                    messages_processed INTEGER NOT NULL DEFAULT 0,
                    matches_found INTEGER NOT NULL DEFAULT 0,
                    notifications_sent INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    # Rulesets

    def get_ruleset(self, user_id: int) -> Optional[Ruleset]:
        """Return the stored ruleset for a user, if any."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT folder_name, keywords, patterns FROM rulesets WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return Ruleset(
            folder_name=row["folder_name"],
            keywords=tuple(json.loads(row["keywords"])),
            patterns=tuple(json.loads(row["patterns"])),
        )

    def save_ruleset(self, user_id: int, ruleset: Ruleset) -> None:
        """Upsert a user's ruleset."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO rulesets (user_id, folder_name, keywords, patterns, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    folder_name = excluded.folder_name,
                    keywords = excluded.keywords,
                    patterns = excluded.patterns,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    ruleset.folder_name,
                    json.dumps(list(ruleset.keywords), ensure_ascii=False),
                    json.dumps(list(ruleset.patterns), ensure_ascii=False),
                    now.isoformat(),
                ),
            )

    # Dedup

    def is_notified(self, user_id: int, chat_id: int, message_id: int) -> bool:
        """Check if a notification for this message was already sent."""

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM sent_notifications
                WHERE user_id = ? AND chat_id = ? AND message_id = ?
                """,
                (user_id, chat_id, message_id),
            ).fetchone()
        return row is not None

    def mark_notified(self, user_id: int, chat_id: int, message_id: int) -> None:
        """Record a delivered notification; repeats are ignored."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO sent_notifications (user_id, chat_id, message_id, sent_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, chat_id, message_id, now.isoformat()),
            )

    def is_seen(self, user_id: int, fingerprint: str, since: datetime) -> bool:
        """Check if a fingerprint was recorded for the user after `since`."""

        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM seen_content
                WHERE user_id = ? AND fingerprint = ? AND first_seen >= ?
                """,
                (user_id, fingerprint, since.astimezone(timezone.utc).isoformat()),
            ).fetchone()
        return row is not None

    def mark_seen(self, user_id: int, fingerprint: str) -> None:
        """Insert or refresh a fingerprint for the user."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            # An expired row that was not cleaned up yet starts a new window.
            conn.execute(
                """
                INSERT INTO seen_content (user_id, fingerprint, first_seen)
                VALUES (?, ?, ?)
                ON CONFLICT(user_id, fingerprint) DO UPDATE SET first_seen = excluded.first_seen
                """,
                (user_id, fingerprint, now.isoformat()),
            )

    def cleanup_seen(self, retention_hours: int) -> int:
        """Delete fingerprints older than the retention window; return the count."""

        cutoff = datetime.now(timezone.utc) - timedelta(hours=retention_hours)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM seen_content WHERE first_seen < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount

    def cleanup_notified(self, retention_days: int) -> int:
        """Delete delivery records older than retention_days; return the count."""

        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM sent_notifications WHERE sent_at < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount

    # Blocklist

    def is_blocked(self, user_id: int, author_id: int) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM blocked_authors WHERE user_id = ? AND author_id = ?",
                (user_id, author_id),
            ).fetchone()
        return row is not None

    def block(self, user_id: int, author_id: int, label: str) -> bool:
        """Block an author. Returns False if they were already blocked."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO blocked_authors (user_id, author_id, label, blocked_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, author_id, label, now.isoformat()),
            )
            return cur.rowcount > 0

    def unblock(self, user_id: int, author_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM blocked_authors WHERE user_id = ? AND author_id = ?",
                (user_id, author_id),
            )
            return cur.rowcount > 0

    def count(self, user_id: int) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM blocked_authors WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return int(row["total"])

    # Stats

    def increment(self, field: str) -> None:
        """Bump one of the daily counters."""

        if field not in STAT_FIELDS:
            raise ValueError(f"Unsupported stats field: {field}")
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO stats (day, {field}) VALUES (?, 1)
                ON CONFLICT(day) DO UPDATE SET {field} = {field} + 1
                """,
                (date.today().isoformat(),),
            )

    def get_stats(self, day: Optional[date] = None) -> dict[str, int]:
        """Return counters for one day, or totals when no day is given."""

        columns = ", ".join(f"COALESCE(SUM({name}), 0) AS {name}" for name in STAT_FIELDS)
        with self._connect() as conn:
            if day is None:
                row = conn.execute(f"SELECT {columns} FROM stats").fetchone()
            else:
                row = conn.execute(
                    f"SELECT {columns} FROM stats WHERE day = ?",
                    (day.isoformat(),),
                ).fetchone()
        return {name: int(row[name]) for name in STAT_FIELDS}
