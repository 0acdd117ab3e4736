"""Static configuration for scout.

All user-editable settings (watched chats, initial keywords, dedup,
notifications, matching tables) live in a single JSON file for quick edits
without touching Python.
"""

import json
import os

from core.config import (
    DEFAULT_BODY_CHARS,
    DEFAULT_CLEANUP_INTERVAL_MINUTES,
    DEFAULT_NOTIFIED_RETENTION_DAYS,
    DEFAULT_RETENTION_HOURS,
)
from core.lexicon import build_lexicon
from core.models import Ruleset

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite database.
DB_PATH = os.path.join(os.path.dirname(__file__), "scout.db")

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _build_default_ruleset(raw: dict) -> Ruleset:
    return Ruleset(
        folder_name=str(raw.get("folder_name", "")),
        keywords=tuple(str(k) for k in raw.get("keywords", [])),
        patterns=tuple(str(p) for p in raw.get("patterns", [])),
    )


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# The owner is the user whose rules are evaluated; alerts go to the bot chat.
_owner = _CONFIG.get("owner", {})
OWNER_USER_ID = int(_owner.get("user_id", 0))
NOTIFY_CHAT_ID = int(_owner.get("notify_chat_id", OWNER_USER_ID))

# Chats to watch: numeric ids (-100... for supergroups) or @usernames.
CHATS = list(_CONFIG.get("chats", []))

# Seeded into the database only when the owner has no stored ruleset yet;
# afterwards /keywords in the bot is the source of truth.
DEFAULT_RULESET = _build_default_ruleset(_CONFIG.get("ruleset", {}))

# Content dedup window for near-identical reposts.
_dedup = _CONFIG.get("dedup", {})
DEDUP_RETENTION_HOURS = int(_dedup.get("retention_hours", DEFAULT_RETENTION_HOURS))
# Expired fingerprints and delivery records are purged at startup and then
# on this interval.
NOTIFIED_RETENTION_DAYS = int(_dedup.get("notified_retention_days", DEFAULT_NOTIFIED_RETENTION_DAYS))
CLEANUP_INTERVAL_MINUTES = int(_dedup.get("cleanup_interval_minutes", DEFAULT_CLEANUP_INTERVAL_MINUTES))

_notifications = _CONFIG.get("notifications", {})
BODY_CHARS = int(_notifications.get("body_chars", DEFAULT_BODY_CHARS))
ACTION_BUTTONS = bool(_notifications.get("action_buttons", True))

# Matching tables are validated here so a broken table stops startup.
LEXICON = build_lexicon(_CONFIG.get("matching"))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
