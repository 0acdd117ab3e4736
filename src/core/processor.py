"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for storage and
notifications, enabling other frontends or adapters without changes here.

The gate enforces a strict order, and the first suppressing step wins:
1) Empty text
2) Blocked author (before any matching work)
3) Message identity already notified (replays, reconnects)
4) Keyword/pattern match against the freshly read ruleset
5) Content fingerprint already seen within the retention window
Only then is a notification composed and delivered. Dedup records are
written after delivery succeeds so a failed send stays retryable.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import DefaultDict, Dict, Optional, Tuple

from core.config import DedupConfig, NotificationConfig
from core.dedup import compute_fingerprint
from core.errors import DeliveryError, InvalidButtonError
from core.models import GateDecision, GateOutcome, MessageContext
from core.notification_formatting import build_action_buttons, format_notification
from core.ports import BlockStore, DedupStore, NotifierPort, RulesetStore, StatsStore
from core.rules_engine import KeywordMatcher

LOGGER = logging.getLogger(__name__)


class MessageGate:
    """Decide whether a message should produce a notification."""

    def __init__(
        self,
        matcher: KeywordMatcher,
        rulesets: RulesetStore,
        dedup_store: DedupStore,
        block_store: BlockStore,
        dedup_config: DedupConfig,
    ) -> None:
        self._matcher = matcher
        self._rulesets = rulesets
        self._dedup_store = dedup_store
        self._block_store = block_store
        self._dedup = dedup_config

    def evaluate(self, context: MessageContext, now: Optional[datetime] = None) -> GateDecision:
        """Run the suppression steps for one message."""

        if not context.text or not context.text.strip():
            return GateDecision(GateOutcome.EMPTY)

        if context.sender_id is not None and self._block_store.is_blocked(context.user_id, context.sender_id):
            LOGGER.debug("Blocked author %s for user %s", context.sender_id, context.user_id)
            return GateDecision(GateOutcome.BLOCKED)

        if self._dedup_store.is_notified(context.user_id, context.chat_id, context.message_id):
            return GateDecision(GateOutcome.ALREADY_NOTIFIED)

        # Rules are re-read per message so edits apply without a restart.
        ruleset = self._rulesets.get_ruleset(context.user_id)
        if ruleset is None:
            return GateDecision(GateOutcome.NO_MATCH)

        result = self._matcher.analyze(context.text, ruleset.keywords, ruleset.patterns)
        if not result.matched:
            return GateDecision(GateOutcome.NO_MATCH, result)

        fingerprint = compute_fingerprint(context.text)
        since = (now or datetime.now(timezone.utc)) - self._dedup.retention
        if self._dedup_store.is_seen(context.user_id, fingerprint, since):
            LOGGER.info("Dedup skip for chat %s (same content)", context.chat_id)
            return GateDecision(GateOutcome.DUPLICATE_CONTENT, result, fingerprint)

        return GateDecision(GateOutcome.NOTIFY, result, fingerprint)


class MessageProcessor:
    """Orchestrates the gate, composition, delivery and dedup records."""

    def __init__(
        self,
        gate: MessageGate,
        dedup_store: DedupStore,
        notifier: NotifierPort,
        notification_config: NotificationConfig,
        stats: Optional[StatsStore] = None,
    ) -> None:
        self._gate = gate
        self._dedup_store = dedup_store
        self._notifier = notifier
        self._notification = notification_config
        self._stats = stats
        # Check-then-record must not interleave for the same user, otherwise two
        # copies arriving together could both pass the dedup checks.
        # A user's lock lives only while one of their messages is in flight.
        self._locks: Dict[int, asyncio.Lock] = {}
        self._in_flight: DefaultDict[int, int] = defaultdict(int)

    def _count(self, field: str) -> None:
        if self._stats is not None:
            self._stats.increment(field)

    async def handle(self, context: MessageContext) -> GateOutcome:
        """Process one message context through the core pipeline."""

        user_id = context.user_id
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._in_flight[user_id] += 1
        try:
            async with lock:
                return await self._process(context)
        finally:
            self._in_flight[user_id] -= 1
            if not self._in_flight[user_id]:
                del self._in_flight[user_id]
                del self._locks[user_id]

    async def _process(self, context: MessageContext) -> GateOutcome:
        decision = self._gate.evaluate(context)
        if decision.outcome is not GateOutcome.EMPTY:
            self._count("messages_processed")
        if not decision.should_notify:
            return decision.outcome
        self._count("matches_found")

        text = format_notification(context, decision.result, self._notification.body_chars)
        buttons = build_action_buttons(context) if self._notification.action_buttons else []
        try:
            await self._deliver(context, text, buttons)
        except DeliveryError:
            LOGGER.exception("Failed to deliver notification for chat %s", context.chat_id)
            return GateOutcome.DELIVERY_FAILED

        self._dedup_store.mark_notified(context.user_id, context.chat_id, context.message_id)
        if decision.fingerprint:
            self._dedup_store.mark_seen(context.user_id, decision.fingerprint)
        self._count("notifications_sent")
        LOGGER.info(
            "Notification sent for chat %s (%s)",
            context.chat_id,
            ", ".join(decision.result.matched_keywords) or "patterns",
        )
        return GateOutcome.DELIVERED

    async def _deliver(self, context: MessageContext, text: str, buttons) -> None:
        try:
            await self._notifier.send(context.user_id, text, buttons)
        except InvalidButtonError:
            if not buttons:
                raise
            LOGGER.warning("Buttons rejected for chat %s, resending without them", context.chat_id)
            await self._notifier.send(context.user_id, text, [])


def purge_expired(dedup_store: DedupStore, dedup_config: DedupConfig) -> Tuple[int, int]:
    """Drop expired fingerprints and delivery records; return both counts."""

    seen = dedup_store.cleanup_seen(dedup_config.retention_hours)
    notified = dedup_store.cleanup_notified(dedup_config.notified_retention_days)
    LOGGER.info("Dedup cleanup removed %s fingerprints and %s delivery records", seen, notified)
    return seen, notified


async def run_cleanup_loop(
    dedup_store: DedupStore,
    dedup_config: DedupConfig,
    interval_seconds: Optional[float] = None,
) -> None:
    """Purge expired dedup state every interval until cancelled."""

    interval = interval_seconds if interval_seconds is not None else dedup_config.cleanup_interval_minutes * 60
    while True:
        await asyncio.sleep(interval)
        try:
            purge_expired(dedup_store, dedup_config)
        except Exception:
            LOGGER.exception("Dedup cleanup failed")
