from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from core.config import DedupConfig, NotificationConfig
from core.errors import DeliveryError, InvalidButtonError
from core.models import ActionButton, GateOutcome, MessageContext, Ruleset
from core.processor import MessageGate, MessageProcessor, purge_expired, run_cleanup_loop
from core.rules_engine import KeywordMatcher


class FakeStorage:
    def __init__(self) -> None:
        self.rulesets: dict[int, Ruleset] = {}
        self.notified: set[tuple[int, int, int]] = set()
        self.seen: dict[tuple[int, str], datetime] = {}
        self.blocked: dict[tuple[int, int], str] = {}
        self.stats: dict[str, int] = {}
        self.cleanups: list[tuple[str, int]] = []

    def get_ruleset(self, user_id: int) -> Optional[Ruleset]:
        return self.rulesets.get(user_id)

    def save_ruleset(self, user_id: int, ruleset: Ruleset) -> None:
        self.rulesets[user_id] = ruleset

    def is_notified(self, user_id: int, chat_id: int, message_id: int) -> bool:
        return (user_id, chat_id, message_id) in self.notified

    def mark_notified(self, user_id: int, chat_id: int, message_id: int) -> None:
        self.notified.add((user_id, chat_id, message_id))

    def is_seen(self, user_id: int, fingerprint: str, since: datetime) -> bool:
        first_seen = self.seen.get((user_id, fingerprint))
        return first_seen is not None and first_seen >= since

    def mark_seen(self, user_id: int, fingerprint: str) -> None:
        self.seen[(user_id, fingerprint)] = datetime.now(timezone.utc)

    def cleanup_seen(self, retention_hours: int) -> int:
        self.cleanups.append(("seen", retention_hours))
        return 0

    def cleanup_notified(self, retention_days: int) -> int:
        self.cleanups.append(("notified", retention_days))
        return 0

    def is_blocked(self, user_id: int, author_id: int) -> bool:
        return (user_id, author_id) in self.blocked

    def block(self, user_id: int, author_id: int, label: str) -> bool:
        if (user_id, author_id) in self.blocked:
            return False
        self.blocked[(user_id, author_id)] = label
        return True

    def unblock(self, user_id: int, author_id: int) -> bool:
        return self.blocked.pop((user_id, author_id), None) is not None

    def count(self, user_id: int) -> int:
        return sum(1 for uid, _ in self.blocked if uid == user_id)

    def increment(self, field: str) -> None:
        self.stats[field] = self.stats.get(field, 0) + 1


class FakeNotifier:
    def __init__(self, failures: Optional[list[Exception]] = None) -> None:
        self.sent: list[tuple[int, str, list[ActionButton]]] = []
        self.attempts = 0
        self._failures = list(failures or [])

    async def send(self, user_id: int, text: str, buttons: Sequence[ActionButton] = ()) -> None:
        self.attempts += 1
        if self._failures:
            raise self._failures.pop(0)
        self.sent.append((user_id, text, list(buttons)))


class CountingMatcher(KeywordMatcher):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def analyze(self, text, keywords, targets=None):
        self.calls += 1
        return super().analyze(text, keywords, targets)


def _context(
    *,
    user_id: int = 1,
    chat_id: int = -1001234567890,
    message_id: int = 10,
    text: str = "Ищу фронтенд разработчика на проект",
    sender_id: Optional[int] = 777,
) -> MessageContext:
    return MessageContext(
        user_id=user_id,
        chat_id=chat_id,
        message_id=message_id,
        text=text,
        chat_title="Jobs",
        sender_id=sender_id,
        sender_display_name="Anna",
        sender_handle="anna",
        date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _build(
    storage: FakeStorage,
    notifier: FakeNotifier,
    matcher: Optional[KeywordMatcher] = None,
    retention_hours: int = 24,
) -> MessageProcessor:
    for user_id in (1, 2):
        storage.save_ruleset(user_id, Ruleset(folder_name="Work", keywords=("фронтенд",)))
    gate = MessageGate(
        matcher=matcher or KeywordMatcher(),
        rulesets=storage,
        dedup_store=storage,
        block_store=storage,
        dedup_config=DedupConfig(retention_hours=retention_hours),
    )
    return MessageProcessor(
        gate=gate,
        dedup_store=storage,
        notifier=notifier,
        notification_config=NotificationConfig(),
        stats=storage,
    )


def test_matching_message_is_delivered_and_recorded() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    outcome = asyncio.run(processor.handle(_context()))

    assert outcome is GateOutcome.DELIVERED
    assert len(notifier.sent) == 1
    user_id, text, buttons = notifier.sent[0]
    assert user_id == 1
    assert '"фронтенд" (exact)' in text
    assert [b.text for b in buttons] == ["Message author", "Block author"]
    assert (1, -1001234567890, 10) in storage.notified
    assert storage.stats == {"messages_processed": 1, "matches_found": 1, "notifications_sent": 1}


def test_empty_text_is_suppressed() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context(text="   \n"))) is GateOutcome.EMPTY
    assert not notifier.sent
    assert storage.stats == {}


def test_non_matching_message_is_suppressed() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context(text="Продаю велосипед"))) is GateOutcome.NO_MATCH
    assert not notifier.sent
    assert not storage.notified


def test_missing_ruleset_is_no_match() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context(user_id=3))) is GateOutcome.NO_MATCH


def test_same_message_identity_is_suppressed_on_replay() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context())) is GateOutcome.DELIVERED
    assert asyncio.run(processor.handle(_context())) is GateOutcome.ALREADY_NOTIFIED
    assert len(notifier.sent) == 1


def test_same_content_from_another_chat_is_suppressed_for_same_user() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    asyncio.run(processor.handle(_context(chat_id=-100111, message_id=1)))
    # forwarded copy with different punctuation and case
    outcome = asyncio.run(
        processor.handle(_context(chat_id=-100222, message_id=5, text="ИЩУ фронтенд-разработчика на проект!"))
    )

    assert outcome is GateOutcome.DUPLICATE_CONTENT
    assert len(notifier.sent) == 1


def test_same_content_for_different_user_is_not_suppressed() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    asyncio.run(processor.handle(_context(user_id=1)))
    outcome = asyncio.run(processor.handle(_context(user_id=2)))

    assert outcome is GateOutcome.DELIVERED
    assert [sent[0] for sent in notifier.sent] == [1, 2]


def test_content_dedup_expires_after_retention_window() -> None:
    # Retention defaults to 24 hours; the window is configuration, not a constant.
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier, retention_hours=24)

    asyncio.run(processor.handle(_context(chat_id=-100111, message_id=1)))
    for key in storage.seen:
        storage.seen[key] = datetime.now(timezone.utc) - timedelta(hours=25)

    outcome = asyncio.run(processor.handle(_context(chat_id=-100222, message_id=2)))
    assert outcome is GateOutcome.DELIVERED


def test_blocked_author_is_suppressed_before_matching() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    matcher = CountingMatcher()
    processor = _build(storage, notifier, matcher=matcher)

    assert storage.block(1, 777, "Anna")
    for message_id in range(3):
        outcome = asyncio.run(processor.handle(_context(message_id=message_id)))
        assert outcome is GateOutcome.BLOCKED

    assert matcher.calls == 0
    assert not notifier.sent


def test_block_is_per_user() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    storage.block(2, 777, "Anna")
    assert asyncio.run(processor.handle(_context(user_id=1))) is GateOutcome.DELIVERED


def test_message_without_sender_skips_block_check_and_buttons() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context(sender_id=None))) is GateOutcome.DELIVERED
    assert notifier.sent[0][2] == []


def test_failed_delivery_is_not_recorded_and_stays_retryable() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier(failures=[DeliveryError("network down")])
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context())) is GateOutcome.DELIVERY_FAILED
    assert not storage.notified
    assert not storage.seen

    assert asyncio.run(processor.handle(_context())) is GateOutcome.DELIVERED
    assert len(notifier.sent) == 1


def test_invalid_buttons_are_dropped_on_retry() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier(failures=[InvalidButtonError("BUTTON_USER_PRIVACY_RESTRICTED")])
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context())) is GateOutcome.DELIVERED
    assert notifier.attempts == 2
    assert notifier.sent[0][2] == []
    assert (1, -1001234567890, 10) in storage.notified


def test_concurrent_duplicates_for_same_user_notify_once() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    async def _run_both():
        return await asyncio.gather(
            processor.handle(_context(chat_id=-100111, message_id=1)),
            processor.handle(_context(chat_id=-100222, message_id=2)),
        )

    outcomes = asyncio.run(_run_both())

    assert sorted(o.value for o in outcomes) == ["delivered", "duplicate_content"]
    assert len(notifier.sent) == 1


def test_ruleset_is_reread_for_every_message() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    assert asyncio.run(processor.handle(_context(text="Нужен дизайнер", message_id=1))) is GateOutcome.NO_MATCH
    storage.save_ruleset(1, Ruleset(folder_name="Work", keywords=("дизайнер",)))
    assert asyncio.run(processor.handle(_context(text="Нужен дизайнер", message_id=2))) is GateOutcome.DELIVERED


def test_gate_decision_carries_result_and_fingerprint() -> None:
    storage = FakeStorage()
    storage.save_ruleset(1, Ruleset(folder_name="Work", keywords=("фронтенд",)))
    gate = MessageGate(KeywordMatcher(), storage, storage, storage, DedupConfig())

    decision = gate.evaluate(_context())

    assert decision.should_notify
    assert decision.result.matched_keywords == ("фронтенд",)
    assert decision.fingerprint and len(decision.fingerprint) == 64


def test_user_lock_is_released_after_handling() -> None:
    storage = FakeStorage()
    notifier = FakeNotifier()
    processor = _build(storage, notifier)

    async def _run_many():
        return await asyncio.gather(
            *(processor.handle(_context(user_id=uid, message_id=mid)) for uid in (1, 2) for mid in (1, 2))
        )

    asyncio.run(_run_many())

    assert processor._locks == {}
    assert not processor._in_flight


def test_purge_expired_uses_both_retention_windows() -> None:
    storage = FakeStorage()
    config = DedupConfig(retention_hours=12, notified_retention_days=3)

    assert purge_expired(storage, config) == (0, 0)
    assert storage.cleanups == [("seen", 12), ("notified", 3)]


def test_cleanup_loop_runs_periodically_until_cancelled() -> None:
    storage = FakeStorage()

    async def _run_for_a_while() -> None:
        task = asyncio.create_task(run_cleanup_loop(storage, DedupConfig(), interval_seconds=0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(_run_for_a_while())

    assert storage.cleanups.count(("seen", 24)) >= 2
    assert storage.cleanups.count(("notified", 7)) >= 2


def test_cleanup_loop_survives_store_errors() -> None:
    class FlakyStorage(FakeStorage):
        def cleanup_seen(self, retention_hours: int) -> int:
            super().cleanup_seen(retention_hours)
            if len(self.cleanups) == 1:
                raise RuntimeError("database is locked")
            return 0

    storage = FlakyStorage()

    async def _run_for_a_while() -> None:
        task = asyncio.create_task(run_cleanup_loop(storage, DedupConfig(), interval_seconds=0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(_run_for_a_while())

    assert ("notified", 7) in storage.cleanups
