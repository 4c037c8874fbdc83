"""
SilentWriter / SqlTransactionStore tests
"""

from __future__ import annotations

import threading
from datetime import datetime
from unittest.mock import MagicMock

from sqlalchemy.exc import SQLAlchemyError

from ledger.models import FixedFrequency, RecurringType, TxnType
from ledger.schemas import TransactionRecord
from ledger.services import SeriesExpander, SeriesLockRegistry, SilentWriter, SqlTransactionStore


def _template(user_id: int, **overrides) -> TransactionRecord:
    data = dict(
        id="tpl",
        user_id=user_id,
        description="internet",
        amount=35,
        type=TxnType.EXPENSE,
        category_id="utilities",
        date=datetime(2024, 1, 15),
        is_recurring=True,
        recurring_type=RecurringType.FIXED,
        fixed_frequency=FixedFrequency.MONTHLY,
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 1),
    )
    data.update(overrides)
    return TransactionRecord(**data)


def _occurrences(user_id: int, until: datetime) -> list[TransactionRecord]:
    template = _template(user_id)
    return SeriesExpander().expand(template, [template], until)


class TestSqlTransactionStore:
    def test_append_if_absent_only_writes_once(self, db_session, demo_user):
        store = SqlTransactionStore(db_session)
        record = _template(demo_user.id)
        assert store.append_if_absent(record) is True
        assert store.append_if_absent(record) is False
        assert [t.id for t in store.list_by_user(demo_user.id)] == ["tpl"]

    def test_notifications_follow_the_notify_flag(self, db_session, demo_user):
        events: list[tuple[str, str]] = []
        store = SqlTransactionStore(db_session, notifier=lambda action, rec: events.append((action, rec.id)))
        store.append_if_absent(_template(demo_user.id), notify=False)
        store.append_if_absent(_template(demo_user.id, id="tpl2"), notify=True)
        store.update_fields(demo_user.id, "tpl", {"paid": True}, notify=False)
        store.update_fields(demo_user.id, "tpl2", {"amount": 40}, notify=True)
        store.delete_by_ids(demo_user.id, ["tpl", "tpl2"], notify=True)

        assert events == [
            ("created", "tpl2"),
            ("updated", "tpl2"),
            ("deleted", "tpl"),
            ("deleted", "tpl2"),
        ]

    def test_update_and_delete_are_scoped_to_the_user(self, db_session, demo_user):
        store = SqlTransactionStore(db_session)
        store.append_if_absent(_template(demo_user.id))
        assert store.update_fields(demo_user.id + 1, "tpl", {"paid": True}) is None
        assert store.delete_by_ids(demo_user.id + 1, ["tpl"]) == 0
        assert store.get(demo_user.id, "tpl").paid is False
        assert store.delete_by_ids(demo_user.id, []) == 0


class TestSilentWriter:
    def test_persist_skips_existing_occurrences(self, db_session, demo_user):
        store = SqlTransactionStore(db_session)
        occurrences = _occurrences(demo_user.id, datetime(2024, 5, 1))
        writer = SilentWriter(store, SeriesLockRegistry())

        first = writer.persist(occurrences)
        assert len(first.created) == 3
        assert first.skipped == 0

        again = writer.persist(occurrences)
        assert again.created == []
        assert again.skipped == 3
        assert len(store.list_by_user(demo_user.id)) == 3

    def test_persist_never_notifies(self, db_session, demo_user):
        notifier = MagicMock()
        store = SqlTransactionStore(db_session, notifier=notifier)
        SilentWriter(store).persist(_occurrences(demo_user.id, datetime(2024, 3, 1)))
        notifier.assert_not_called()

    def test_failed_item_does_not_stop_the_batch(self):
        occurrences = _occurrences(1, datetime(2024, 5, 1))
        store = MagicMock()
        store.append_if_absent.side_effect = [True, SQLAlchemyError("disk I/O error"), False]

        result = SilentWriter(store, SeriesLockRegistry()).persist(occurrences)

        assert [o.id for o in result.created] == [occurrences[0].id]
        assert result.failed == 1
        assert result.skipped == 1
        assert store.append_if_absent.call_count == 3
        store.db.rollback.assert_called_once()
        for call in store.append_if_absent.call_args_list:
            assert call.kwargs == {"notify": False}

    def test_any_store_error_is_counted_and_the_batch_continues(self):
        occurrences = _occurrences(1, datetime(2024, 5, 1))
        store = MagicMock()
        store.append_if_absent.side_effect = [RuntimeError("remote store unavailable"), True, True]

        result = SilentWriter(store, SeriesLockRegistry()).persist(occurrences)

        assert result.failed == 1
        assert [o.id for o in result.created] == [o.id for o in occurrences[1:]]
        store.db.rollback.assert_called_once()


class TestSeriesLocks:
    def test_same_key_shares_one_lock(self):
        locks = SeriesLockRegistry()
        assert locks.lock_for("tpl") is locks.lock_for("tpl")
        assert locks.lock_for("tpl") is not locks.lock_for("other")

    def test_hold_is_reentrant_on_one_thread(self):
        locks = SeriesLockRegistry()
        store = MagicMock()
        store.append_if_absent.return_value = True
        occurrences = _occurrences(1, datetime(2024, 3, 1))

        with locks.hold("tpl"):
            with locks.hold("tpl"):
                result = SilentWriter(store, locks).persist(occurrences)

        assert len(result.created) == 1

    def test_writer_waits_while_another_thread_holds_the_series(self):
        locks = SeriesLockRegistry()
        store = MagicMock()
        store.append_if_absent.return_value = True
        occurrences = _occurrences(1, datetime(2024, 5, 1))
        results = []
        worker = threading.Thread(target=lambda: results.append(SilentWriter(store, locks).persist(occurrences)))

        with locks.hold("tpl"):
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            store.append_if_absent.assert_not_called()

        worker.join(timeout=5)
        assert not worker.is_alive()
        assert len(results[0].created) == 3

    def test_other_series_are_not_blocked(self):
        locks = SeriesLockRegistry()
        store = MagicMock()
        store.append_if_absent.return_value = True
        occurrences = _occurrences(1, datetime(2024, 5, 1))
        results = []
        worker = threading.Thread(target=lambda: results.append(SilentWriter(store, locks).persist(occurrences)))

        with locks.hold("other"):
            worker.start()
            worker.join(timeout=5)
            assert not worker.is_alive()

        assert len(results[0].created) == 3
