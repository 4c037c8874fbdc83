"""
Transaction store port and its SQLAlchemy adapter.

The recurring engine only needs a narrow view of persistence: list a user's
transactions, append a record unless its id is taken, and delete by ids.
Interactive writes notify; background writes pass ``notify=False``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Any, Callable, Iterable, Iterator, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger import models
from ledger.schemas import TransactionRecord

logger = logging.getLogger(__name__)

Notifier = Callable[[str, TransactionRecord], None]


def log_notification(action: str, record: TransactionRecord) -> None:
    logger.info("Transaction %s %s (%s)", record.id, action, record.description or "-")


class TransactionStore(Protocol):
    def list_by_user(self, user_id: int) -> list[TransactionRecord]: ...

    def get(self, user_id: int, txn_id: str) -> Optional[TransactionRecord]: ...

    def append_if_absent(self, record: TransactionRecord, *, notify: bool = False) -> bool: ...

    def update_fields(
        self, user_id: int, txn_id: str, changes: dict[str, Any], *, notify: bool = True
    ) -> Optional[TransactionRecord]: ...

    def delete_by_ids(self, user_id: int, ids: Iterable[str], *, notify: bool = True) -> int: ...


class SeriesLockRegistry:
    """One re-entrant lock per series key so writes to the same series never interleave."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, RLock] = {}

    def lock_for(self, key: str) -> RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RLock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield


# Shared by request threads and the renewal timer thread
series_locks = SeriesLockRegistry()


class SqlTransactionStore:
    def __init__(self, db: Session, notifier: Optional[Notifier] = None) -> None:
        self.db = db
        self.notifier = notifier or log_notification

    def list_by_user(self, user_id: int) -> list[TransactionRecord]:
        rows = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.user_id == user_id)
            .order_by(models.Transaction.date, models.Transaction.id)
            .all()
        )
        return [TransactionRecord.model_validate(row) for row in rows]

    def get(self, user_id: int, txn_id: str) -> Optional[TransactionRecord]:
        row = self._get_row(user_id, txn_id)
        return TransactionRecord.model_validate(row) if row else None

    def append_if_absent(self, record: TransactionRecord, *, notify: bool = False) -> bool:
        if self.db.get(models.Transaction, record.id) is not None:
            return False
        self.db.add(models.Transaction(**record.model_dump()))
        try:
            self.db.commit()
        except IntegrityError:
            # Another writer inserted the same id first
            self.db.rollback()
            return False
        if notify:
            self.notifier("created", record)
        return True

    def update_fields(
        self,
        user_id: int,
        txn_id: str,
        changes: dict[str, Any],
        *,
        notify: bool = True,
    ) -> Optional[TransactionRecord]:
        row = self._get_row(user_id, txn_id)
        if row is None:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        record = TransactionRecord.model_validate(row)
        if notify:
            self.notifier("updated", record)
        return record

    def delete_by_ids(self, user_id: int, ids: Iterable[str], *, notify: bool = True) -> int:
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return 0
        rows = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.user_id == user_id, models.Transaction.id.in_(wanted))
            .all()
        )
        records = [TransactionRecord.model_validate(row) for row in rows]
        for row in rows:
            self.db.delete(row)
        self.db.commit()
        if notify:
            for record in records:
                self.notifier("deleted", record)
        return len(rows)

    def _get_row(self, user_id: int, txn_id: str) -> Optional[models.Transaction]:
        return (
            self.db.query(models.Transaction)
            .filter(models.Transaction.user_id == user_id, models.Transaction.id == txn_id)
            .first()
        )
