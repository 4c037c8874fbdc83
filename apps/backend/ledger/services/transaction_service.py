from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ledger.core.config import Settings, settings as default_settings
from ledger.models import RecurringType, now_naive
from ledger.schemas import (
    TransactionCreate,
    TransactionRecord,
    TransactionUpdate,
    TransactionWriteResult,
)
from ledger.services.cancellation_resolver import resolve_cancellation
from ledger.services.existence_guard import OccurrenceIndex
from ledger.services.series_expander import (
    SeriesExpander,
    horizon_from,
    is_template,
    series_root_id,
)
from ledger.services.silent_writer import PersistResult, SilentWriter
from ledger.services.status_cascade import StatusCascade
from ledger.services.transaction_store import (
    Notifier,
    SeriesLockRegistry,
    SqlTransactionStore,
    series_locks,
)

_FIXED_RULE_FIELDS = ("fixed_frequency", "date")
_INSTALLMENT_RULE_FIELDS = ("installment_count", "installment_period", "date")
_NULLABLE_FIELDS = frozenset({"account_id", "credit_card_id"})


class TransactionService:
    """Interactive transaction operations wired to the recurring engine.

    User-driven writes go through the store with notifications on; everything
    the engine derives from them (expansion, cascade, regeneration) goes
    through the silent writer.
    """

    def __init__(
        self,
        db: Session,
        *,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = now_naive,
        notifier: Optional[Notifier] = None,
        locks: Optional[SeriesLockRegistry] = None,
    ) -> None:
        self.db = db
        self.config = config or default_settings
        self.clock = clock
        self.locks = locks or series_locks
        self.store = SqlTransactionStore(db, notifier=notifier)
        self.expander = SeriesExpander(clock=clock)
        self.cascade = StatusCascade(self.expander)
        self.writer = SilentWriter(self.store, self.locks)

    def list_for_user(self, user_id: int) -> list[TransactionRecord]:
        return self.store.list_by_user(user_id)

    def get(self, user_id: int, txn_id: str) -> Optional[TransactionRecord]:
        return self.store.get(user_id, txn_id)

    def create(self, user_id: int, payload: TransactionCreate) -> TransactionWriteResult:
        stamp = self.clock()
        record = TransactionRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            created_at=stamp,
            updated_at=stamp,
            parent_transaction_id=None,
            **payload.model_dump(),
        )
        self.store.append_if_absent(record, notify=True)
        generated: list[TransactionRecord] = []
        if is_template(record):
            target = horizon_from(stamp, self.config.EXPANSION_HORIZON_MONTHS)
            with self.locks.hold(record.id):
                generated = self.writer.persist(self.expander.expand(record, [record], target)).created
        return TransactionWriteResult(transaction=record, generated=generated)

    def update(
        self,
        user_id: int,
        txn_id: str,
        payload: TransactionUpdate,
    ) -> Optional[TransactionWriteResult]:
        current = self.store.get(user_id, txn_id)
        if current is None:
            return None
        changes = self._applicable_changes(current, payload)
        rule_changed = is_template(current) and self._rule_changed(current, changes)

        with self.locks.hold(series_root_id(current)):
            updated = self.store.update_fields(user_id, txn_id, changes, notify=True)
            index = OccurrenceIndex(self.store.list_by_user(user_id))
            generated = self.writer.persist(self.cascade.on_paid(current, payload, index)).created
            cancelled: list[str] = []
            if rule_changed:
                # Retract unpaid future occurrences built from the old rule
                cancelled = self._cancel(user_id, current.id, notify=False)
                target = horizon_from(self.clock(), self.config.EXPANSION_HORIZON_MONTHS)
                known = self.store.list_by_user(user_id)
                generated += self.writer.persist(self.expander.expand(updated, known, target)).created
        return TransactionWriteResult(transaction=updated, generated=generated, cancelled_ids=cancelled)

    def delete(self, user_id: int, txn_id: str) -> bool:
        return self.store.delete_by_ids(user_id, [txn_id], notify=True) > 0

    def preview_cancellation(self, user_id: int, template_id: str, now: Optional[datetime] = None) -> list[str]:
        return resolve_cancellation(template_id, self.store.list_by_user(user_id), now or self.clock())

    def cancel_series(self, user_id: int, template_id: str, now: Optional[datetime] = None) -> list[str]:
        """Delete every unpaid future occurrence of a series; the template stays."""
        with self.locks.hold(template_id):
            return self._cancel(user_id, template_id, notify=True, now=now)

    def expand(
        self,
        user_id: int,
        *,
        horizon_months: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> tuple[datetime, PersistResult]:
        """General expansion path: every template of the user up to the horizon."""
        months = self.config.EXPANSION_HORIZON_MONTHS if horizon_months is None else horizon_months
        target = horizon_from(now or self.clock(), months)
        known = self.store.list_by_user(user_id)
        return target, self.writer.persist(self.expander.expand_all(known, target))

    # ---- Private --------------------------------------------------------
    def _cancel(self, user_id: int, template_id: str, *, notify: bool, now: Optional[datetime] = None) -> list[str]:
        ids = resolve_cancellation(template_id, self.store.list_by_user(user_id), now or self.clock())
        self.store.delete_by_ids(user_id, ids, notify=notify)
        return ids

    def _applicable_changes(self, current: TransactionRecord, payload: TransactionUpdate) -> dict:
        changes = payload.model_dump(exclude_unset=True)
        if current.recurring_type != RecurringType.FIXED:
            changes.pop("fixed_frequency", None)
        if current.recurring_type != RecurringType.INSTALLMENT:
            changes.pop("installment_count", None)
            changes.pop("installment_period", None)
        # Only the optional links may be cleared with an explicit null
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key in _NULLABLE_FIELDS
        }
        count = changes.get("installment_count")
        if count is not None and current.current_installment and count < current.current_installment:
            raise ValueError("installment_count cannot be lower than current_installment")
        return changes

    def _rule_changed(self, current: TransactionRecord, changes: dict) -> bool:
        fields = _FIXED_RULE_FIELDS if current.recurring_type == RecurringType.FIXED else _INSTALLMENT_RULE_FIELDS
        return any(key in changes and changes[key] != getattr(current, key) for key in fields)
