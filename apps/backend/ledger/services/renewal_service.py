"""
Rolling renewal of fixed recurring series.

Each run re-derives everything from stored rows: it reads every active user's
transactions, decides which fixed templates are running short of future
occurrences, expands them to the renewal horizon and writes the result
silently. A skipped or crashed run is caught up by the next one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ledger import models
from ledger.core.config import Settings, settings as default_settings
from ledger.core.database import SessionLocal
from ledger.models import RecurringType, now_naive
from ledger.schemas import RenewalRunOut, TransactionRecord
from ledger.services.series_expander import SeriesExpander, horizon_from, is_expandable, is_template
from ledger.services.silent_writer import SilentWriter
from ledger.services.transaction_store import SeriesLockRegistry, SqlTransactionStore, series_locks

logger = logging.getLogger(__name__)


class RenewalService:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        expander: Optional[SeriesExpander] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = now_naive,
        locks: Optional[SeriesLockRegistry] = None,
    ) -> None:
        self.session_factory = session_factory
        self.expander = expander or SeriesExpander(clock=clock)
        self.config = config or default_settings
        self.clock = clock
        self.locks = locks or series_locks

    def run(self, now: Optional[datetime] = None) -> RenewalRunOut:
        """Run one renewal pass over every active user in a fresh session."""
        db = self.session_factory()
        try:
            return self.run_with_session(db, now=now)
        finally:
            db.close()

    def run_with_session(
        self,
        db: Session,
        *,
        now: Optional[datetime] = None,
        user_id: Optional[int] = None,
    ) -> RenewalRunOut:
        now = now or self.clock()
        report = RenewalRunOut()
        q = db.query(models.User.id).filter(models.User.is_active.is_(True))
        if user_id is not None:
            q = q.filter(models.User.id == user_id)
        for (uid,) in q.order_by(models.User.id).all():
            report.users += 1
            self._renew_user(db, uid, now, report)
        if report.created:
            logger.info(
                "Renewal run: %d occurrences created for %d templates",
                report.created,
                report.templates_renewed,
            )
        return report

    def needs_renewal(
        self,
        template: TransactionRecord,
        snapshot: list[TransactionRecord],
        now: datetime,
    ) -> bool:
        """True when the series has no occurrences yet or too few far-future ones."""
        children = [t for t in snapshot if t.parent_transaction_id == template.id]
        if not children:
            return True
        threshold = horizon_from(now, self.config.RENEWAL_LOOKAHEAD_MONTHS)
        far_future = [t for t in children if t.date > threshold]
        return len(far_future) < self.config.RENEWAL_MIN_FUTURE_OCCURRENCES

    def renewal_allowed(self, record: Optional[models.RenewalRecord], now: datetime) -> bool:
        if record is None:
            return True
        if now - record.renewed_at < timedelta(minutes=self.config.RENEWAL_COOLDOWN_MINUTES):
            return False
        if record.renewal_count >= self.config.RENEWAL_MAX_COUNT:
            logger.warning(
                "Template %s reached the renewal limit (%d), skipping",
                record.template_id,
                record.renewal_count,
            )
            return False
        return True

    # ---- Private --------------------------------------------------------
    def _renew_user(self, db: Session, user_id: int, now: datetime, report: RenewalRunOut) -> None:
        store = SqlTransactionStore(db)
        snapshot = store.list_by_user(user_id)
        if not snapshot:
            return
        target = horizon_from(now, self.config.RENEWAL_HORIZON_MONTHS)
        writer = SilentWriter(store, self.locks)
        templates = [
            t for t in snapshot
            if is_template(t) and t.recurring_type == RecurringType.FIXED and is_expandable(t)
        ]
        registry = self._registry(db, [t.id for t in templates])
        for template in templates:
            report.templates_checked += 1
            record = registry.get(template.id)
            if not self.renewal_allowed(record, now):
                continue
            with self.locks.hold(template.id):
                # Re-read under the series lock so a concurrent cascade is seen
                current = store.list_by_user(user_id)
                if not self.needs_renewal(template, current, now):
                    continue
                occurrences = self.expander.expand(template, current, target)
                result = writer.persist(occurrences)
            report.created += len(result.created)
            report.skipped += result.skipped
            report.failed += result.failed
            if result.created:
                report.templates_renewed += 1
                self._register(db, user_id, template.id, record, now)

    def _registry(self, db: Session, template_ids: list[str]) -> dict[str, models.RenewalRecord]:
        if not template_ids:
            return {}
        rows = (
            db.query(models.RenewalRecord)
            .filter(models.RenewalRecord.template_id.in_(template_ids))
            .all()
        )
        return {row.template_id: row for row in rows}

    def _register(
        self,
        db: Session,
        user_id: int,
        template_id: str,
        record: Optional[models.RenewalRecord],
        now: datetime,
    ) -> None:
        if record is None:
            record = models.RenewalRecord(
                user_id=user_id,
                template_id=template_id,
                renewed_at=now,
                renewal_count=0,
            )
            db.add(record)
        record.renewed_at = now
        record.renewal_count = (record.renewal_count or 0) + 1
        db.commit()
