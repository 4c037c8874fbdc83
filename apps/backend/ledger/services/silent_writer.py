from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ledger.schemas import TransactionRecord
from ledger.services.series_expander import series_root_id
from ledger.services.transaction_store import SeriesLockRegistry, TransactionStore, series_locks

logger = logging.getLogger(__name__)


@dataclass
class PersistResult:
    created: list[TransactionRecord] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0

    def merge(self, other: "PersistResult") -> None:
        self.created.extend(other.created)
        self.skipped += other.skipped
        self.failed += other.failed


class SilentWriter:
    """Persist generated occurrences without user-facing notifications.

    Best effort: whatever the store raises for one item is logged and counted,
    and the rest of the batch is still written.
    """

    def __init__(self, store: TransactionStore, locks: Optional[SeriesLockRegistry] = None) -> None:
        self.store = store
        self.locks = locks or series_locks

    def persist(self, occurrences: Iterable[TransactionRecord]) -> PersistResult:
        result = PersistResult()
        for occurrence in occurrences:
            try:
                with self.locks.hold(series_root_id(occurrence)):
                    written = self.store.append_if_absent(occurrence, notify=False)
            except Exception:
                logger.exception("Failed to persist generated occurrence %s", occurrence.id)
                self._rollback()
                result.failed += 1
                continue
            if written:
                result.created.append(occurrence)
            else:
                result.skipped += 1
        if result.created or result.failed:
            logger.info(
                "Generated occurrences persisted: created=%d skipped=%d failed=%d",
                len(result.created),
                result.skipped,
                result.failed,
            )
        return result

    def _rollback(self) -> None:
        db = getattr(self.store, "db", None)
        if db is None:
            return
        try:
            db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after failed occurrence write also failed")
