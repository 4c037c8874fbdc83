from __future__ import annotations

from datetime import date
from typing import Iterable

from ledger.models import RecurringType
from ledger.schemas import TransactionRecord


FixedKey = tuple[str, date]
InstallmentKey = tuple[str, int]


def occurrence_key(record: TransactionRecord) -> FixedKey | InstallmentKey | None:
    """Identity of an occurrence within its series.

    Fixed occurrences are identified by ``(parent, calendar date)``, installment
    occurrences by ``(parent, current_installment)``. Templates and one-off
    transactions have no key.
    """
    parent = record.parent_transaction_id
    if not parent:
        return None
    if record.recurring_type == RecurringType.INSTALLMENT:
        if record.current_installment is None:
            return None
        return (parent, int(record.current_installment))
    return (parent, record.date.date())


class OccurrenceIndex:
    """Set-backed lookup over a snapshot of known transactions.

    ``add`` lets one expansion pass register what it has already emitted, so a
    single run never yields the same occurrence twice either.
    """

    def __init__(self, known: Iterable[TransactionRecord] = ()) -> None:
        self._keys: set[tuple] = set()
        self._ids: set[str] = set()
        for record in known:
            self.add(record)

    def add(self, record: TransactionRecord) -> None:
        self._ids.add(record.id)
        key = occurrence_key(record)
        if key is not None:
            self._keys.add(key)

    def contains(self, candidate: TransactionRecord) -> bool:
        if candidate.id in self._ids:
            return True
        key = occurrence_key(candidate)
        return key is not None and key in self._keys

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._ids)


def occurrence_exists(
    candidate: TransactionRecord,
    known: Iterable[TransactionRecord] | OccurrenceIndex,
) -> bool:
    """Whether an equivalent occurrence is already present in ``known``."""
    if isinstance(known, OccurrenceIndex):
        return known.contains(candidate)
    key = occurrence_key(candidate)
    for record in known:
        if record.id == candidate.id:
            return True
        if key is not None and occurrence_key(record) == key:
            return True
    return False
