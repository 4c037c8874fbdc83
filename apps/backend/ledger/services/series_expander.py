"""
Series expansion: turns a template transaction into dated occurrences.

The expander never touches the store. It receives a snapshot of known
transactions, consults the existence guard, and returns the occurrences that
still need to be written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from dateutil.relativedelta import relativedelta

from ledger.models import RecurringType, now_naive
from ledger.schemas import TransactionRecord
from ledger.services.existence_guard import OccurrenceIndex
from ledger.services.occurrence_calculator import fixed_schedule, installment_schedule, next_fixed_date

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)


def epoch_millis(value: datetime) -> int:
    """Milliseconds since the Unix epoch, reading the naive value as UTC."""
    return (value.replace(tzinfo=None) - _EPOCH) // timedelta(milliseconds=1)


def fixed_occurrence_id(parent_id: str, occurs_at: datetime) -> str:
    return f"{parent_id}_{epoch_millis(occurs_at)}"


def installment_occurrence_id(parent_id: str, index: int) -> str:
    return f"{parent_id}_installment_{index}"


def series_root_id(record: TransactionRecord) -> str:
    """Id of the original template, never an intermediate occurrence."""
    return record.parent_transaction_id or record.id


def horizon_from(now: datetime, months: int) -> datetime:
    return now + relativedelta(months=months)


def is_template(record: TransactionRecord) -> bool:
    return bool(record.is_recurring) and not record.parent_transaction_id


def is_expandable(record: TransactionRecord) -> bool:
    """Recurring record carrying every field its recurrence type needs."""
    if not record.is_recurring:
        return False
    if record.recurring_type == RecurringType.FIXED:
        return record.fixed_frequency is not None
    if record.recurring_type == RecurringType.INSTALLMENT:
        return bool(record.installment_count) and record.installment_period is not None
    return False


class SeriesExpander:
    """Expand fixed and installment templates up to a target horizon."""

    def __init__(self, clock: Callable[[], datetime] = now_naive) -> None:
        self.clock = clock

    def expand(
        self,
        template: TransactionRecord,
        known: Iterable[TransactionRecord] | OccurrenceIndex,
        target_date: datetime,
    ) -> list[TransactionRecord]:
        """Return occurrences of ``template`` dated up to ``target_date`` that are not yet known."""
        if not is_expandable(template):
            logger.debug("Skipping transaction %s: not an expandable recurring template", template.id)
            return []
        index = known if isinstance(known, OccurrenceIndex) else OccurrenceIndex(known)
        if template.recurring_type == RecurringType.FIXED:
            return self._expand_fixed(template, index, target_date)
        return self._expand_installments(template, index, target_date)

    def expand_all(
        self,
        known: Iterable[TransactionRecord],
        target_date: datetime,
        *,
        recurring_type: Optional[RecurringType] = None,
    ) -> list[TransactionRecord]:
        """Expand every eligible template found in a snapshot."""
        snapshot = list(known)
        index = OccurrenceIndex(snapshot)
        results: list[TransactionRecord] = []
        for record in snapshot:
            if not is_template(record):
                continue
            if recurring_type is not None and record.recurring_type != recurring_type:
                continue
            results.extend(self.expand(record, index, target_date))
        return results

    def next_occurrence(self, occurrence: TransactionRecord) -> TransactionRecord:
        """Single fixed step after ``occurrence``, regardless of any horizon."""
        next_date = next_fixed_date(occurrence.date, occurrence.fixed_frequency)
        return self.build_occurrence(
            occurrence,
            occurs_at=next_date,
            occurrence_id=fixed_occurrence_id(series_root_id(occurrence), next_date),
        )

    def build_occurrence(
        self,
        source: TransactionRecord,
        *,
        occurs_at: datetime,
        occurrence_id: str,
        installment: Optional[int] = None,
    ) -> TransactionRecord:
        stamp = self.clock()
        update = {
            "id": occurrence_id,
            "date": occurs_at,
            "paid": False,
            "created_at": stamp,
            "updated_at": stamp,
            "parent_transaction_id": series_root_id(source),
        }
        if installment is not None:
            update["current_installment"] = installment
        return source.model_copy(update=update)

    # ---- Private --------------------------------------------------------
    def _expand_fixed(
        self,
        template: TransactionRecord,
        index: OccurrenceIndex,
        target_date: datetime,
    ) -> list[TransactionRecord]:
        parent_id = series_root_id(template)
        created: list[TransactionRecord] = []
        for occurs_at in fixed_schedule(template.date, template.fixed_frequency, target_date):
            occurrence = self.build_occurrence(
                template,
                occurs_at=occurs_at,
                occurrence_id=fixed_occurrence_id(parent_id, occurs_at),
            )
            if not index.contains(occurrence):
                index.add(occurrence)
                created.append(occurrence)
        return created

    def _expand_installments(
        self,
        template: TransactionRecord,
        index: OccurrenceIndex,
        target_date: datetime,
    ) -> list[TransactionRecord]:
        parent_id = series_root_id(template)
        start = template.current_installment or 1
        created: list[TransactionRecord] = []
        # The record itself is installment ``start``; dates are offset from it
        schedule = installment_schedule(
            template.date,
            int(template.installment_count),
            template.installment_period,
            start=start,
        )
        for number, occurs_at in schedule:
            if number == start:
                continue
            if occurs_at > target_date:
                break
            occurrence = self.build_occurrence(
                template,
                occurs_at=occurs_at,
                occurrence_id=installment_occurrence_id(parent_id, number),
                installment=number,
            )
            if not index.contains(occurrence):
                index.add(occurrence)
                created.append(occurrence)
        return created
