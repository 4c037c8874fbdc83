from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel

from ledger.models import RecurringType
from ledger.schemas import TransactionRecord
from ledger.services.existence_guard import OccurrenceIndex, occurrence_exists
from ledger.services.series_expander import SeriesExpander


def _update_value(update: Mapping[str, Any] | BaseModel, field: str) -> Any:
    if isinstance(update, BaseModel):
        return getattr(update, field, None)
    return update.get(field)


class StatusCascade:
    """Generate the next fixed occurrence when the current one is settled."""

    def __init__(self, expander: Optional[SeriesExpander] = None) -> None:
        self.expander = expander or SeriesExpander()

    def should_cascade(self, occurrence: TransactionRecord, update: Mapping[str, Any] | BaseModel) -> bool:
        return (
            _update_value(update, "paid") is True
            and not occurrence.paid
            and bool(occurrence.is_recurring)
            and occurrence.recurring_type == RecurringType.FIXED
            and occurrence.fixed_frequency is not None
        )

    def on_paid(
        self,
        occurrence: TransactionRecord,
        update: Mapping[str, Any] | BaseModel,
        known: Optional[Iterable[TransactionRecord] | OccurrenceIndex] = None,
    ) -> list[TransactionRecord]:
        """Return the single next occurrence to create, or nothing.

        Installment series never cascade: their schedule is generated up front.
        With ``known`` given, a next occurrence already present for that day is
        not returned again.
        """
        if not self.should_cascade(occurrence, update):
            return []
        nxt = self.expander.next_occurrence(occurrence)
        if known is not None and occurrence_exists(nxt, known):
            return []
        return [nxt]
