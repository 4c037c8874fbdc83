from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ledger.schemas import TransactionRecord


def resolve_cancellation(
    template_id: str,
    known: Iterable[TransactionRecord],
    now: datetime,
) -> list[str]:
    """Ids of the unpaid future occurrences of ``template_id``.

    Paid or elapsed occurrences are history and are never returned. Nothing is
    deleted here; the caller owns the deletion.
    """
    return [
        record.id
        for record in known
        if record.parent_transaction_id == template_id
        and record.date > now
        and not record.paid
    ]
