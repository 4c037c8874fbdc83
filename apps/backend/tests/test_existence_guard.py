from __future__ import annotations

from datetime import datetime

from ledger.models import FixedFrequency, InstallmentPeriod, RecurringType, TxnType
from ledger.schemas import TransactionRecord
from ledger.services import OccurrenceIndex, occurrence_exists
from ledger.services.existence_guard import occurrence_key


def _record(txn_id: str, when: datetime, **overrides) -> TransactionRecord:
    data = dict(
        id=txn_id,
        user_id=1,
        description="rent",
        amount=1200,
        type=TxnType.EXPENSE,
        category_id="housing",
        date=when,
        is_recurring=True,
        recurring_type=RecurringType.FIXED,
        fixed_frequency=FixedFrequency.MONTHLY,
        parent_transaction_id="tpl",
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 1),
    )
    data.update(overrides)
    return TransactionRecord(**data)


def _installment(txn_id: str, when: datetime, number: int, parent: str = "tpl") -> TransactionRecord:
    return _record(
        txn_id,
        when,
        recurring_type=RecurringType.INSTALLMENT,
        fixed_frequency=None,
        installment_count=6,
        installment_period=InstallmentPeriod.MONTHS,
        current_installment=number,
        parent_transaction_id=parent,
    )


def test_fixed_occurrence_matches_on_calendar_day():
    known = [_record("tpl_a", datetime(2024, 2, 5, 0, 0))]
    candidate = _record("tpl_b", datetime(2024, 2, 5, 18, 45))
    assert occurrence_exists(candidate, known)


def test_fixed_occurrence_of_another_series_is_not_a_match():
    known = [_record("x_1", datetime(2024, 2, 5), parent_transaction_id="other")]
    assert not occurrence_exists(_record("tpl_1", datetime(2024, 2, 5)), known)


def test_installment_matches_on_number_not_date():
    known = [_installment("tpl_installment_2", datetime(2024, 2, 10), 2)]
    moved = _installment("tpl_other", datetime(2024, 2, 12), 2)
    next_one = _installment("tpl_installment_3", datetime(2024, 3, 10), 3)
    assert occurrence_exists(moved, known)
    assert not occurrence_exists(next_one, known)


def test_id_collision_counts_as_existing():
    known = [_record("tpl_1", datetime(2024, 1, 1), parent_transaction_id=None)]
    assert occurrence_exists(_record("tpl_1", datetime(2024, 6, 1)), known)


def test_template_has_no_occurrence_key():
    template = _record("tpl", datetime(2024, 1, 5), parent_transaction_id=None)
    assert occurrence_key(template) is None
    # The template's own date never blocks an occurrence of the same day
    assert not occurrence_exists(_record("tpl_x", datetime(2024, 1, 5)), [template])


def test_index_registers_new_records():
    index = OccurrenceIndex([_record("tpl_1", datetime(2024, 2, 5))])
    candidate = _record("tpl_2", datetime(2024, 3, 5))
    assert candidate not in index
    index.add(candidate)
    assert candidate in index
    assert occurrence_exists(candidate, index)
    assert len(index) == 2
