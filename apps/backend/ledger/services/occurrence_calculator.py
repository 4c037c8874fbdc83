"""
Occurrence date arithmetic for recurring series.

Pure functions only: no store access, no clock. Month/quarter/year steps use
``relativedelta`` so the end of month is clamped (Jan 31 + 1 month = Feb 28/29).
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator

from dateutil.relativedelta import relativedelta

from ledger.models import FixedFrequency, InstallmentPeriod


class InvalidRecurrenceError(ValueError):
    """Raised for a frequency or period the calculator does not know."""


_FIXED_STEPS: dict[FixedFrequency, relativedelta] = {
    FixedFrequency.DAILY: relativedelta(days=1),
    FixedFrequency.WEEKLY: relativedelta(weeks=1),
    FixedFrequency.MONTHLY: relativedelta(months=1),
    FixedFrequency.QUARTERLY: relativedelta(months=3),
    FixedFrequency.ANNUAL: relativedelta(years=1),
}

_INSTALLMENT_UNITS: dict[InstallmentPeriod, relativedelta] = {
    InstallmentPeriod.DAYS: relativedelta(days=1),
    InstallmentPeriod.WEEKS: relativedelta(weeks=1),
    InstallmentPeriod.BIWEEKS: relativedelta(weeks=2),
    InstallmentPeriod.MONTHS: relativedelta(months=1),
    InstallmentPeriod.BIMONTHS: relativedelta(months=2),
    InstallmentPeriod.QUARTERS: relativedelta(months=3),
    InstallmentPeriod.SEMESTERS: relativedelta(months=6),
    InstallmentPeriod.YEARS: relativedelta(years=1),
}


def _coerce_frequency(frequency: FixedFrequency | str | None) -> FixedFrequency:
    try:
        return FixedFrequency(frequency)
    except ValueError as exc:
        raise InvalidRecurrenceError(f"Unsupported fixed frequency: {frequency!r}") from exc


def _coerce_period(period: InstallmentPeriod | str | None) -> InstallmentPeriod:
    try:
        return InstallmentPeriod(period)
    except ValueError as exc:
        raise InvalidRecurrenceError(f"Unsupported installment period: {period!r}") from exc


def next_fixed_date(current: datetime, frequency: FixedFrequency | str) -> datetime:
    """Return ``current`` advanced by exactly one ``frequency`` step."""
    return current + _FIXED_STEPS[_coerce_frequency(frequency)]


def installment_date(base_date: datetime, index: int, period: InstallmentPeriod | str) -> datetime:
    """Return ``base_date + index * period``; ``index`` is the zero-based offset.

    Computed from the base each time (never chained) so clamping in one month
    does not drift later installments: base Jan 31 gives Feb 29, Mar 31, ...
    """
    if index < 0:
        raise InvalidRecurrenceError(f"Installment offset must be >= 0, got {index}")
    unit = _INSTALLMENT_UNITS[_coerce_period(period)]
    return base_date + unit * index


def fixed_schedule(start: datetime, frequency: FixedFrequency | str, until: datetime) -> Iterator[datetime]:
    """Yield each step strictly after ``start`` up to and including ``until``."""
    current = next_fixed_date(start, frequency)
    while current <= until:
        yield current
        current = next_fixed_date(current, frequency)


def installment_schedule(
    base_date: datetime,
    count: int,
    period: InstallmentPeriod | str,
    start: int = 1,
) -> Iterator[tuple[int, datetime]]:
    """Yield ``(number, date)`` for installments ``start..count``.

    ``base_date`` is the date of installment ``start``; later installments are
    offset from it, so a series can be resumed from any generated installment.
    """
    for number in range(start, count + 1):
        yield number, installment_date(base_date, number - start, period)
