"""
Services package

Recurring transaction engine and the transaction service built on it.
"""

from .cancellation_resolver import resolve_cancellation
from .existence_guard import OccurrenceIndex, occurrence_exists
from .occurrence_calculator import InvalidRecurrenceError, installment_date, next_fixed_date
from .renewal_scheduler import RenewalScheduler
from .renewal_service import RenewalService
from .series_expander import SeriesExpander
from .silent_writer import PersistResult, SilentWriter
from .status_cascade import StatusCascade
from .transaction_service import TransactionService
from .transaction_store import SeriesLockRegistry, SqlTransactionStore, TransactionStore

__all__ = [
    "resolve_cancellation",
    "OccurrenceIndex",
    "occurrence_exists",
    "InvalidRecurrenceError",
    "installment_date",
    "next_fixed_date",
    "RenewalScheduler",
    "RenewalService",
    "SeriesExpander",
    "PersistResult",
    "SilentWriter",
    "StatusCascade",
    "TransactionService",
    "SeriesLockRegistry",
    "SqlTransactionStore",
    "TransactionStore",
]
