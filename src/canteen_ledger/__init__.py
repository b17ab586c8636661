"""Canteen Ledger - expense tracking with a daily WhatsApp sales summary."""

__version__ = "0.1.0"

from canteen_ledger.aggregator import Aggregator, aggregation_window, previous_day
from canteen_ledger.config import configure_logging, get_settings
from canteen_ledger.errors import (
    LedgerError,
    StoreUnavailableError,
    TriggerError,
    UnauthorizedTriggerError,
)
from canteen_ledger.job import ReportJob
from canteen_ledger.models import (
    DailySummary,
    Expense,
    NotifyResult,
    ReportLogEntry,
    ReportStatus,
    RunResult,
    Transaction,
)
from canteen_ledger.notifier import WhatsAppNotifier
from canteen_ledger.scheduler import DailyScheduler, SchedulerState
from canteen_ledger.store import RecordStore
from canteen_ledger.trigger import TriggerClient

__all__ = [
    # Version
    "__version__",
    # Records
    "Expense",
    "Transaction",
    "DailySummary",
    "NotifyResult",
    "ReportLogEntry",
    "ReportStatus",
    "RunResult",
    # Pipeline
    "Aggregator",
    "aggregation_window",
    "previous_day",
    "WhatsAppNotifier",
    "ReportJob",
    "DailyScheduler",
    "SchedulerState",
    "TriggerClient",
    "RecordStore",
    # Errors
    "LedgerError",
    "StoreUnavailableError",
    "TriggerError",
    "UnauthorizedTriggerError",
    # Config
    "get_settings",
    "configure_logging",
]
