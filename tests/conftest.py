"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("REPORT_TIMEZONE", "Asia/Kolkata")
os.environ.setdefault("REPORT_RECIPIENT", "919800000000")
os.environ.setdefault("WABA_ACCESS_TOKEN", "waba-test-token")
os.environ.setdefault("WABA_PHONE_NUMBER_ID", "1234567890")

from canteen_ledger.config import get_settings  # noqa: E402
from canteen_ledger.errors import StoreUnavailableError  # noqa: E402
from canteen_ledger.models import (  # noqa: E402
    Expense,
    ExpenseCreate,
    NotifyResult,
    ReportLogEntry,
    Transaction,
    TransactionCreate,
)

IST = ZoneInfo("Asia/Kolkata")


class FakeRecordStore:
    """In-memory stand-in for RecordStore with the same async surface."""

    def __init__(self) -> None:
        self.expenses: list[Expense] = []
        self.transactions: list[Transaction] = []
        self.report_logs: list[ReportLogEntry] = []
        self.calls: list[str] = []
        self.fail_reads = False
        self.fail_log_writes = False

    # --- seeding helpers ---

    def add_expense(self, amount: str, when: datetime, category: str = "food_purchase") -> Expense:
        expense = Expense.model_construct(
            id=uuid4().hex,
            category=category,
            subcategory=None,
            description="seeded",
            amount=Decimal(amount),
            date=when,
            supplier=None,
            receipt=None,
            tags=[],
        )
        self.expenses.append(expense)
        return expense

    def add_transaction(self, type_: str, amount: str, when: datetime) -> Transaction:
        transaction = Transaction.model_construct(
            id=uuid4().hex,
            type=type_,
            total_amount=Decimal(amount),
            date=when,
            item_name=None,
            quantity=None,
            unit_price=None,
            customer=None,
            notes=None,
        )
        self.transactions.append(transaction)
        return transaction

    # --- store surface ---

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise StoreUnavailableError("find failed: connection refused")

    async def find_expenses(self, start: datetime, end: datetime) -> list[Expense]:
        self.calls.append("find_expenses")
        self._check_reads()
        return [e for e in self.expenses if start <= e.date < end]

    async def find_transactions(self, start: datetime, end: datetime) -> list[Transaction]:
        self.calls.append("find_transactions")
        self._check_reads()
        return [t for t in self.transactions if start <= t.date < end]

    async def list_expenses(self, limit: int | None = None) -> list[Expense]:
        self.calls.append("list_expenses")
        self._check_reads()
        return sorted(self.expenses, key=lambda e: e.date, reverse=True)[:limit]

    async def list_transactions(
        self, transaction_type: str | None = None, limit: int | None = None
    ) -> list[Transaction]:
        self.calls.append("list_transactions")
        self._check_reads()
        items = [t for t in self.transactions if transaction_type in (None, t.type)]
        return sorted(items, key=lambda t: t.date, reverse=True)[:limit]

    async def insert_expense(self, payload: ExpenseCreate) -> Expense:
        self.calls.append("insert_expense")
        when = payload.date if payload.date.tzinfo else payload.date.replace(tzinfo=IST)
        expense = Expense(id=uuid4().hex, **payload.model_dump(exclude={"date"}), date=when)
        self.expenses.append(expense)
        return expense

    async def insert_transaction(self, payload: TransactionCreate) -> Transaction:
        self.calls.append("insert_transaction")
        when = payload.date if payload.date.tzinfo else payload.date.replace(tzinfo=IST)
        transaction = Transaction(id=uuid4().hex, **payload.model_dump(exclude={"date"}), date=when)
        self.transactions.append(transaction)
        return transaction

    async def insert_report_log(self, entry: ReportLogEntry) -> ReportLogEntry:
        self.calls.append("insert_report_log")
        if self.fail_log_writes:
            raise StoreUnavailableError("insert_report_log failed: not primary")
        stored = ReportLogEntry(
            status=entry.status,
            message=entry.message,
            sent_at=entry.sent_at,
            id=uuid4().hex,
        )
        self.report_logs.append(stored)
        return stored

    async def latest_report_log(self) -> ReportLogEntry | None:
        self.calls.append("latest_report_log")
        self._check_reads()
        if not self.report_logs:
            return None
        latest = max(enumerate(self.report_logs), key=lambda pair: (pair[1].sent_at, pair[0]))
        return latest[1]

    async def close(self) -> None:
        pass


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Every test starts from settings rebuilt from the environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def ist():
    return IST


@pytest.fixture
def mock_notifier():
    """Notifier double that reports a successful delivery."""
    notifier = AsyncMock()
    notifier.notify = AsyncMock(
        return_value=NotifyResult(success=True, message_id="wamid.TEST123")
    )
    notifier.close = AsyncMock()
    return notifier


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def mock_whatsapp_response():
    """Graph API response for an accepted template message."""
    return {
        "messaging_product": "whatsapp",
        "contacts": [{"input": "919800000000", "wa_id": "919800000000"}],
        "messages": [{"id": "wamid.HBgMOTE5ODAwMDAwMDAwFQIAERgSMEE="}],
    }


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2026-10-19 00:01 IST (18:31 UTC on the 18th)."""
    moment = datetime(2026, 10, 18, 18, 31, tzinfo=UTC)
    return lambda: moment

