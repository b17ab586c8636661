"""MongoDB record store for expenses, transactions and report logs."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, tzinfo
from decimal import Decimal
from typing import Any

import structlog
from bson import Decimal128
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from canteen_ledger.config import get_settings
from canteen_ledger.errors import StoreUnavailableError
from canteen_ledger.models import (
    Expense,
    ExpenseCreate,
    ReportLogEntry,
    Transaction,
    TransactionCreate,
)

logger = structlog.get_logger(__name__)

EXPENSES = "expenses"
TRANSACTIONS = "transactions"
REPORT_LOGS = "report_logs"


def _to_bson(value: Any) -> Any:
    if isinstance(value, Decimal):
        return Decimal128(str(value))
    return value


class RecordStore:
    """Async access to the ledger collections.

    Every driver failure surfaces as StoreUnavailableError so callers never
    deal with pymongo exceptions directly.
    """

    def __init__(
        self,
        client: AsyncMongoClient | None = None,
        database: str | None = None,
        tz: tzinfo | None = None,
    ):
        settings = get_settings()
        self._owns_client = client is None
        self._client = client or AsyncMongoClient(
            settings.mongodb_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
        )
        self._db = self._client[database or settings.mongodb_database]
        self._tz = tz or settings.tzinfo
        self._logger = logger.bind(component="record_store")

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as exc:
            self._logger.error("store_operation_failed", operation=operation, error=str(exc))
            raise StoreUnavailableError(f"{operation} failed: {exc}") from exc

    def _as_aware(self, value: datetime) -> datetime:
        """Naive datetimes are read as wall-clock time in the reference timezone."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self._tz)
        return value

    def _date_range(self, start: datetime, end: datetime) -> dict[str, Any]:
        return {"date": {"$gte": self._as_aware(start), "$lt": self._as_aware(end)}}

    async def ping(self) -> None:
        with self._guard("ping"):
            await self._client.admin.command("ping")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.close()

    # === Expenses ===

    async def find_expenses(self, start: datetime, end: datetime) -> list[Expense]:
        """Expenses dated in [start, end)."""
        with self._guard("find_expenses"):
            docs = await self._db[EXPENSES].find(self._date_range(start, end)).to_list(None)
        return [Expense.from_document(d) for d in docs]

    async def list_expenses(self, limit: int | None = None) -> list[Expense]:
        """All expenses, newest first; ``limit`` caps the count when given."""
        with self._guard("list_expenses"):
            cursor = self._db[EXPENSES].find({}).sort("date", -1)
            if limit:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(None)
        return [Expense.from_document(d) for d in docs]

    async def insert_expense(self, payload: ExpenseCreate) -> Expense:
        now = datetime.now(UTC)
        doc = {k: _to_bson(v) for k, v in payload.model_dump().items()}
        doc.update(date=self._as_aware(payload.date), created_at=now, updated_at=now)
        with self._guard("insert_expense"):
            result = await self._db[EXPENSES].insert_one(doc)
        doc["_id"] = result.inserted_id
        self._logger.info("expense_saved", id=str(result.inserted_id), amount=str(payload.amount))
        return Expense.from_document(doc)

    # === Transactions ===

    async def find_transactions(self, start: datetime, end: datetime) -> list[Transaction]:
        """Transactions dated in [start, end)."""
        with self._guard("find_transactions"):
            docs = await self._db[TRANSACTIONS].find(self._date_range(start, end)).to_list(None)
        return [Transaction.from_document(d) for d in docs]

    async def list_transactions(
        self, transaction_type: str | None = None, limit: int | None = None
    ) -> list[Transaction]:
        query: dict[str, Any] = {"type": transaction_type} if transaction_type else {}
        with self._guard("list_transactions"):
            cursor = self._db[TRANSACTIONS].find(query).sort("date", -1)
            if limit:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(None)
        return [Transaction.from_document(d) for d in docs]

    async def insert_transaction(self, payload: TransactionCreate) -> Transaction:
        now = datetime.now(UTC)
        doc = {k: _to_bson(v) for k, v in payload.model_dump().items()}
        doc.update(date=self._as_aware(payload.date), created_at=now, updated_at=now)
        with self._guard("insert_transaction"):
            result = await self._db[TRANSACTIONS].insert_one(doc)
        doc["_id"] = result.inserted_id
        self._logger.info(
            "transaction_saved",
            id=str(result.inserted_id),
            type=payload.type,
            amount=str(payload.total_amount),
        )
        return Transaction.from_document(doc)

    # === Report logs ===

    async def insert_report_log(self, entry: ReportLogEntry) -> ReportLogEntry:
        doc = entry.to_document()
        with self._guard("insert_report_log"):
            result = await self._db[REPORT_LOGS].insert_one(doc)
        doc["_id"] = result.inserted_id
        return ReportLogEntry.from_document(doc)

    async def latest_report_log(self) -> ReportLogEntry | None:
        with self._guard("latest_report_log"):
            doc = await self._db[REPORT_LOGS].find_one({}, sort=[("sent_at", -1)])
        if doc is None:
            return None
        return ReportLogEntry.from_document(doc)
