"""Record types and derived report values.

Expenses and transactions arrive over the HTTP API, so their create payloads
are pydantic models. Everything derived by the report pipeline (summaries,
notifier outcomes, run results, report log entries) is a plain dataclass.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Literal

from bson import Decimal128
from pydantic import BaseModel, ConfigDict, Field, field_validator

from canteen_ledger.config.categories import category_ids

CENTS = Decimal("0.01")

TransactionType = Literal["sale", "purchase", "expense"]


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored amount (Decimal128, float, int, str) into a Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# === Records ===


class ExpenseCreate(BaseModel):
    """Payload for recording an expense."""

    model_config = ConfigDict(str_strip_whitespace=True)

    category: str
    subcategory: str | None = None
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    date: datetime
    supplier: str | None = None
    receipt: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        known = category_ids()
        if known and value not in known:
            raise ValueError(f"Unknown expense category {value!r}")
        return value


class Expense(ExpenseCreate):
    """A stored expense."""

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Expense":
        return cls.model_construct(
            id=str(doc["_id"]),
            category=doc.get("category", "other"),
            subcategory=doc.get("subcategory"),
            description=doc.get("description", ""),
            amount=to_decimal(doc.get("amount")),
            date=doc["date"],
            supplier=doc.get("supplier"),
            receipt=doc.get("receipt"),
            tags=list(doc.get("tags") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class TransactionCreate(BaseModel):
    """Payload for recording a sale or purchase."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    total_amount: Decimal = Field(..., ge=0)
    date: datetime
    item_name: str | None = None
    quantity: Decimal | None = Field(default=None, ge=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    customer: str | None = None
    notes: str | None = None


class Transaction(TransactionCreate):
    """A stored transaction."""

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Transaction":
        quantity = doc.get("quantity")
        unit_price = doc.get("unit_price")
        return cls.model_construct(
            id=str(doc["_id"]),
            type=doc["type"],
            total_amount=to_decimal(doc.get("total_amount")),
            date=doc["date"],
            item_name=doc.get("item_name"),
            quantity=to_decimal(quantity) if quantity is not None else None,
            unit_price=to_decimal(unit_price) if unit_price is not None else None,
            customer=doc.get("customer"),
            notes=doc.get("notes"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


# === Derived values ===


@dataclass(frozen=True)
class DailySummary:
    """Totals for one aggregation window."""

    report_date: date
    total_sales: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    total_purchases: Decimal = Decimal("0.00")
    sales_count: int = 0
    purchases_count: int = 0
    expenses_count: int = 0
    # expense-typed transactions seen in the window but left out of the totals
    uncounted_transactions: int = 0

    @property
    def net_profit(self) -> Decimal:
        return self.total_sales - self.total_expenses - self.total_purchases

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view; amounts are two-place decimal strings."""
        return {
            "report_date": self.report_date.isoformat(),
            "total_sales": str(quantize(self.total_sales)),
            "total_expenses": str(quantize(self.total_expenses)),
            "total_purchases": str(quantize(self.total_purchases)),
            "net_profit": str(quantize(self.net_profit)),
            "sales_count": self.sales_count,
            "purchases_count": self.purchases_count,
            "expenses_count": self.expenses_count,
            "uncounted_transactions": self.uncounted_transactions,
        }


@dataclass(frozen=True)
class NotifyResult:
    """Outcome of a single delivery attempt."""

    success: bool
    message_id: str | None = None
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> "NotifyResult":
        return cls(success=False, error=error)


class ReportStatus(str, Enum):
    """Outcome recorded for each report run."""

    SUCCESS = "Success"
    FAILURE = "Failure"


@dataclass(frozen=True)
class ReportLogEntry:
    """Audit record written once per run."""

    status: ReportStatus
    message: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: str | None = None

    def to_document(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "sent_at": self.sent_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ReportLogEntry":
        return cls(
            status=ReportStatus(doc["status"]),
            message=doc.get("message", ""),
            sent_at=doc["sent_at"],
            id=str(doc["_id"]) if doc.get("_id") is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "message": self.message,
            "sent_at": _iso(self.sent_at),
        }


@dataclass(frozen=True)
class RunResult:
    """Finalized outcome of one report run."""

    success: bool
    message: str
    report_date: date
    summary: DailySummary | None = None
    message_id: str | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_log_entry(self) -> ReportLogEntry:
        if self.success:
            return ReportLogEntry(status=ReportStatus.SUCCESS, message=self.message)
        return ReportLogEntry(
            status=ReportStatus.FAILURE,
            message=self.error or self.message,
        )

    def to_response(self) -> dict[str, Any]:
        """Serialize for the trigger endpoint."""
        body: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.success and self.summary is not None:
            body["data"] = {**self.summary.to_dict(), "message_id": self.message_id}
        if not self.success:
            body["error"] = self.message
            body["details"] = self.error
        return body
