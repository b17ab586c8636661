"""Daily aggregation of expenses and transactions."""

from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from typing import Any

import structlog

from canteen_ledger.config import get_settings
from canteen_ledger.models import DailySummary, quantize

logger = structlog.get_logger(__name__)


def aggregation_window(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return the half-open interval [day 00:00, next day 00:00) in ``tz``.

    Both bounds are built from calendar dates rather than by adding 24 hours,
    so a DST change inside the day never shifts the next day's start.
    """
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def previous_day(now: datetime, tz: tzinfo) -> date:
    """The calendar day before ``now`` as seen in ``tz``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    return now.astimezone(tz).date() - timedelta(days=1)


class Aggregator:
    """Computes the DailySummary for a calendar day from the record store."""

    def __init__(self, store: Any, tz: tzinfo | None = None):
        self._store = store
        self._tz = tz or get_settings().tzinfo
        self._logger = logger.bind(component="aggregator")

    @property
    def tz(self) -> tzinfo:
        return self._tz

    async def summarize(self, day: date) -> DailySummary:
        """Summarize records dated within ``day``.

        Raises:
            StoreUnavailableError: If either collection cannot be read. No
                partial summary is returned.
        """
        start, end = aggregation_window(day, self._tz)

        expenses = await self._store.find_expenses(start, end)
        transactions = await self._store.find_transactions(start, end)

        total_expenses = sum((e.amount for e in expenses), Decimal("0"))

        sales = [t for t in transactions if t.type == "sale"]
        purchases = [t for t in transactions if t.type == "purchase"]
        uncounted = len(transactions) - len(sales) - len(purchases)

        total_sales = sum((t.total_amount for t in sales), Decimal("0"))
        total_purchases = sum((t.total_amount for t in purchases), Decimal("0"))

        if uncounted:
            self._logger.warning(
                "expense_transactions_not_counted",
                report_date=day.isoformat(),
                count=uncounted,
            )

        summary = DailySummary(
            report_date=day,
            total_sales=quantize(total_sales),
            total_expenses=quantize(total_expenses),
            total_purchases=quantize(total_purchases),
            sales_count=len(sales),
            purchases_count=len(purchases),
            expenses_count=len(expenses),
            uncounted_transactions=uncounted,
        )

        self._logger.info(
            "day_summarized",
            report_date=day.isoformat(),
            window_start=start.isoformat(),
            window_end=end.isoformat(),
            total_sales=str(summary.total_sales),
            total_expenses=str(summary.total_expenses),
            total_purchases=str(summary.total_purchases),
            net_profit=str(summary.net_profit),
        )
        return summary
