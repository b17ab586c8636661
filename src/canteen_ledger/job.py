"""The daily report run: aggregate, notify, record."""

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any
from uuid import uuid4

import structlog

from canteen_ledger.aggregator import Aggregator, previous_day
from canteen_ledger.config import get_settings
from canteen_ledger.errors import StoreUnavailableError
from canteen_ledger.models import RunResult

logger = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Daily report sent successfully via template"
FAILURE_MESSAGE = "Failed to send daily report"


class ReportJob:
    """One Aggregator -> Notifier -> report log execution.

    The run result is finalized before the report log is written, and the
    log write can never change it.
    """

    def __init__(
        self,
        store: Any,
        notifier: Any,
        recipient: str | None = None,
        aggregator: Aggregator | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        settings = get_settings()
        self._store = store
        self._notifier = notifier
        self._recipient = recipient if recipient is not None else settings.report_recipient
        self._aggregator = aggregator or Aggregator(store, tz=settings.tzinfo)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._logger = logger.bind(component="report_job")

    @property
    def aggregator(self) -> Aggregator:
        return self._aggregator

    def default_report_date(self) -> date:
        """Yesterday, relative to when the run starts."""
        return previous_day(self._clock(), self._aggregator.tz)

    async def run(self, day: date | None = None, trigger: str = "manual") -> RunResult:
        """Execute one run for ``day`` (default: yesterday)."""
        report_date = day or self.default_report_date()
        log = self._logger.bind(
            run_id=uuid4().hex[:12],
            trigger=trigger,
            report_date=report_date.isoformat(),
        )
        log.info("report_run_started")

        result = await self._execute(report_date, log)
        await self._record(result, log)

        if result.success:
            log.info("report_run_succeeded", message_id=result.message_id)
        else:
            log.error("report_run_failed", error=result.error)
        return result

    async def _execute(self, report_date: date, log: Any) -> RunResult:
        try:
            summary = await self._aggregator.summarize(report_date)
        except StoreUnavailableError as exc:
            log.error("report_aggregation_failed", error=str(exc))
            return RunResult(
                success=False,
                message=FAILURE_MESSAGE,
                report_date=report_date,
                error=f"Could not read records: {exc}",
            )
        except Exception as exc:
            log.exception("report_aggregation_error")
            return RunResult(
                success=False,
                message=FAILURE_MESSAGE,
                report_date=report_date,
                error=str(exc),
            )

        try:
            outcome = await self._notifier.notify(self._recipient, summary)
        except Exception as exc:
            log.exception("report_notifier_error")
            return RunResult(
                success=False,
                message=FAILURE_MESSAGE,
                report_date=report_date,
                summary=summary,
                error=str(exc),
            )

        if not outcome.success:
            return RunResult(
                success=False,
                message=FAILURE_MESSAGE,
                report_date=report_date,
                summary=summary,
                error=outcome.error or "Notifier reported failure without detail",
            )

        return RunResult(
            success=True,
            message=SUCCESS_MESSAGE,
            report_date=report_date,
            summary=summary,
            message_id=outcome.message_id,
        )

    async def _record(self, result: RunResult, log: Any) -> None:
        """Best-effort report log write; errors are logged and dropped."""
        try:
            await self._store.insert_report_log(result.to_log_entry())
        except Exception as exc:
            log.warning("report_log_write_failed", error=str(exc))
