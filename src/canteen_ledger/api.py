"""FastAPI application: report trigger, status and record endpoints."""

import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from canteen_ledger import __version__
from canteen_ledger.config import Settings, get_settings, load_expense_categories
from canteen_ledger.errors import StoreUnavailableError, UnauthorizedTriggerError
from canteen_ledger.job import FAILURE_MESSAGE, ReportJob
from canteen_ledger.models import ExpenseCreate, RunResult, TransactionCreate, TransactionType
from canteen_ledger.notifier import WhatsAppNotifier
from canteen_ledger.scheduler import DailyScheduler
from canteen_ledger.store import RecordStore
from canteen_ledger.trigger import TriggerClient

logger = structlog.get_logger(__name__)

NO_REPORT_YET = "No report has been sent yet."


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# === Dependencies ===


def get_job(request: Request) -> ReportJob:
    return request.app.state.job


def get_store(request: Request) -> Any:
    return request.app.state.store


def get_scheduler(request: Request) -> DailyScheduler:
    return request.app.state.scheduler


def require_trigger_secret(
    request: Request,
    authorization: str | None = Header(None),
) -> None:
    """Reject trigger calls that do not carry the configured shared secret."""
    secret = request.app.state.settings.trigger_secret
    if not secret:
        return
    expected = f"Bearer {secret}"
    if authorization is None or not secrets.compare_digest(
        authorization.encode(), expected.encode()
    ):
        logger.warning(
            "trigger_rejected",
            path=request.url.path,
            client=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            forwarded_for=request.headers.get("x-forwarded-for"),
        )
        raise UnauthorizedTriggerError("Unauthorized")


# === Application ===


def _build_fire_callback(settings: Settings, job: ReportJob) -> tuple[Any, TriggerClient | None]:
    """Timer callback: self-referential HTTP call when a base URL is set, else in-process."""
    if settings.app_base_url:
        client = TriggerClient(settings.app_base_url, settings.trigger_secret)

        async def fire_over_http() -> Any:
            return await client.trigger()

        return fire_over_http, client

    async def fire_in_process() -> Any:
        return await job.run(trigger="timer")

    return fire_in_process, None


def create_app(
    settings: Settings | None = None,
    store: Any = None,
    notifier: Any = None,
    scheduler: DailyScheduler | None = None,
) -> FastAPI:
    """Build the application and its long-lived components.

    Components are constructed here, once per app, so the scheduler has a
    single owner; the lifespan only arms and disarms it.
    """
    settings = settings or get_settings()
    store = store or RecordStore(tz=settings.tzinfo)
    notifier = notifier or WhatsAppNotifier()
    job = ReportJob(store, notifier, recipient=settings.report_recipient)

    trigger_client = None
    if scheduler is None:
        fire, trigger_client = _build_fire_callback(settings, job)
        scheduler = DailyScheduler(
            fire,
            tz=settings.tzinfo,
            fire_time=settings.report_time,
            enabled=settings.scheduler_enabled,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.scheduler.start()
        try:
            yield
        finally:
            app.state.scheduler.stop()
            if trigger_client is not None:
                await trigger_client.close()
            await notifier.close()
            await store.close()

    app = FastAPI(title="Canteen Ledger", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.notifier = notifier
    app.state.job = job
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnauthorizedTriggerError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedTriggerError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"error": "Record store unavailable", "details": str(exc)},
        )


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health(scheduler: DailyScheduler = Depends(get_scheduler)) -> dict[str, Any]:
        return {"status": "ok", "version": __version__, "scheduler": scheduler.state.value}

    # --- Reports ---

    @app.api_route(
        "/api/reports/daily",
        methods=["GET", "POST"],
        dependencies=[Depends(require_trigger_secret)],
    )
    async def trigger_daily_report(
        report_date: date | None = Query(None, alias="date"),
        job: ReportJob = Depends(get_job),
    ) -> JSONResponse:
        try:
            result = await job.run(day=report_date, trigger="http")
        except Exception as exc:
            logger.exception("daily_report_unhandled_error")
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": FAILURE_MESSAGE,
                    "details": str(exc),
                    "timestamp": _now_iso(),
                },
            )
        return JSONResponse(
            status_code=200 if result.success else 500,
            content=result.to_response(),
        )

    @app.get("/api/reports/status")
    async def last_report_status(store: Any = Depends(get_store)) -> dict[str, Any]:
        entry = await store.latest_report_log()
        if entry is None:
            return {"message": NO_REPORT_YET}
        return entry.to_dict()

    @app.get("/api/reports/summary")
    async def summary_preview(
        report_date: date | None = Query(None, alias="date"),
        job: ReportJob = Depends(get_job),
    ) -> dict[str, Any]:
        day = report_date or job.default_report_date()
        summary = await job.aggregator.summarize(day)
        return summary.to_dict()

    # --- Scheduler ---

    @app.get("/api/scheduler")
    async def scheduler_status(scheduler: DailyScheduler = Depends(get_scheduler)) -> dict[str, Any]:
        return scheduler.get_status()

    @app.post("/api/scheduler/run", dependencies=[Depends(require_trigger_secret)])
    async def scheduler_run_now(scheduler: DailyScheduler = Depends(get_scheduler)) -> JSONResponse:
        try:
            result = await scheduler.trigger_now()
        except Exception as exc:
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": FAILURE_MESSAGE, "details": str(exc), "timestamp": _now_iso()},
            )
        if isinstance(result, RunResult):
            return JSONResponse(
                status_code=200 if result.success else 500,
                content=result.to_response(),
            )
        # Self-referential runs hand back the trigger endpoint's JSON body
        return JSONResponse(status_code=200, content=result)

    # --- Records ---

    @app.get("/api/expenses")
    async def list_expenses(
        limit: int | None = Query(None, ge=1),
        store: Any = Depends(get_store),
    ) -> list[dict[str, Any]]:
        expenses = await store.list_expenses(limit=limit)
        return [e.model_dump(mode="json") for e in expenses]

    @app.post("/api/expenses", status_code=201)
    async def create_expense(payload: ExpenseCreate, store: Any = Depends(get_store)) -> dict[str, Any]:
        expense = await store.insert_expense(payload)
        return expense.model_dump(mode="json")

    @app.get("/api/transactions")
    async def list_transactions(
        transaction_type: TransactionType | None = Query(None, alias="type"),
        limit: int | None = Query(None, ge=1),
        store: Any = Depends(get_store),
    ) -> list[dict[str, Any]]:
        transactions = await store.list_transactions(transaction_type, limit=limit)
        return [t.model_dump(mode="json") for t in transactions]

    @app.post("/api/transactions", status_code=201)
    async def create_transaction(
        payload: TransactionCreate, store: Any = Depends(get_store)
    ) -> dict[str, Any]:
        transaction = await store.insert_transaction(payload)
        return transaction.model_dump(mode="json")

    @app.get("/api/categories")
    async def list_categories() -> list[dict[str, Any]]:
        return [c.to_dict() for c in load_expense_categories()]
