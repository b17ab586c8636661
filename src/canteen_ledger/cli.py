"""Command line entry point.

Usage:
    canteen-ledger serve --port 8000
    canteen-ledger report --date 2026-10-18
    canteen-ledger report --dry-run
    canteen-ledger trigger --url https://ledger.example.com
"""

import argparse
import asyncio
import json
import sys
from datetime import date
from typing import Any

from canteen_ledger.config import configure_logging, get_logger, get_settings
from canteen_ledger.errors import LedgerError
from canteen_ledger.job import ReportJob
from canteen_ledger.notifier import WhatsAppNotifier
from canteen_ledger.store import RecordStore
from canteen_ledger.trigger import TriggerClient

logger = get_logger(__name__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


async def _run_report(report_date: date | None, dry_run: bool) -> int:
    settings = get_settings()
    store = RecordStore(tz=settings.tzinfo)
    notifier = WhatsAppNotifier()
    job = ReportJob(store, notifier, recipient=settings.report_recipient)
    try:
        if dry_run:
            day = report_date or job.default_report_date()
            summary = await job.aggregator.summarize(day)
            _print_json(summary.to_dict())
            return 0
        result = await job.run(day=report_date, trigger="cli")
        _print_json(result.to_response())
        return 0 if result.success else 1
    except LedgerError as exc:
        logger.error("report_command_failed", error=str(exc))
        return 1
    finally:
        await notifier.close()
        await store.close()


async def _run_trigger(url: str | None, report_date: date | None) -> int:
    try:
        async with TriggerClient(base_url=url) as client:
            _print_json(await client.trigger(report_date))
    except LedgerError as exc:
        logger.error("trigger_command_failed", error=str(exc), details=getattr(exc, "details", None))
        return 1
    return 0


def _serve(host: str, port: int) -> int:
    import uvicorn

    from canteen_ledger.api import create_app

    uvicorn.run(create_app(), host=host, port=port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="canteen-ledger",
        description="Canteen expense tracker and daily report sender",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API and the daily timer")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    report = sub.add_parser("report", help="Run the daily report in-process")
    report.add_argument("--date", type=date.fromisoformat, help="Report day (default: yesterday)")
    report.add_argument("--dry-run", action="store_true", help="Print the summary without sending")

    trigger = sub.add_parser("trigger", help="Call a running service's trigger endpoint")
    trigger.add_argument("--url", help="Service base URL (default: APP_BASE_URL)")
    trigger.add_argument("--date", type=date.fromisoformat, help="Report day (default: yesterday)")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.command == "serve":
        return _serve(args.host, args.port)
    if args.command == "report":
        return asyncio.run(_run_report(args.date, args.dry_run))
    if args.command == "trigger":
        try:
            return asyncio.run(_run_trigger(args.url, args.date))
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
    return 2
