"""Structured logging configuration for Canteen Ledger."""

import logging
import sys
from typing import Any, Literal

import structlog

from canteen_ledger.config.settings import get_settings

NOISY_LOGGERS = ("httpx", "httpcore", "pymongo", "uvicorn.access")

# Event keys whose values never reach the log output
SECRET_KEYS = frozenset({"authorization", "access_token", "cron_secret", "secret", "token"})
# Event keys that carry a WhatsApp recipient number
PHONE_KEYS = frozenset({"to", "recipient", "wa_id"})


def mask_phone(number: str) -> str:
    """Keep only the last four digits of a phone number: ``********0000``."""
    digits = "".join(ch for ch in number if ch.isdigit())
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]


def redact_event(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Drop credentials and mask recipient numbers before rendering."""
    for key in list(event_dict):
        lowered = key.lower()
        if lowered in SECRET_KEYS:
            event_dict[key] = "[redacted]"
        elif lowered in PHONE_KEYS and isinstance(event_dict[key], str):
            event_dict[key] = mask_phone(event_dict[key])
    return event_dict


def add_service_context(environment: str, timezone: str) -> structlog.types.Processor:
    """Stamp every event with the deployment environment and report timezone."""

    def processor(
        logger: Any, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("env", environment)
        event_dict.setdefault("report_tz", timezone)
        return event_dict

    return processor


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
) -> None:
    """Configure structured logging for the service.

    JSON output also carries ``env`` and ``report_tz`` on every event.

    Args:
        level: Log level. Defaults to ``LOG_LEVEL``.
        format: ``json`` or ``console``. Defaults to ``LOG_FORMAT``.
    """
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level),
    )
    # Request-level chatter from the HTTP and Mongo drivers
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(logging.WARNING, getattr(logging, log_level)))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_event,
    ]

    if log_format == "json":
        processors += [
            add_service_context(settings.environment, settings.report_timezone),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to ``name``."""
    return structlog.get_logger(name)
