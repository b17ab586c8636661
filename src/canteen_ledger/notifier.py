"""WhatsApp Business Cloud API notifier for the daily report."""

from decimal import Decimal
from typing import Any

import httpx
import structlog

from canteen_ledger.config import get_settings
from canteen_ledger.models import DailySummary, NotifyResult, quantize

logger = structlog.get_logger(__name__)


def format_amount(amount: Decimal, currency_symbol: str) -> str:
    """Currency-prefixed amount with two decimal places, e.g. ``₹2500.00``."""
    value = quantize(amount)
    if value < 0:
        return f"-{currency_symbol}{-value:.2f}"
    return f"{currency_symbol}{value:.2f}"


def render_template_parameters(summary: DailySummary, currency_symbol: str) -> list[str]:
    """Ordered body parameters for the report template.

    The order is registered with the provider alongside the template:
    {{1}} date, {{2}} sales, {{3}} expenses, {{4}} net profit.
    """
    return [
        summary.report_date.strftime("%a %b %d %Y"),
        format_amount(summary.total_sales, currency_symbol),
        format_amount(summary.total_expenses, currency_symbol),
        format_amount(summary.net_profit, currency_symbol),
    ]


def build_template_payload(
    target: str,
    template_name: str,
    language: str,
    parameters: list[str],
) -> dict[str, Any]:
    """Graph API request body for a template message."""
    return {
        "messaging_product": "whatsapp",
        "to": target,
        "type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language},
            "components": [
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": p} for p in parameters],
                }
            ],
        },
    }


def _provider_error(data: Any) -> str | None:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("type")
        if error:
            return str(error)
    return None


class WhatsAppNotifier:
    """Sends the daily summary as a pre-approved WhatsApp template message.

    One delivery attempt per call; failures come back as NotifyResult values
    and the caller decides what they mean.
    """

    def __init__(
        self,
        access_token: str | None = None,
        phone_number_id: str | None = None,
        api_url: str | None = None,
        api_version: str | None = None,
        template_name: str | None = None,
        language: str | None = None,
        currency_symbol: str | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        if access_token is None and settings.waba_access_token is not None:
            access_token = settings.waba_access_token.get_secret_value()
        self._access_token = access_token
        self._phone_number_id = phone_number_id or settings.waba_phone_number_id
        self._api_url = (api_url or settings.waba_api_url).rstrip("/")
        self._api_version = api_version or settings.waba_api_version
        self._template_name = template_name or settings.waba_template_name
        self._language = language or settings.waba_template_language
        self._currency_symbol = currency_symbol or settings.currency_symbol
        self._timeout = timeout or settings.waba_timeout

        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="whatsapp_notifier", template=self._template_name)

    @property
    def messages_url(self) -> str:
        return f"{self._api_url}/{self._api_version}/{self._phone_number_id}/messages"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "WhatsAppNotifier":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def notify(self, target: str | None, summary: DailySummary) -> NotifyResult:
        """Render ``summary`` and submit it to ``target``."""
        if not self._access_token or not self._phone_number_id:
            self._logger.error("whatsapp_credentials_missing")
            return NotifyResult.failed("Missing WABA credentials in environment variables")
        if not target:
            self._logger.error("report_recipient_missing")
            return NotifyResult.failed("No report recipient configured")

        payload = build_template_payload(
            target,
            self._template_name,
            self._language,
            render_template_parameters(summary, self._currency_symbol),
        )
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }

        self._logger.info("whatsapp_template_sending", to=target, report_date=summary.report_date.isoformat())
        client = await self._get_client()
        try:
            response = await client.post(self.messages_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            self._logger.error("whatsapp_request_failed", error=str(exc))
            return NotifyResult.failed(f"WhatsApp request failed: {exc}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not 200 <= response.status_code < 300:
            detail = _provider_error(data) or response.text or "no response body"
            self._logger.error(
                "whatsapp_template_rejected",
                status_code=response.status_code,
                error=detail,
            )
            return NotifyResult.failed(
                f"WhatsApp Template API error ({response.status_code}): {detail}"
            )

        message_id = None
        messages = data.get("messages") if isinstance(data, dict) else None
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            message_id = messages[0].get("id")

        self._logger.info("whatsapp_template_sent", message_id=message_id)
        return NotifyResult(success=True, message_id=message_id)
