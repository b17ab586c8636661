"""Client for the report trigger endpoint.

The daily timer uses this to call the service's own trigger endpoint when
``APP_BASE_URL`` is configured, so timer runs pass through the same
shared-secret check as any external cron caller.
"""

from datetime import date
from typing import Any

import httpx
import structlog

from canteen_ledger.config import get_settings
from canteen_ledger.errors import TriggerError

logger = structlog.get_logger(__name__)

TRIGGER_PATH = "/api/reports/daily"


class TriggerClient:
    """Async client that fires the daily report over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        secret: str | None = None,
        timeout: float = 120.0,
    ):
        settings = get_settings()
        url = base_url or settings.app_base_url
        if not url:
            raise ValueError("TriggerClient needs a base URL (APP_BASE_URL)")
        self.base_url = url.rstrip("/")
        self._secret = secret if secret is not None else settings.trigger_secret
        self._timeout = timeout

        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(component="trigger_client", base_url=self.base_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TriggerClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._secret:
            headers["Authorization"] = f"Bearer {self._secret}"
        return headers

    async def trigger(self, day: date | None = None) -> dict[str, Any]:
        """POST to the trigger endpoint and return its JSON body.

        Raises:
            TriggerError: On transport failure or a non-2xx response.
        """
        client = await self._get_client()
        params = {"date": day.isoformat()} if day else None
        try:
            response = await client.post(TRIGGER_PATH, headers=self._get_headers(), params=params)
        except httpx.HTTPError as exc:
            raise TriggerError(f"Trigger request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        if response.status_code >= 400:
            self._logger.error(
                "daily_report_trigger_failed",
                status_code=response.status_code,
                details=data,
            )
            raise TriggerError(
                f"Trigger returned HTTP {response.status_code}",
                status_code=response.status_code,
                details=data,
            )

        self._logger.info("daily_report_triggered", data=data.get("data") if isinstance(data, dict) else None)
        return data if isinstance(data, dict) else {"data": data}
