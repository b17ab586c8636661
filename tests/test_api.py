"""Tests for the HTTP API."""

from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from canteen_ledger.api import NO_REPORT_YET, create_app
from canteen_ledger.config import get_settings
from canteen_ledger.job import FAILURE_MESSAGE, SUCCESS_MESSAGE
from canteen_ledger.models import NotifyResult, ReportStatus

SECRET = "cron-shared-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def settings():
    return get_settings().model_copy(
        update={"cron_secret": SecretStr(SECRET), "app_base_url": None, "enable_scheduler": False}
    )


@pytest.fixture
def client(settings, store, mock_notifier):
    app = create_app(settings=settings, store=store, notifier=mock_notifier)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded(store, ist):
    store.add_expense("2500", datetime(2026, 10, 18, 10, tzinfo=ist))
    store.add_transaction("sale", "10000", datetime(2026, 10, 18, 12, tzinfo=ist))
    store.add_transaction("purchase", "3000", datetime(2026, 10, 18, 15, tzinfo=ist))
    return store


class TestTriggerAuth:
    """Tests for the shared-secret check."""

    def test_missing_secret_rejected(self, client, store, mock_notifier):
        response = client.post("/api/reports/daily")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert store.calls == []
        mock_notifier.notify.assert_not_called()

    def test_wrong_secret_rejected(self, client, store, mock_notifier):
        response = client.get(
            "/api/reports/daily", headers={"Authorization": "Bearer not-the-secret"}
        )

        assert response.status_code == 401
        assert store.report_logs == []
        mock_notifier.notify.assert_not_called()

    def test_secret_without_bearer_prefix_rejected(self, client):
        response = client.post("/api/reports/daily", headers={"Authorization": SECRET})

        assert response.status_code == 401

    def test_no_secret_configured_allows_call(self, settings, store, mock_notifier):
        open_settings = settings.model_copy(update={"cron_secret": None})
        app = create_app(settings=open_settings, store=store, notifier=mock_notifier)

        with TestClient(app) as client:
            response = client.post("/api/reports/daily", params={"date": "2026-10-18"})

        assert response.status_code == 200


class TestTriggerRun:
    """Tests for the trigger endpoint's run outcomes."""

    def test_success(self, client, seeded, mock_notifier):
        response = client.post("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == SUCCESS_MESSAGE
        assert body["data"]["total_sales"] == "10000.00"
        assert body["data"]["total_expenses"] == "2500.00"
        assert body["data"]["total_purchases"] == "3000.00"
        assert body["data"]["net_profit"] == "4500.00"
        assert body["data"]["message_id"] == "wamid.TEST123"
        assert "timestamp" in body

        mock_notifier.notify.assert_awaited_once()
        assert seeded.report_logs[-1].status == ReportStatus.SUCCESS

    def test_get_method_also_triggers(self, client, seeded):
        response = client.get("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_notifier_failure(self, client, seeded, mock_notifier):
        mock_notifier.notify.return_value = NotifyResult.failed(
            "WhatsApp Template API error (401): Invalid OAuth access token"
        )

        response = client.post("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == FAILURE_MESSAGE
        assert "Invalid OAuth access token" in body["details"]
        assert seeded.report_logs[-1].status == ReportStatus.FAILURE

    def test_store_failure_skips_notifier(self, client, store, mock_notifier):
        store.fail_reads = True

        response = client.post("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        assert response.status_code == 500
        assert "Could not read records" in response.json()["details"]
        mock_notifier.notify.assert_not_called()

    def test_log_write_failure_does_not_change_response(self, client, seeded):
        seeded.fail_log_writes = True

        response = client.post("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_unexpected_error(self, client, seeded, mock_notifier):
        mock_notifier.notify.side_effect = RuntimeError("template cache corrupted")

        response = client.post("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["details"] == "template cache corrupted"
        assert body["error"] == FAILURE_MESSAGE
        assert [e.status for e in seeded.report_logs] == [ReportStatus.FAILURE]


class TestReportStatus:
    """Tests for the last-report status endpoint."""

    def test_no_report_yet(self, client):
        response = client.get("/api/reports/status")

        assert response.status_code == 200
        assert response.json() == {"message": NO_REPORT_YET}

    def test_latest_entry(self, client, store, mock_notifier):
        client.post("/api/reports/daily", params={"date": "2026-10-17"}, headers=AUTH)
        mock_notifier.notify.return_value = NotifyResult.failed("No report recipient configured")
        client.post("/api/reports/daily", params={"date": "2026-10-18"}, headers=AUTH)

        body = client.get("/api/reports/status").json()

        assert body["status"] == "Failure"
        assert body["message"] == "No report recipient configured"
        assert body["id"] is not None

    def test_store_unavailable(self, client, store):
        store.fail_reads = True

        response = client.get("/api/reports/status")

        assert response.status_code == 500
        assert response.json()["error"] == "Record store unavailable"


def test_summary_preview_does_not_notify(client, seeded, mock_notifier):
    response = client.get("/api/reports/summary", params={"date": "2026-10-18"})

    assert response.status_code == 200
    body = response.json()
    assert body["report_date"] == "2026-10-18"
    assert body["net_profit"] == "4500.00"
    assert body["sales_count"] == 1
    mock_notifier.notify.assert_not_called()
    assert seeded.report_logs == []


class TestRecords:
    """Tests for expense and transaction endpoints."""

    def test_create_and_list_expense(self, client):
        response = client.post(
            "/api/expenses",
            json={
                "category": "utilities",
                "subcategory": "electricity",
                "description": "October power bill",
                "amount": "1840.50",
                "date": "2026-10-18T11:00:00+05:30",
            },
        )

        assert response.status_code == 201
        created = response.json()
        assert created["category"] == "utilities"
        assert created["id"]

        listed = client.get("/api/expenses").json()
        assert [e["id"] for e in listed] == [created["id"]]

    def test_list_expenses_returns_every_record(self, client, store, ist):
        for day in range(1, 31):
            for hour in range(9):
                store.add_expense("10", datetime(2026, 9, day, 9 + hour, tzinfo=ist))

        listed = client.get("/api/expenses").json()

        assert len(listed) == 270
        assert listed[0]["date"] > listed[-1]["date"]
        assert len(client.get("/api/expenses", params={"limit": 5}).json()) == 5

    def test_unknown_category_rejected(self, client, store):
        response = client.post(
            "/api/expenses",
            json={
                "category": "yacht_fuel",
                "description": "Not a canteen expense",
                "amount": 10,
                "date": "2026-10-18T11:00:00+05:30",
            },
        )

        assert response.status_code == 422
        assert "insert_expense" not in store.calls

    def test_negative_amount_rejected(self, client):
        response = client.post(
            "/api/transactions",
            json={"type": "sale", "total_amount": -5, "date": "2026-10-18T11:00:00Z"},
        )

        assert response.status_code == 422

    def test_list_transactions_by_type(self, client, store):
        store.add_transaction("sale", "120", datetime(2026, 10, 18, 6, tzinfo=UTC))
        store.add_transaction("purchase", "80", datetime(2026, 10, 18, 7, tzinfo=UTC))

        response = client.get("/api/transactions", params={"type": "purchase"})

        assert response.status_code == 200
        assert [t["type"] for t in response.json()] == ["purchase"]

    def test_create_transaction(self, client):
        response = client.post(
            "/api/transactions",
            json={
                "type": "sale",
                "total_amount": "180",
                "date": "2026-10-18T13:15:00+05:30",
                "item_name": "Veg thali",
                "quantity": 2,
                "unit_price": 90,
            },
        )

        assert response.status_code == 201
        assert response.json()["item_name"] == "Veg thali"


def test_categories(client):
    categories = client.get("/api/categories").json()

    ids = [c["id"] for c in categories]
    assert "food_purchase" in ids
    assert all(c["subcategories"] for c in categories)


def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["scheduler"] == "idle"


class TestSchedulerEndpoints:
    """Tests for scheduler status and manual firing."""

    def test_status(self, client):
        body = client.get("/api/scheduler").json()

        assert body["enabled"] is False
        assert body["timezone"] == "Asia/Kolkata"
        assert body["fire_time"] == "00:01"

    def test_run_requires_secret(self, client, mock_notifier):
        response = client.post("/api/scheduler/run")

        assert response.status_code == 401
        mock_notifier.notify.assert_not_called()

    def test_run_now(self, client, mock_notifier, store):
        response = client.post("/api/scheduler/run", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_notifier.notify.assert_awaited_once()
        assert len(store.report_logs) == 1
        assert client.get("/api/scheduler").json()["run_count"] == 1
