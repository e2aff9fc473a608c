from datetime import date

import pytest
from fastapi.testclient import TestClient

from conftest import FakeCredentials, FakeFetcher, FakeNotifier, expense
from spendrate.core.config import settings
from spendrate.core.errors import TransportFailure
from spendrate.db.dynamo import InMemoryStateStore
from spendrate.main import app
from spendrate.services import providers


@pytest.fixture
def fakes(store):
    fetcher = FakeFetcher([expense("f1", 30.0, "2025-01-01", "Dining"), expense("f2", 60.0, "2025-01-02", "Rent")])
    notifier = FakeNotifier()
    app.dependency_overrides[providers.get_store] = lambda: store
    app.dependency_overrides[providers.get_fetcher] = lambda: fetcher
    app.dependency_overrides[providers.get_credentials] = lambda: FakeCredentials()
    app.dependency_overrides[providers.get_notifier] = lambda: notifier
    yield {"store": store, "fetcher": fetcher, "notifier": notifier}
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    # Not used as a context manager, so the scheduler lifespan does not start
    return TestClient(app)


def test_root_and_health(client):
    assert "Welcome" in client.get("/").json()["message"]
    assert client.get("/api/health").json()["status"] == "healthy"


def test_calculate_returns_analytics(client, fakes):
    response = client.get("/api/spend/calculate")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["totalAmount"] == 90.0
    assert body["data"]["periodDays"] == 2
    assert body["data"]["topCategories"][0]["category"] == "Rent"
    assert fakes["notifier"].updates == []


def test_calculate_reports_feed_failure(client, fakes):
    fakes["fetcher"].error = TransportFailure("feed down")
    response = client.get("/api/spend/calculate")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "feed down"}


def test_trigger_notifies(client, fakes):
    response = client.post("/api/spend/trigger")
    assert response.status_code == 200
    assert response.json()["new_records"] == 2
    assert len(fakes["notifier"].updates) == 1


def test_trigger_skip_notification(client, fakes):
    response = client.post("/api/spend/trigger", params={"skip_notification": "true"})
    assert response.status_code == 200
    assert fakes["notifier"].updates == []


def test_trigger_failure_is_500(client, fakes):
    fakes["fetcher"].error = TransportFailure("feed down")
    response = client.post("/api/spend/trigger")
    assert response.status_code == 500
    assert "feed down" in response.json()["detail"]


def test_status_does_not_sync(client, fakes):
    response = client.get("/api/spend/status")
    assert response.status_code == 200
    assert response.json()["data"]["totalAmount"] == 0
    assert fakes["fetcher"].calls == []


def test_manual_expense_endpoint(client, fakes):
    response = client.post("/api/expenses/manual",
                           json={"amount": 25.5, "category": "Groceries", "expense_date": "2025-03-15"})
    assert response.status_code == 201
    assert response.json()["is_manual_entry"] is True

    totals = client.get("/api/spend/daily-totals").json()
    assert totals["dailyTotals"] == {"2025-03-15": 25.5}


def test_manual_expense_rejects_non_positive_amount(client, fakes):
    response = client.post("/api/expenses/manual", json={"amount": 0, "category": "Groceries"})
    assert response.status_code == 422


def test_manual_expense_rejects_infinite_amount(client, fakes):
    response = client.post("/api/expenses/manual", content='{"amount": Infinity, "category": "Food"}',
                           headers={"Content-Type": "application/json"})
    assert response.status_code == 422
    assert fakes["store"].load() is None


def test_trigger_token_required_when_configured(client, fakes, monkeypatch):
    monkeypatch.setattr(settings, "TRIGGER_TOKEN", "s3cret")
    assert client.post("/api/spend/trigger").status_code == 401
    response = client.post("/api/spend/trigger", headers={"X-Trigger-Token": "s3cret"})
    assert response.status_code == 200


def test_service_status(client, fakes):
    fakes["store"].save_cursor(date(2025, 1, 2))
    body = client.get("/api/status").json()
    assert body["services"]["state_store"]["connected"] is True
    assert body["services"]["state_store"]["last_processed_date"] == "2025-01-02"


def test_providers_share_one_http_session(monkeypatch):
    monkeypatch.setattr(providers, "get_state_store", InMemoryStateStore)
    session = providers.get_http_session()
    assert providers.get_fetcher().session is session
    assert providers.get_credentials().session is session
    assert providers.get_notifier().session is session

    providers.close_http_session()
    assert providers.get_http_session() is not session
    providers.close_http_session()
