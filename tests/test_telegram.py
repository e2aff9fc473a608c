import json
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from conftest import FakeCredentials, FakeFetcher, FakeNotifier, expense
from spendrate.main import app
from spendrate.models.expense import AnalyticsResult, CategoryShare
from spendrate.routers.telegram import CommandError, parse_add_cash_expense
from spendrate.services import providers
from spendrate.services.daily_spend import get_last_message_id
from spendrate.utils.telegram import build_chart_url, format_currency, format_spend_message

result = AnalyticsResult(
    daily_rate=120.0,
    total_amount=360.0,
    period_days=3,
    moving_average_7=120.0,
    moving_average_30=120.0,
    top_categories=[CategoryShare("Groceries", 200.0, "55.6"), CategoryShare("Dining", 160.0, "44.4")],
    currency="AUD",
    target_deviation=90.0,
)


def test_parse_add_cash_expense():
    assert parse_add_cash_expense("/add_cash_expense 25.50 Groceries") == (25.5, "Groceries", None)
    amount, category, day = parse_add_cash_expense("/add_cash_expense 42 Restaurant 2025-03-15")
    assert (amount, category, day.isoformat()) == (42.0, "Restaurant", "2025-03-15")
    assert parse_add_cash_expense("/add_cash_expense 42") is None
    with pytest.raises(CommandError):
        parse_add_cash_expense("/add_cash_expense -3 Food")
    with pytest.raises(CommandError):
        parse_add_cash_expense("/add_cash_expense abc Food")


def test_format_spend_message():
    text = format_spend_message(result, target_daily_rate=150)
    assert "Last 3 days" in text
    assert "A$120.00" in text
    assert "A$90.00" in text
    assert "Groceries: A$200.00 (55.6%)" in text


def test_format_currency_unknown_code():
    assert format_currency(1234.5, "JPY") == "JPY 1,234.50"


def test_chart_url_keeps_last_fourteen_days():
    totals = {f"2025-01-{day:02d}": float(day) for day in range(1, 21)}
    url = build_chart_url(totals, 150, "AUD")
    config = json.loads(unquote(url.split("?c=", 1)[1].split("&", 1)[0]))
    assert config["data"]["labels"][0] == "07/01"
    assert len(config["data"]["datasets"][0]["data"]) == 14


@pytest.fixture
def webhook(store):
    notifier = FakeNotifier()
    fetcher = FakeFetcher([expense("f1", 30.0, "2025-01-01")])
    app.dependency_overrides[providers.get_store] = lambda: store
    app.dependency_overrides[providers.get_fetcher] = lambda: fetcher
    app.dependency_overrides[providers.get_credentials] = lambda: FakeCredentials()
    app.dependency_overrides[providers.get_notifier] = lambda: notifier
    yield TestClient(app), store, notifier
    app.dependency_overrides.clear()


def _message(text, chat_id=99):
    return {"message": {"chat": {"id": chat_id}, "text": text}}


def test_webhook_add_cash_expense(webhook):
    client, store, notifier = webhook
    response = client.post("/api/telegram/webhook", json=_message("/add_cash_expense 25.50 Groceries 2025-03-15"))

    assert response.json()["status"] == "Cash expense command received"
    assert store.load().daily_totals == {"2025-03-15": 25.5}
    assert "EXPENSE ADDED" in notifier.messages[0][1]


def test_webhook_add_cash_expense_usage(webhook):
    client, store, notifier = webhook
    client.post("/api/telegram/webhook", json=_message("/add_cash_expense"))
    assert "USAGE" in notifier.messages[0][1]
    assert store.load() is None


def test_webhook_stats_sends_chart_to_chat(webhook):
    client, store, notifier = webhook
    client.post("/api/telegram/webhook", json=_message("/stats", chat_id=7))
    assert notifier.updates[0]["chat_id"] == "7"
    assert notifier.updates[0]["result"].total_amount == 30.0


def test_webhook_update_button_edits_message(webhook):
    client, store, notifier = webhook
    payload = {"callback_query": {"id": "cb1", "data": "update_now",
                                  "message": {"message_id": 555, "chat": {"id": 7}}}}
    response = client.post("/api/telegram/webhook", json=payload)
    assert response.json()["status"] == "Processing callback query"
    assert notifier.callbacks == [("cb1", "Updating spend data...")]
    assert notifier.updates[0]["message_id"] == 555


def test_webhook_ignores_unknown_text(webhook):
    client, _, notifier = webhook
    assert client.post("/api/telegram/webhook", json=_message("hello")).json() == {"status": "Webhook received"}
    assert notifier.messages == []


def test_webhook_test_command_sends_sample_chart(webhook):
    client, store, notifier = webhook
    response = client.post("/api/telegram/webhook", json=_message("/test", chat_id=7))

    assert response.json()["status"] == "Test notification sent"
    assert notifier.updates[0]["title"] == "TEST SPEND STATS"
    assert notifier.updates[0]["chat_id"] == "7"
    assert notifier.updates[0]["result"].daily_rate == 150.25
    assert get_last_message_id(store) == 42
    assert store.load() is None


def test_update_button_without_chat_uses_configured_chat(webhook):
    client, _, notifier = webhook
    client.post("/api/telegram/webhook", json={"callback_query": {"id": "cb2", "data": "update_now"}})
    assert notifier.updates[0]["chat_id"] is None
    assert notifier.updates[0]["message_id"] is None
