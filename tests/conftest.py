"""Shared fakes for the feed, credentials and notification collaborators."""

from typing import Any, Dict, List, Optional

import pytest

from spendrate.core.errors import NotificationFailure
from spendrate.db.dynamo import InMemoryStateStore


def expense(expense_id: str, amount, day: str, category: Optional[str] = None, currency: str = "AUD", **extra) -> Dict[str, Any]:
    record = {
        "id": expense_id,
        "state": "COMPLETED",
        "spent_amount": {"amount": amount, "currency": currency},
        "expense_date": day,
    }
    if category:
        record["merchant"] = {"category": category}
    record.update(extra)
    return record


class FakeFetcher:
    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.records = records or []
        self.error = error
        self.calls = []

    def fetch(self, from_date, to_date, credential):
        self.calls.append((from_date, to_date, credential))
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeCredentials:
    def __init__(self, token: str = "token-123"):
        self.token = token
        self.calls = 0

    def get_valid(self) -> str:
        self.calls += 1
        return self.token


class FakeNotifier:
    def __init__(self, fail: bool = False, message_id: int = 42):
        self.fail = fail
        self.message_id = message_id
        self.updates = []
        self.messages = []
        self.callbacks = []

    def send_spend_update(self, result, daily_totals, message_id=None, chat_id=None, title=None):
        if self.fail:
            raise NotificationFailure("telegram is down")
        self.updates.append({"result": result, "daily_totals": dict(daily_totals),
                             "message_id": message_id, "chat_id": chat_id, "title": title})
        return message_id or self.message_id

    def send_message(self, chat_id, text, **extra):
        self.messages.append((chat_id, text))
        return {"ok": True}

    def answer_callback(self, callback_query_id, text):
        self.callbacks.append((callback_query_id, text))
        return {"ok": True}


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()
