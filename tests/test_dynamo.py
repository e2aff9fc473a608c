from datetime import date
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from conftest import expense
from spendrate.core.errors import PersistenceFailure
from spendrate.core.ledger import merge
from spendrate.db.dynamo import DynamoStateStore, _convert_for_dynamo
from spendrate.models.expense import Ledger


class FakeTable:
    """Stands in for a boto3 DynamoDB Table resource."""

    def __init__(self, fail_with=None):
        self.items = {}
        self.fail_with = fail_with

    def get_item(self, Key):
        if self.fail_with:
            raise self.fail_with
        item = self.items.get(Key["state_key"])
        return {"Item": item} if item else {}

    def put_item(self, Item):
        if self.fail_with:
            raise self.fail_with
        for value in Item.get("dailyTotals", {}).values():
            assert not isinstance(value, float)
        self.items[Item["state_key"]] = Item


def _client_error(operation):
    return ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}}, operation)


def test_ledger_round_trip():
    store = DynamoStateStore(table=FakeTable())
    ledger = merge(Ledger.empty(), [expense("a", 12.34, "2025-01-01", "Food"), expense("b", 10, "2025-01-02")])

    store.save(ledger)
    loaded = store.load()

    assert isinstance(store.table.items["ledger"]["dailyTotals"]["2025-01-01"], Decimal)
    assert loaded.daily_totals == {"2025-01-01": 12.34, "2025-01-02": 10.0}
    assert [rec["id"] for rec in loaded.records] == ["a", "b"]
    assert loaded.currency == "AUD"


def test_missing_items_load_as_none():
    store = DynamoStateStore(table=FakeTable())
    assert store.load() is None
    assert store.load_cursor() is None
    assert store.load_credentials() == {}


def test_cursor_round_trip_and_legacy_timestamp():
    table = FakeTable()
    store = DynamoStateStore(table=table)
    store.save_cursor(date(2025, 6, 1))
    assert store.load_cursor() == date(2025, 6, 1)

    table.items["cursor"] = {"state_key": "cursor", "last_date": "2025-06-03T08:00:00.000Z"}
    assert store.load_cursor() == date(2025, 6, 3)


def test_read_failure_raises_persistence_failure():
    store = DynamoStateStore(table=FakeTable(fail_with=_client_error("GetItem")))
    with pytest.raises(PersistenceFailure):
        store.load()


def test_write_failure_raises_persistence_failure():
    store = DynamoStateStore(table=FakeTable(fail_with=_client_error("PutItem")))
    with pytest.raises(PersistenceFailure):
        store.save(Ledger.empty())


def test_non_finite_amounts_are_stored_as_text():
    converted = _convert_for_dynamo({"amount": float("nan"), "ok": 1.5, "flag": True})
    assert converted == {"amount": "nan", "ok": Decimal("1.5"), "flag": True}
