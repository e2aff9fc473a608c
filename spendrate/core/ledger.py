"""
Ledger merge: folds fetched or manually entered expense records into the
ledger without ever counting the same record id twice.
"""
from __future__ import annotations

import logging
import random
import string
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional

from spendrate.models.expense import (
    ORIGIN_FEED,
    ORIGIN_MANUAL,
    Ledger,
    record_amount,
    record_currency,
    record_date,
    record_origin,
)

logger = logging.getLogger(__name__)

MANUAL_ID_PREFIX = "cash_"
MANUAL_CATEGORY = "Cash"


def counted_amount(record: Dict[str, Any], currency: Optional[str]) -> Optional[float]:
    """
    Amount a record contributes to the daily totals, or None when it is left
    out: non-finite amount, no attributable date, or a currency other than
    the ledger's.
    """
    amount = record_amount(record)
    if amount is None or record_date(record) is None:
        return None
    rec_currency = record_currency(record)
    if currency and rec_currency and rec_currency != currency:
        return None
    return amount


def merge(ledger: Ledger, incoming: Iterable[Dict[str, Any]]) -> Ledger:
    """
    Return a new ledger with every incoming record whose id is not yet known.

    Re-merging a known id is a no-op, so replaying a fetch window never
    double counts. Records that cannot be counted stay in ``records`` but do
    not touch ``daily_totals``.
    """
    records = list(ledger.records)
    totals = dict(ledger.daily_totals)
    currency = ledger.currency
    seen = ledger.record_ids()

    for record in incoming or []:
        record_id = record.get("id")
        if record_id is None:
            logger.warning("Skipping expense record without an id")
            continue
        if record_id in seen:
            continue
        seen.add(record_id)
        records.append(record)

        # Only feed records fix the ledger currency; manual entries follow it
        if currency is None and record_origin(record) == ORIGIN_FEED and record_amount(record) is not None:
            currency = record_currency(record)
            if currency:
                records = [_with_currency(rec, currency) if record_origin(rec) == ORIGIN_MANUAL else rec
                           for rec in records]

        amount = counted_amount(record, currency)
        if amount is None:
            if record_amount(record) is not None and record_date(record) is not None:
                logger.warning(
                    f"Expense {record_id} is in {record_currency(record)}, ledger is in {currency}; "
                    f"excluded from totals"
                )
            continue
        day = record_date(record).isoformat()
        totals[day] = totals.get(day, 0.0) + amount

    return Ledger(records=records, daily_totals=totals, currency=currency)


def _with_currency(record: Dict[str, Any], currency: str) -> Dict[str, Any]:
    if record_currency(record) == currency:
        return record
    spent = dict(record.get("spent_amount") or {})
    spent["currency"] = currency
    return {**record, "spent_amount": spent}


def ledger_total(ledger: Ledger) -> float:
    return sum(ledger.daily_totals.values())


def _manual_id(now: datetime) -> str:
    millis = int(now.timestamp() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"{MANUAL_ID_PREFIX}{millis}_{suffix}"


def new_manual_entry(
    amount: float,
    category: str,
    expense_date: Optional[date],
    currency: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build a cash expense record in the same shape as feed records. The caller
    passes it through ``merge`` like anything else.
    """
    now = now or datetime.now(timezone.utc)
    expense_date = expense_date or now.date()
    return {
        "id": _manual_id(now),
        "state": "COMPLETED",
        "spent_amount": {"amount": float(amount), "currency": currency},
        "expense_date": expense_date.isoformat(),
        "category": MANUAL_CATEGORY,
        "merchant": {"category": category},
        "is_manual_entry": True,
    }
