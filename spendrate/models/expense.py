from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

UNCATEGORIZED = "Uncategorized"
ORIGIN_FEED = "feed"
ORIGIN_MANUAL = "manual"


# Accessors over the persisted record shape:
# {id, state?, spent_amount: {amount, currency}, expense_date?, created_at?,
#  category?, merchant?: {category?} | str, is_manual_entry?}

def record_amount(record: Dict[str, Any]) -> Optional[float]:
    """
    Absolute spend of a record, or None when the amount is not a finite number.
    Refunds count as spend of the same magnitude.
    """
    spent = record.get("spent_amount")
    if not isinstance(spent, dict):
        return None
    amount = spent.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        return None
    amount = float(amount)
    if not math.isfinite(amount):
        return None
    return abs(amount)


def record_currency(record: Dict[str, Any]) -> Optional[str]:
    spent = record.get("spent_amount")
    if isinstance(spent, dict) and spent.get("currency"):
        return str(spent["currency"])
    return None


def _parse_day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def record_date(record: Dict[str, Any]) -> Optional[date]:
    """Calendar (UTC) date a record is attributed to: expense date, else creation time."""
    return _parse_day(record.get("expense_date") or record.get("created_at"))


def record_category(record: Dict[str, Any]) -> str:
    merchant = record.get("merchant")
    if isinstance(merchant, dict) and merchant.get("category"):
        return str(merchant["category"])
    if record.get("category"):
        return str(record["category"])
    if isinstance(merchant, str) and merchant:
        return merchant
    return UNCATEGORIZED


def record_origin(record: Dict[str, Any]) -> str:
    return ORIGIN_MANUAL if record.get("is_manual_entry") else ORIGIN_FEED


@dataclass
class Ledger:
    """All known expense records plus their per-day totals (ISO date -> amount)."""

    records: List[Dict[str, Any]] = field(default_factory=list)
    daily_totals: Dict[str, float] = field(default_factory=dict)
    currency: Optional[str] = None

    @classmethod
    def empty(cls) -> "Ledger":
        return cls()

    def record_ids(self) -> set:
        return {rec.get("id") for rec in self.records if rec.get("id") is not None}

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "records": list(self.records),
            "dailyTotals": dict(self.daily_totals),
        }
        if self.currency:
            data["currency"] = self.currency
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Ledger":
        if not data:
            return cls()
        # First deployments persisted {"expenses": [...], "dailyRates": {...}}
        records = data.get("records", data.get("expenses")) or []
        totals = data.get("dailyTotals", data.get("dailyRates")) or {}
        currency = data.get("currency")
        if not currency:
            currency = next(
                (record_currency(rec) for rec in records
                 if record_origin(rec) == ORIGIN_FEED and record_amount(rec) is not None and record_currency(rec)),
                None,
            )
        return cls(
            records=list(records),
            daily_totals={str(day): float(amount) for day, amount in totals.items()},
            currency=currency,
        )


@dataclass
class CategoryShare:
    category: str
    amount: float
    percentage: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalyticsResult:
    """Spend metrics derived from a ledger. Recomputed on every call, never persisted."""

    daily_rate: float
    total_amount: float
    period_days: int
    moving_average_7: float
    moving_average_30: float
    top_categories: List[CategoryShare]
    currency: str
    target_deviation: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dailyRate": self.daily_rate,
            "totalAmount": self.total_amount,
            "movingAverage7Day": self.moving_average_7,
            "movingAverage30Day": self.moving_average_30,
            "periodDays": self.period_days,
            "topCategories": [share.to_dict() for share in self.top_categories],
            "currency": self.currency,
            "targetSpendAmount": self.target_deviation,
        }


@dataclass
class SyncCycleResult:
    ledger: Ledger
    cursor: Optional[date]
    new_record_count: int


class ManualExpenseCreate(BaseModel):
    amount: float = Field(gt=0, allow_inf_nan=False)
    category: str = Field(min_length=1)
    expense_date: Optional[date] = None


class CategoryShareOut(BaseModel):
    category: str
    amount: float
    percentage: str


class AnalyticsOut(BaseModel):
    dailyRate: float
    totalAmount: float
    movingAverage7Day: float
    movingAverage30Day: float
    periodDays: int
    topCategories: List[CategoryShareOut]
    currency: str
    targetSpendAmount: float


class AnalyticsResponse(BaseModel):
    success: bool = True
    data: AnalyticsOut
