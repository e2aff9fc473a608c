from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from spendrate.core.ledger import counted_amount
from spendrate.models.expense import (
    AnalyticsResult,
    CategoryShare,
    Ledger,
    record_category,
    record_currency,
    record_date,
)


class SpendAnalyzer:
    """
    Derives spend-rate analytics from a ledger. Every call recomputes from the
    full ledger; nothing is cached or mutated.
    """

    def __init__(
        self,
        target_daily_rate: float = 150.0,
        default_currency: str = "AUD",
        top_n: int = 5,
    ) -> None:
        self._target_daily_rate = target_daily_rate
        self._default_currency = default_currency
        self._top_n = top_n

    @staticmethod
    def valid_expenses(ledger: Ledger) -> List[Tuple[Dict[str, Any], float]]:
        """Records that count towards the totals, paired with their absolute amount."""
        valid = []
        for rec in ledger.records:
            amount = counted_amount(rec, ledger.currency)
            if amount is not None:
                valid.append((rec, amount))
        return valid

    def total_amount(self, ledger: Ledger) -> float:
        return sum(amount for _, amount in self.valid_expenses(ledger))

    def period_days(self, ledger: Ledger) -> int:
        """
        Inclusive number of calendar days between the oldest and newest valid
        record. An empty ledger spans a single day.
        """
        dates = [record_date(rec) for rec, _ in self.valid_expenses(ledger)]
        if not dates:
            return 1
        return max(1, (max(dates) - min(dates)).days + 1)

    @staticmethod
    def moving_average(daily_totals: Dict[str, float], window: int) -> float:
        """
        Mean of the last ``window`` dates that have a total. Days without spend
        are absent from the mapping and are not padded with zeros.
        """
        days = sorted(daily_totals)
        if not days:
            return 0.0
        recent = days[-window:]
        return sum(daily_totals[day] for day in recent) / len(recent)

    def category_totals(self, ledger: Ledger) -> Dict[str, float]:
        totals: Dict[str, float] = defaultdict(float)
        for rec, amount in self.valid_expenses(ledger):
            totals[record_category(rec)] += amount
        return dict(totals)

    def top_categories(self, ledger: Ledger, total: Optional[float] = None) -> List[CategoryShare]:
        if total is None:
            total = self.total_amount(ledger)
        ranked = sorted(self.category_totals(ledger).items(), key=lambda item: (-item[1], item[0]))
        return [
            CategoryShare(
                category=category,
                amount=amount,
                percentage=f"{amount / total * 100:.1f}" if total > 0 else "0.0",
            )
            for category, amount in ranked[: self._top_n]
        ]

    def currency(self, ledger: Ledger) -> str:
        if ledger.currency:
            return ledger.currency
        for rec, _ in self.valid_expenses(ledger):
            if record_currency(rec):
                return record_currency(rec)
        return self._default_currency

    def target_deviation(self, total: float, period_days: int, target_daily_rate: Optional[float] = None) -> float:
        """Shortfall against the target for the period; 0 once the target is met."""
        target = self._target_daily_rate if target_daily_rate is None else target_daily_rate
        return max(0.0, target * period_days - total)

    def analyze(self, ledger: Ledger, target_daily_rate: Optional[float] = None) -> AnalyticsResult:
        total = self.total_amount(ledger)
        period = self.period_days(ledger)
        return AnalyticsResult(
            daily_rate=total / period,
            total_amount=total,
            period_days=period,
            moving_average_7=self.moving_average(ledger.daily_totals, 7),
            moving_average_30=self.moving_average(ledger.daily_totals, 30),
            top_categories=self.top_categories(ledger, total),
            currency=self.currency(ledger),
            target_deviation=self.target_deviation(total, period, target_daily_rate),
        )


def compute_analytics(
    ledger: Ledger,
    target_daily_rate: float,
    default_currency: str = "AUD",
) -> AnalyticsResult:
    return SpendAnalyzer(target_daily_rate=target_daily_rate, default_currency=default_currency).analyze(ledger)
