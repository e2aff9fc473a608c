"""
Daily Spend Service
Runs one sync -> merge -> persist -> analyze -> notify cycle against the state store
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, Optional

from spendrate.core.config import settings
from spendrate.core.ledger import merge, new_manual_entry
from spendrate.core.sync import compute_analytics, run_sync_cycle
from spendrate.db.dynamo import TELEGRAM_STATE_KEY
from spendrate.models.expense import AnalyticsResult, Ledger

logger = logging.getLogger(__name__)


@dataclass
class SpendReport:
    analytics: AnalyticsResult
    ledger: Ledger
    new_record_count: int = 0
    message_id: Optional[int] = None


def _analyze(ledger: Ledger) -> AnalyticsResult:
    return compute_analytics(ledger, settings.TARGET_DAILY_RATE, settings.DEFAULT_CURRENCY)


def get_last_message_id(store) -> Optional[int]:
    state = store.get_value(TELEGRAM_STATE_KEY) or {}
    return state.get("last_message_id")


def save_last_message_id(store, message_id: int) -> None:
    state = store.get_value(TELEGRAM_STATE_KEY) or {}
    state["last_message_id"] = message_id
    store.put_value(TELEGRAM_STATE_KEY, state)


def notify(store, notifier, report: SpendReport, message_id: Optional[int] = None,
           chat_id: Optional[str] = None) -> Optional[int]:
    """Deliver the report. Failures are logged and swallowed; persisted state is already final."""
    try:
        sent_id = notifier.send_spend_update(
            report.analytics,
            report.ledger.daily_totals,
            message_id=message_id,
            chat_id=chat_id,
        )
        if sent_id:
            save_last_message_id(store, sent_id)
        return sent_id
    except Exception as e:
        logger.error(f"Error sending notification: {str(e)}")
        return None


def process_daily_spend(
    store,
    fetcher,
    credentials,
    notifier=None,
    manual_entries: Optional[Iterable[Dict[str, Any]]] = None,
    today: Optional[date] = None,
    skip_notification: bool = False,
    message_id: Optional[int] = None,
) -> SpendReport:
    """
    Sync new expenses into the stored ledger and compute analytics.

    The ledger is saved before the cursor: if the cursor write fails the next
    run re-fetches the same window and the merge drops the duplicates.
    """
    logger.info("Starting daily spend rate calculation...")
    try:
        ledger = store.load()
        cursor = store.load_cursor()

        cycle = run_sync_cycle(
            ledger,
            cursor,
            fetcher,
            credentials,
            manual_entries=manual_entries,
            today=today,
            lookback_days=settings.LOOKBACK_DAYS,
            recheck_today=settings.RECHECK_TODAY,
        )

        store.save(cycle.ledger)
        if cycle.cursor is not None and cycle.cursor != cursor:
            store.save_cursor(cycle.cursor)
    except Exception as e:
        logger.error(f"Error processing daily spend rate: {str(e)}")
        raise

    report = SpendReport(
        analytics=_analyze(cycle.ledger),
        ledger=cycle.ledger,
        new_record_count=cycle.new_record_count,
    )
    logger.info(
        f"Daily rate {report.analytics.daily_rate:.2f} {report.analytics.currency} "
        f"over {report.analytics.period_days} days"
    )

    if notifier is not None and not skip_notification:
        report.message_id = notify(store, notifier, report, message_id=message_id)
    return report


def add_manual_expense(
    store,
    amount: float,
    category: str,
    expense_date: Optional[date] = None,
    currency: Optional[str] = None,
) -> Dict[str, Any]:
    """Record a cash expense. Goes through the same merge as feed records; the cursor is untouched."""
    ledger = store.load() or Ledger.empty()
    entry = new_manual_entry(
        amount,
        category,
        expense_date,
        currency or ledger.currency or settings.DEFAULT_CURRENCY,
    )
    store.save(merge(ledger, [entry]))
    logger.info(f"Added manual expense {entry['id']}: {amount} {category} on {entry['expense_date']}")
    return entry


def current_analytics(store) -> SpendReport:
    """Analytics of the persisted ledger without syncing."""
    ledger = store.load() or Ledger.empty()
    return SpendReport(analytics=_analyze(ledger), ledger=ledger)
