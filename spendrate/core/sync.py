"""
Sync coordinator: decides which date window to request from the expense
feed, merges the result into the ledger and advances the cursor.

All state comes in as arguments and goes out as return values; loading and
saving is left to ``spendrate.services.daily_spend``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from spendrate.core.ledger import merge
from spendrate.models.expense import Ledger, SyncCycleResult
from spendrate.utils.analyzer import compute_analytics

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 30

__all__ = [
    "CredentialProvider",
    "ExpenseFetcher",
    "FetchWindow",
    "LedgerStore",
    "compute_analytics",
    "fetch_window",
    "run_sync_cycle",
    "sync",
]


class ExpenseFetcher(Protocol):
    def fetch(self, from_date: date, to_date: date, credential: str) -> List[Dict[str, Any]]:
        ...


class CredentialProvider(Protocol):
    def get_valid(self) -> str:
        ...


class LedgerStore(Protocol):
    def load(self) -> Optional[Ledger]:
        ...

    def save(self, ledger: Ledger) -> None:
        ...

    def load_cursor(self) -> Optional[date]:
        ...

    def save_cursor(self, cursor: date) -> None:
        ...


@dataclass(frozen=True)
class FetchWindow:
    from_date: date
    to_date: date


def fetch_window(
    cursor: Optional[date],
    today: date,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
) -> Optional[FetchWindow]:
    """
    Window still to be fetched, or None when the cursor already covers today.
    Without a cursor the window starts ``lookback_days`` before today.
    """
    if cursor is not None:
        from_date = cursor + timedelta(days=1)
    else:
        from_date = today - timedelta(days=lookback_days)
    if from_date > today:
        return None
    return FetchWindow(from_date=from_date, to_date=today)


def _advanced_cursor(cursor: Optional[date], window: FetchWindow, recheck_today: bool) -> date:
    new_cursor = window.to_date - timedelta(days=1) if recheck_today else window.to_date
    if cursor is not None and new_cursor < cursor:
        return cursor
    return new_cursor


def sync(
    cursor: Optional[date],
    credential: str,
    fetcher: ExpenseFetcher,
    today: date,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    recheck_today: bool = False,
) -> Tuple[List[Dict[str, Any]], Optional[date]]:
    """
    Fetch the next window and return ``(records, new_cursor)``.

    The cursor moves to the end of the window after any successful fetch,
    empty or not. Fetch errors propagate as-is and the caller keeps the old
    cursor, so the same window is requested again next time.
    """
    window = fetch_window(cursor, today, lookback_days)
    if window is None:
        logger.info(f"Already up to date (cursor {cursor}), skipping fetch")
        return [], cursor

    logger.info(f"Fetching expenses from {window.from_date} to {window.to_date}")
    records = fetcher.fetch(window.from_date, window.to_date, credential)
    return list(records or []), _advanced_cursor(cursor, window, recheck_today)


def run_sync_cycle(
    ledger: Optional[Ledger],
    cursor: Optional[date],
    fetcher: ExpenseFetcher,
    credentials: CredentialProvider,
    manual_entries: Optional[Iterable[Dict[str, Any]]] = None,
    today: Optional[date] = None,
    lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    recheck_today: bool = False,
) -> SyncCycleResult:
    """Sync the feed, then merge fetched records followed by any manual entries."""
    ledger = ledger or Ledger.empty()
    today = today or date.today()

    fetched: List[Dict[str, Any]] = []
    new_cursor = cursor
    if fetch_window(cursor, today, lookback_days) is not None:
        credential = credentials.get_valid()
        fetched, new_cursor = sync(cursor, credential, fetcher, today, lookback_days, recheck_today)
    else:
        logger.info(f"Already up to date (cursor {cursor}), skipping fetch")
    logger.info(f"Retrieved {len(fetched)} expenses from feed")

    before = len(ledger.records)
    updated = merge(ledger, fetched)
    if manual_entries:
        updated = merge(updated, manual_entries)
    new_count = len(updated.records) - before
    logger.info(f"Merged {new_count} new expenses into ledger ({len(updated.records)} total)")

    return SyncCycleResult(ledger=updated, cursor=new_cursor, new_record_count=new_count)
