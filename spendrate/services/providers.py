"""
Default collaborators for the spend cycle, shared by the routers (as
FastAPI dependencies) and the scheduler job.
"""
from typing import Optional

import requests

from spendrate.clients.revolut import RevolutClient, RevolutTokenProvider
from spendrate.db.dynamo import get_state_store
from spendrate.utils.telegram import TelegramNotifier

_session: Optional[requests.Session] = None


def get_http_session() -> requests.Session:
    """One pooled HTTP session per process for the Revolut and Telegram calls."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def close_http_session() -> None:
    global _session
    if _session is not None:
        _session.close()
        _session = None


def get_store():
    return get_state_store()


def get_fetcher() -> RevolutClient:
    return RevolutClient(session=get_http_session())


def get_credentials() -> RevolutTokenProvider:
    return RevolutTokenProvider(get_state_store(), session=get_http_session())


def get_notifier() -> TelegramNotifier:
    return TelegramNotifier(session=get_http_session())
