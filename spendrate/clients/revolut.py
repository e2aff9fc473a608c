"""
Revolut Business API client
Fetches expenses for a date range and keeps an access token fresh
"""
import logging
import time
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from spendrate.core.config import settings
from spendrate.core.errors import AuthorizationFailure, TransportFailure

logger = logging.getLogger(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
# Stored tokens are treated as expired this long before the server says so
EXPIRY_MARGIN_SECONDS = 5 * 60


class RevolutClient:
    """Remote expense feed: ``fetch(from_date, to_date, credential)``."""

    def __init__(
        self,
        api_base: Optional[str] = None,
        timeout_s: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_base = (api_base or settings.REVOLUT_API_BASE).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.REVOLUT_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def fetch(self, from_date: date, to_date: date, credential: str) -> List[Dict[str, Any]]:
        params = {"from": from_date.isoformat(), "to": to_date.isoformat()}
        try:
            response = self.session.get(
                f"{self.api_base}/expenses",
                params=params,
                headers={"Authorization": f"Bearer {credential}"},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.error(f"Expense request failed: {e}")
            raise TransportFailure(f"Failed to get expenses: {e}") from e

        if response.status_code in (401, 403):
            raise AuthorizationFailure(
                f"Expense request unauthorized: {response.text}",
                status_code=response.status_code,
            )
        if not response.ok:
            raise TransportFailure(
                f"Failed to get expenses: {response.text}",
                status_code=response.status_code,
            )

        expenses = response.json()
        if not isinstance(expenses, list):
            raise TransportFailure("Unexpected expenses payload: expected a JSON list")
        logger.info(f"Fetched {len(expenses)} expenses for {params['from']}..{params['to']}")
        return expenses


class RevolutTokenProvider:
    """
    Supplies a valid bearer token, refreshing it through the OAuth
    refresh-token grant when the stored one is missing or expired.

    The signed client assertion is produced elsewhere and passed in.
    """

    def __init__(
        self,
        store,
        client_assertion: Optional[str] = None,
        initial_refresh_token: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout_s: Optional[float] = None,
        session: Optional[requests.Session] = None,
        clock=time.time,
    ) -> None:
        self.store = store
        self.client_assertion = client_assertion if client_assertion is not None else settings.REVOLUT_CLIENT_ASSERTION
        self.initial_refresh_token = (
            initial_refresh_token if initial_refresh_token is not None else settings.REVOLUT_INITIAL_REFRESH_TOKEN
        )
        self.api_base = (api_base or settings.REVOLUT_API_BASE).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.REVOLUT_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self._clock = clock

    def get_valid(self) -> str:
        stored = self.store.load_credentials()
        token = stored.get("token")
        expiry = stored.get("expiry")
        if token and expiry and self._clock() < float(expiry):
            return token
        logger.info("Refreshing Revolut access token...")
        return self.refresh(stored)

    def refresh(self, stored: Optional[Dict[str, Any]] = None) -> str:
        stored = stored if stored is not None else self.store.load_credentials()
        refresh_token = stored.get("refresh_token") or self.initial_refresh_token
        if not refresh_token:
            raise AuthorizationFailure(
                "No refresh token available. Please provide REVOLUT_INITIAL_REFRESH_TOKEN."
            )

        try:
            response = self.session.post(
                f"{self.api_base}/auth/token",
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_assertion_type": CLIENT_ASSERTION_TYPE,
                    "client_assertion": self.client_assertion,
                },
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            logger.error(f"Token refresh request failed: {e}")
            raise TransportFailure(f"Token refresh failed: {e}") from e

        if not response.ok:
            raise AuthorizationFailure(
                f"Token refresh failed: {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        expiry = self._clock() + float(data.get("expires_in", 0)) - EXPIRY_MARGIN_SECONDS
        credentials = {
            "token": data["access_token"],
            "expiry": expiry,
            # Some responses rotate the refresh token
            "refresh_token": data.get("refresh_token") or refresh_token,
        }
        self.store.save_credentials(credentials)
        return credentials["token"]
