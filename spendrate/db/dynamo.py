"""
State storage for the ledger, the sync cursor and feed credentials.

Each logical key is one independent item; there is no cross-key
transaction. Callers save the ledger before the cursor so that a failure
in between only causes a re-fetch, which the merge absorbs.
"""
import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from spendrate.core.config import settings
from spendrate.core.errors import PersistenceFailure
from spendrate.models.expense import Ledger

logger = logging.getLogger(__name__)

PARTITION_KEY = "state_key"
LEDGER_KEY = "ledger"
CURSOR_KEY = "cursor"
CREDENTIALS_KEY = "credentials"
TELEGRAM_STATE_KEY = "telegram_state"


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, float):
        # DynamoDB has no NaN/Infinity; such amounts are invalid anyway
        if not math.isfinite(obj):
            return str(obj)
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj


def _parse_cursor(value: Any) -> Optional[date]:
    # Older deployments stored a full ISO timestamp
    if not value:
        return None
    text = str(value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.warning(f"Ignoring unreadable sync cursor {text!r}")
        return None


class DynamoStateStore:
    """Key-value state on a single DynamoDB table keyed by ``state_key``."""

    def __init__(self, table=None):
        if table is None:
            dynamodb = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)
            table = dynamodb.Table(settings.DYNAMO_STATE_TABLE)
        self.table = table

    def get_value(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.get_item(Key={PARTITION_KEY: key})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"get_value({key}) failed: {e}")
            raise PersistenceFailure(f"Failed to read {key}: {e}") from e
        item = response.get("Item")
        if not item:
            return None
        item = _from_dynamo(item)
        item.pop(PARTITION_KEY, None)
        return item

    def put_value(self, key: str, value: Dict[str, Any]) -> None:
        item = dict(value)
        item[PARTITION_KEY] = key
        try:
            self.table.put_item(Item=_convert_for_dynamo(item))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"put_value({key}) failed: {e}")
            raise PersistenceFailure(f"Failed to write {key}: {e}") from e

    def load(self) -> Optional[Ledger]:
        data = self.get_value(LEDGER_KEY)
        return Ledger.from_dict(data) if data else None

    def save(self, ledger: Ledger) -> None:
        self.put_value(LEDGER_KEY, ledger.to_dict())

    def load_cursor(self) -> Optional[date]:
        data = self.get_value(CURSOR_KEY)
        return _parse_cursor(data.get("last_date")) if data else None

    def save_cursor(self, cursor: date) -> None:
        self.put_value(CURSOR_KEY, {
            "last_date": cursor.isoformat(),
            "updated_at": datetime.utcnow().isoformat(),
        })

    def load_credentials(self) -> Dict[str, Any]:
        return self.get_value(CREDENTIALS_KEY) or {}

    def save_credentials(self, credentials: Dict[str, Any]) -> None:
        self.put_value(CREDENTIALS_KEY, credentials)


class InMemoryStateStore(DynamoStateStore):
    """Process-local store with the same surface, for local runs and tests."""

    def __init__(self):
        self._items: Dict[str, Dict[str, Any]] = {}

    def get_value(self, key: str) -> Optional[Dict[str, Any]]:
        item = self._items.get(key)
        return _from_dynamo(item) if item else None

    def put_value(self, key: str, value: Dict[str, Any]) -> None:
        self._items[key] = _convert_for_dynamo(dict(value))


_store = None


def get_state_store():
    """Configured store, created once per process."""
    global _store
    if _store is None:
        if settings.STATE_BACKEND == "memory":
            logger.info("Using in-memory state store")
            _store = InMemoryStateStore()
        else:
            logger.info(f"Using DynamoDB state table {settings.DYNAMO_STATE_TABLE}")
            _store = DynamoStateStore()
    return _store
