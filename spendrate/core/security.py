import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from spendrate.core.config import settings


def require_trigger_token(x_trigger_token: Optional[str] = Header(None)) -> None:
    """Guard for endpoints that mutate the ledger. Open when TRIGGER_TOKEN is unset."""
    if not settings.TRIGGER_TOKEN:
        return
    if not x_trigger_token or not hmac.compare_digest(x_trigger_token, settings.TRIGGER_TOKEN):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid trigger token")
