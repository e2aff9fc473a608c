"""
Health Check Router
Simple health check endpoint plus a state store / scheduler status report
"""
from fastapi import APIRouter, Depends
from datetime import datetime
import logging

from spendrate.core.config import settings
from spendrate.services.providers import get_store
from spendrate.utils.scheduler import get_scheduler_status

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/status")
def service_status(store=Depends(get_store)):
    """
    Check the state store and the scheduler:
    - State store (ledger size and sync cursor)
    - Scheduler (daily sync job)
    """
    status = {
        "timestamp": datetime.utcnow().isoformat(),
        "services": {}
    }

    store_status = {
        "connected": False,
        "backend": settings.STATE_BACKEND,
        "error": None
    }
    try:
        ledger = store.load()
        cursor = store.load_cursor()
        store_status["connected"] = True
        store_status["records"] = len(ledger.records) if ledger else 0
        store_status["last_processed_date"] = cursor.isoformat() if cursor else None
    except Exception as e:
        store_status["error"] = str(e)
        logger.error(f"State store check failed: {str(e)}")

    status["services"]["state_store"] = store_status
    status["services"]["scheduler"] = get_scheduler_status()
    status["overall_status"] = "healthy" if store_status["connected"] else "degraded"

    return status
