"""
Spend Router
Manual trigger, JSON calculation and read-only status of the spend analytics
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from spendrate.core.errors import SpendRateError
from spendrate.core.security import require_trigger_token
from spendrate.models.expense import AnalyticsResponse
from spendrate.services.daily_spend import current_analytics, get_last_message_id, process_daily_spend
from spendrate.services.providers import get_credentials, get_fetcher, get_notifier, get_store

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/trigger", dependencies=[Depends(require_trigger_token)])
def trigger_calculation(
    skip_notification: bool = False,
    store=Depends(get_store),
    fetcher=Depends(get_fetcher),
    credentials=Depends(get_credentials),
    notifier=Depends(get_notifier),
) -> Dict:
    """
    Run a full sync cycle now and send (or update) the Telegram notification
    unless ``skip_notification`` is set.
    """
    try:
        report = process_daily_spend(
            store,
            fetcher,
            credentials,
            notifier=notifier,
            skip_notification=skip_notification,
            message_id=None if skip_notification else get_last_message_id(store),
        )
        return {
            "success": True,
            "message": "Calculation triggered successfully",
            "new_records": report.new_record_count,
        }
    except Exception as e:
        logger.error(f"Error triggering calculation: {str(e)}", exc_info=not isinstance(e, SpendRateError))
        raise HTTPException(status_code=500, detail=f"Error: {str(e)}")


@router.get("/calculate", response_model=AnalyticsResponse, dependencies=[Depends(require_trigger_token)])
def calculate(
    store=Depends(get_store),
    fetcher=Depends(get_fetcher),
    credentials=Depends(get_credentials),
):
    """Run a sync cycle without notifying and return the analytics as JSON."""
    try:
        report = process_daily_spend(store, fetcher, credentials, skip_notification=True)
    except Exception as e:
        logger.error(f"Error calculating spend rate: {str(e)}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    return {"success": True, "data": report.analytics.to_dict()}


@router.get("/status", response_model=AnalyticsResponse)
def status(store=Depends(get_store)):
    """Analytics of the stored ledger, without contacting the expense feed."""
    try:
        report = current_analytics(store)
    except SpendRateError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "data": report.analytics.to_dict()}


@router.get("/daily-totals")
def daily_totals(store=Depends(get_store)) -> Dict:
    """Raw per-day totals, for charting."""
    try:
        report = current_analytics(store)
    except SpendRateError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {
        "currency": report.analytics.currency,
        "dailyTotals": dict(sorted(report.ledger.daily_totals.items())),
    }
