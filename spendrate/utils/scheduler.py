"""
Scheduler Service
Runs the daily spend sync as a cron job using APScheduler
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from spendrate.core.config import settings
from spendrate.services import providers
from spendrate.services.daily_spend import get_last_message_id, process_daily_spend

logger = logging.getLogger(__name__)

DAILY_SYNC_JOB_ID = "daily_spend_sync"

# Scheduler instance (exported for the status endpoint)
scheduler: BackgroundScheduler = None


def daily_spend_job():
    """Job function: sync, persist and notify. Errors are logged, the next run retries."""
    logger.info("Executing daily spend sync job...")
    try:
        store = providers.get_store()
        report = process_daily_spend(
            store,
            providers.get_fetcher(),
            providers.get_credentials(),
            notifier=providers.get_notifier(),
            message_id=get_last_message_id(store),
        )
        logger.info(f"Daily spend sync job completed: {report.new_record_count} new expenses")
        return {"success": True, "new_records": report.new_record_count}
    except Exception as e:
        logger.error(f"Error in daily spend sync job: {str(e)}")
        return {"success": False, "error": str(e)}


def start_scheduler():
    """Start the background scheduler with the daily sync job"""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler is already running")
        return

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        daily_spend_job,
        trigger=CronTrigger(hour=settings.SYNC_CRON_HOUR, minute=settings.SYNC_CRON_MINUTE),
        id=DAILY_SYNC_JOB_ID,
        name="Daily Spend Sync",
        replace_existing=True,
        # One cycle at a time; overlapping runs would race on the ledger write
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started: daily sync at {settings.SYNC_CRON_HOUR:02d}:{settings.SYNC_CRON_MINUTE:02d} UTC"
    )


def stop_scheduler():
    """Stop the background scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status():
    """Get current scheduler status"""
    if scheduler is None:
        return {"running": False}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None
        })

    return {
        "running": scheduler.running,
        "jobs": jobs
    }
