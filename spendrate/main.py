from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from spendrate.core.config import settings
from spendrate.core.logging_config import configure_logging
from spendrate.routers import expenses, health, spend, telegram
from spendrate.services.providers import close_http_session
from spendrate.utils.scheduler import start_scheduler, stop_scheduler

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Start the scheduler
    if settings.SCHEDULER_ENABLED:
        logger.info("Starting scheduler...")
        start_scheduler()
    yield
    # Shutdown: Stop the scheduler
    if settings.SCHEDULER_ENABLED:
        logger.info("Stopping scheduler...")
        stop_scheduler()
    close_http_session()


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan
)


# Root endpoint
@app.get("/")
def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


# Register routers
app.include_router(health.router, prefix=f"{settings.API_PREFIX}", tags=["Health"])  # /api/health
app.include_router(spend.router, prefix=f"{settings.API_PREFIX}/spend", tags=["Spend"])
app.include_router(expenses.router, prefix=f"{settings.API_PREFIX}/expenses", tags=["Expenses"])
app.include_router(telegram.router, prefix=f"{settings.API_PREFIX}/telegram", tags=["Telegram"])
