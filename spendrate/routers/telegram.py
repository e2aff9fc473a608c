"""
Telegram Webhook Router
Bot commands: /start, /stats (/update), /test, /add_cash_expense and the "Update now" button
"""
import logging
import math
import re
from datetime import date
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from spendrate.core.errors import SpendRateError
from spendrate.services.daily_spend import (
    add_manual_expense,
    notify,
    process_daily_spend,
    save_last_message_id,
)
from spendrate.services.providers import get_credentials, get_fetcher, get_notifier, get_store
from spendrate.utils.telegram import UPDATE_CALLBACK, format_currency, sample_spend_data

router = APIRouter()
logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
ADD_CASH_COMMAND = "/add_cash_expense"
ADD_CASH_USAGE = (
    "<b>📝 USAGE</b>\n"
    "/add_cash_expense AMOUNT CATEGORY [DATE]\n\n"
    "<b>📋 EXAMPLES</b>\n"
    "/add_cash_expense 25.50 Groceries\n"
    "/add_cash_expense 42 Restaurant 2025-03-15\n\n"
    "<i>DATE is YYYY-MM-DD (optional, defaults to today)</i>"
)


class CommandError(ValueError):
    pass


def parse_add_cash_expense(text: str) -> Optional[Tuple[float, str, Optional[date]]]:
    """
    Parse ``/add_cash_expense AMOUNT CATEGORY [YYYY-MM-DD]``.
    Returns None when arguments are missing; raises CommandError on a bad amount.
    """
    parts = text[len(ADD_CASH_COMMAND):].split()
    if len(parts) < 2:
        return None
    try:
        amount = float(parts[0])
    except ValueError:
        raise CommandError("Invalid amount. Please provide a positive number.")
    if not math.isfinite(amount) or amount <= 0:
        raise CommandError("Invalid amount. Please provide a positive number.")
    expense_date = None
    if len(parts) >= 3 and DATE_PATTERN.match(parts[2]):
        try:
            expense_date = date.fromisoformat(parts[2])
        except ValueError:
            raise CommandError(f"Invalid date {parts[2]}. Use YYYY-MM-DD.")
    return amount, parts[1], expense_date


def handle_start(notifier, chat_id):
    notifier.send_message(
        chat_id,
        f"Welcome to the Daily Spend Rate bot! Your chat ID is: {chat_id}\n\n"
        f"Set TELEGRAM_CHAT_ID to this value to receive daily notifications.",
    )


def handle_stats(store, fetcher, credentials, notifier, chat_id):
    try:
        report = process_daily_spend(store, fetcher, credentials, skip_notification=True)
    except Exception as e:
        logger.error(f"Error generating stats: {str(e)}")
        notifier.send_message(chat_id, f"Error generating spend stats: {str(e)}")
        return
    notify(store, notifier, report, chat_id=str(chat_id))


def handle_test(store, notifier, chat_id):
    try:
        result, daily_totals = sample_spend_data()
        sent_id = notifier.send_spend_update(result, daily_totals, chat_id=str(chat_id), title="TEST SPEND STATS")
        if sent_id:
            save_last_message_id(store, sent_id)
    except Exception as e:
        logger.error(f"Error sending test notification: {str(e)}")
        notifier.send_message(chat_id, f"Error sending test notification: {str(e)}")


def handle_add_cash_expense(store, notifier, chat_id, text):
    try:
        parsed = parse_add_cash_expense(text)
        if parsed is None:
            notifier.send_message(chat_id, "<b>ℹ️ HOW TO ADD CASH EXPENSE</b>\n\n" + ADD_CASH_USAGE)
            return
        amount, category, expense_date = parsed
        entry = add_manual_expense(store, amount, category, expense_date)
    except (CommandError, SpendRateError) as e:
        notifier.send_message(chat_id, f"<b>❌ ERROR</b>\n\n{str(e)}\n\n" + ADD_CASH_USAGE)
        return
    currency = entry["spent_amount"]["currency"]
    notifier.send_message(
        chat_id,
        "<b>✅ EXPENSE ADDED SUCCESSFULLY</b>\n\n"
        f"<b>💰 Amount:</b> {format_currency(amount, currency)}\n"
        f"<b>📂 Category:</b> {category}\n"
        f"<b>📅 Date:</b> {entry['expense_date']}",
    )


def handle_update_callback(store, fetcher, credentials, notifier, callback_query: Dict[str, Any]):
    message = callback_query.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    message_id = message.get("message_id")
    try:
        notifier.answer_callback(callback_query.get("id"), "Updating spend data...")
        report = process_daily_spend(store, fetcher, credentials, skip_notification=True)
        # Without a chat on the callback the notifier falls back to the configured chat
        notify(store, notifier, report, message_id=message_id,
               chat_id=str(chat_id) if chat_id is not None else None)
    except Exception as e:
        logger.error(f"Error updating spend data: {str(e)}")
        if chat_id is None:
            return
        try:
            notifier.send_message(chat_id, f"Error updating spend data: {str(e)}", reply_to_message_id=message_id)
        except SpendRateError as send_error:
            logger.error(f"Error reporting update failure: {str(send_error)}")


def _safe(func, *args):
    # Background tasks must not raise into the server loop
    try:
        func(*args)
    except Exception as e:
        logger.error(f"Telegram handler {func.__name__} failed: {str(e)}")


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    store=Depends(get_store),
    fetcher=Depends(get_fetcher),
    credentials=Depends(get_credentials),
    notifier=Depends(get_notifier),
) -> Dict:
    data = await request.json()

    callback_query = data.get("callback_query")
    if callback_query and callback_query.get("data") == UPDATE_CALLBACK:
        background_tasks.add_task(_safe, handle_update_callback, store, fetcher, credentials, notifier, callback_query)
        return {"status": "Processing callback query"}

    message = data.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    text = (message.get("text") or "").strip()
    if chat_id is not None and text:
        if text == "/start":
            background_tasks.add_task(_safe, handle_start, notifier, chat_id)
            return {"status": "Welcome message sent"}
        if text in ("/stats", "/update"):
            background_tasks.add_task(_safe, handle_stats, store, fetcher, credentials, notifier, chat_id)
            return {"status": "Stats command received"}
        if text == "/test":
            background_tasks.add_task(_safe, handle_test, store, notifier, chat_id)
            return {"status": "Test notification sent"}
        if text == ADD_CASH_COMMAND or text.startswith(ADD_CASH_COMMAND + " "):
            background_tasks.add_task(_safe, handle_add_cash_expense, store, notifier, chat_id, text)
            return {"status": "Cash expense command received"}

    return {"status": "Webhook received"}
