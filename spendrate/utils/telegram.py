"""
Telegram Notification Service
Renders spend analytics as a chart + caption and delivers it through the Bot API
"""
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import requests

from spendrate.core.config import settings
from spendrate.core.errors import NotificationFailure
from spendrate.models.expense import AnalyticsResult, CategoryShare

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
QUICKCHART_URL = "https://quickchart.io/chart"
BOT_TOKEN_PATTERN = re.compile(r"^\d+:[A-Za-z0-9_-]+$")
CHART_DAYS = 14
UPDATE_CALLBACK = "update_now"

CURRENCY_SYMBOLS = {"AUD": "A$", "USD": "$", "EUR": "€", "GBP": "£", "NZD": "NZ$", "CAD": "CA$"}


def format_currency(amount: float, currency: str = "AUD") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{currency} {amount:,.2f}"


def build_chart_url(daily_totals: Dict[str, float], target_daily_rate: float, currency: str) -> str:
    """QuickChart bar chart of the last two weeks of daily totals against the target line."""
    recent = sorted(daily_totals)[-CHART_DAYS:]
    labels = []
    for day in recent:
        _, month, dom = day.split("-")
        labels.append(f"{dom}/{month}")

    chart_config = {
        "type": "bar",
        "data": {
            "labels": labels,
            "datasets": [
                {
                    "label": "Daily Spend",
                    "data": [round(daily_totals[day], 2) for day in recent],
                    "backgroundColor": "rgba(124, 58, 237, 0.8)",
                    "borderRadius": 6,
                },
                {
                    "label": f"Target ({format_currency(target_daily_rate, currency)}/day)",
                    "data": [target_daily_rate] * len(recent),
                    "type": "line",
                    "fill": False,
                    "borderColor": "#F43F5E",
                    "borderDash": [3, 3],
                    "pointRadius": 0,
                },
            ],
        },
        "options": {"scales": {"y": {"beginAtZero": True, "title": {"display": True, "text": currency}}}},
    }
    encoded = quote(json.dumps(chart_config, separators=(",", ":")))
    return f"{QUICKCHART_URL}?c={encoded}&width=600&height=350&devicePixelRatio=2.0&backgroundColor=white"


def format_spend_message(result: AnalyticsResult, target_daily_rate: float, title: str = "DAILY SPEND STATS") -> str:
    cur = result.currency
    if result.target_deviation > 0:
        target_line = (
            f"You need to spend <b>{format_currency(result.target_deviation, cur)}</b> "
            f"to reach the target"
        )
    else:
        target_line = "Target reached for this period"

    lines = [
        f"<b>💰 {title}</b>",
        "",
        f"📊 <b>Period:</b> Last {result.period_days} days",
        f"📈 <b>Daily Rate:</b> {format_currency(result.daily_rate, cur)}",
        f"💵 <b>Total:</b> {format_currency(result.total_amount, cur)}",
        "",
        "<b>📅 AVERAGES</b>",
        f"┌─ 7-Day: {format_currency(result.moving_average_7, cur)}",
        f"└─ 30-Day: {format_currency(result.moving_average_30, cur)}",
        "",
        f"<b>🎯 TARGET ({format_currency(target_daily_rate, cur)}/day)</b>",
        target_line,
    ]
    if result.top_categories:
        lines += ["", "<b>🏷 TOP CATEGORIES</b>"]
        for share in result.top_categories:
            lines.append(f"• {share.category}: {format_currency(share.amount, cur)} ({share.percentage}%)")
    lines += ["", f"<i>Last updated: {datetime.utcnow().strftime('%Y-%m-%d %H:%M')} UTC</i>"]
    return "\n".join(lines)


def sample_spend_data() -> Tuple[AnalyticsResult, Dict[str, float]]:
    """Fixed, made-up analytics and daily totals for checking the chart layout."""
    result = AnalyticsResult(
        daily_rate=150.25,
        total_amount=4507.50,
        period_days=30,
        moving_average_7=143.80,
        moving_average_30=162.15,
        top_categories=[
            CategoryShare("Dining", 1200.0, "26.6"),
            CategoryShare("Travel", 950.0, "21.1"),
            CategoryShare("Office", 750.0, "16.6"),
        ],
        currency="AUD",
        target_deviation=0.0,
    )
    daily_totals = {
        "2023-01-01": 120.0,
        "2023-01-02": 175.0,
        "2023-01-03": 150.0,
        "2023-01-04": 130.0,
        "2023-01-05": 190.0,
        "2023-01-06": 100.0,
        "2023-01-07": 145.0,
    }
    return result, daily_totals


class TelegramNotifier:
    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        target_daily_rate: Optional[float] = None,
        session: Optional[requests.Session] = None,
        timeout_s: float = 15.0,
    ) -> None:
        self.bot_token = bot_token if bot_token is not None else settings.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else settings.TELEGRAM_CHAT_ID
        self.target_daily_rate = target_daily_rate if target_daily_rate is not None else settings.TARGET_DAILY_RATE
        self.session = session or requests.Session()
        self.timeout_s = timeout_s

    def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not BOT_TOKEN_PATTERN.match(self.bot_token or ""):
            raise NotificationFailure("Invalid bot token format, expected '<number>:<string>'")
        try:
            response = self.session.post(
                f"{TELEGRAM_API}/bot{self.bot_token}/{method}",
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise NotificationFailure(f"Telegram {method} failed: {e}") from e
        if not response.ok:
            raise NotificationFailure(f"Telegram {method} failed: {response.text}")
        return response.json()

    def send_message(self, chat_id: str, text: str, **extra) -> Dict[str, Any]:
        payload = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        payload.update(extra)
        return self._call("sendMessage", payload)

    def answer_callback(self, callback_query_id: str, text: str) -> Dict[str, Any]:
        return self._call("answerCallbackQuery", {"callback_query_id": callback_query_id, "text": text})

    def send_spend_update(
        self,
        result: AnalyticsResult,
        daily_totals: Dict[str, float],
        message_id: Optional[int] = None,
        chat_id: Optional[str] = None,
        title: str = "DAILY SPEND STATS",
    ) -> Optional[int]:
        """
        Send the chart with its caption, or edit ``message_id`` in place.
        Returns the Telegram message id, or None when notifications are not configured.
        """
        chat_id = chat_id or self.chat_id
        if not self.bot_token or not chat_id:
            logger.warning("Telegram bot token or chat id not configured. Skipping notification.")
            return None

        chart_url = build_chart_url(daily_totals, self.target_daily_rate, result.currency)
        caption = format_spend_message(result, self.target_daily_rate, title)
        keyboard = {"inline_keyboard": [[{"text": "🔄 Update Now", "callback_data": UPDATE_CALLBACK}]]}

        if message_id:
            response = self._call("editMessageMedia", {
                "chat_id": chat_id,
                "message_id": message_id,
                "media": {"type": "photo", "media": chart_url, "caption": caption, "parse_mode": "HTML"},
                "reply_markup": keyboard,
            })
        else:
            response = self._call("sendPhoto", {
                "chat_id": chat_id,
                "photo": chart_url,
                "caption": caption,
                "parse_mode": "HTML",
                "reply_markup": keyboard,
            })
        logger.info("Telegram spend notification sent")
        result_obj = response.get("result")
        if isinstance(result_obj, dict):
            return result_obj.get("message_id", message_id)
        return message_id
