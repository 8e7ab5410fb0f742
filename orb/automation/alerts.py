"""
Alert sinks.

Outbound alerts (setup activations/deactivations and defensive zone
transitions) go to a Discord webhook; operator alerts (fatal batch
failures) go to Telegram. Both fall back to logging when unconfigured.
Delivery failures are logged and never interrupt the batch.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import requests

from ..setups.types import SetupDefinition
from ..shared.types import EventType, SetupSide
from .state import SignalLogEntry


logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"

# Discord embed colors
COLOR_BUY = 0x22C55E
COLOR_AVOID = 0xEF4444
COLOR_NEUTRAL = 0x71717A
COLOR_ZONE = 0xEAB308


class AlertSink(ABC):
    """Destination for per-setup and zone alerts."""

    @abstractmethod
    def send_setup_alert(self, entry: SignalLogEntry, definition: SetupDefinition) -> bool:
        """
        Announce a setup activation or deactivation.

        Returns:
            True if delivered
        """
        pass

    @abstractmethod
    def send_zone_alert(self, date: str, prev_zone: str, new_zone: str, score: float, message: str) -> bool:
        """
        Announce a move to a more defensive zone.

        Returns:
            True if delivered
        """
        pass


class OperatorAlertSink(ABC):
    """Higher-urgency channel for fatal batch failures."""

    @abstractmethod
    def send_failure(self, title: str, detail: str) -> bool:
        pass


class LoggingAlertSink(AlertSink):
    """Writes alerts to the log only."""

    def send_setup_alert(self, entry: SignalLogEntry, definition: SetupDefinition) -> bool:
        logger.info(
            f"[alert] {entry.setup_id} {entry.event_type} on {entry.event_date} "
            f"at {entry.event_price:.2f}: {entry.notes}"
        )
        return True

    def send_zone_alert(self, date: str, prev_zone: str, new_zone: str, score: float, message: str) -> bool:
        logger.info(f"[alert] Zone {prev_zone} -> {new_zone} on {date} (score {score:+.3f}): {message}")
        return True


class LoggingOperatorSink(OperatorAlertSink):
    """Writes operator alerts to the log only."""

    def send_failure(self, title: str, detail: str) -> bool:
        logger.error(f"[operator] {title}: {detail}")
        return True


def _post_json(url: str, payload: Dict[str, Any], timeout: float) -> bool:
    try:
        resp = requests.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
        return True
    except requests.RequestException as e:
        logger.error(f"Alert delivery failed: {e}")
        return False


class DiscordAlertSink(AlertSink):
    """Posts alert embeds to a Discord webhook."""

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def _setup_embed(self, entry: SignalLogEntry, definition: SetupDefinition) -> Dict[str, Any]:
        activated = entry.event_type == EventType.ACTIVATED.value
        side = definition.side.value.upper()

        if not activated:
            color = COLOR_NEUTRAL
        elif definition.side == SetupSide.BUY:
            color = COLOR_BUY
        else:
            color = COLOR_AVOID

        snapshot = entry.indicator_snapshot or {}
        embed_fields = [
            {"name": "Price", "value": f"${entry.event_price:.2f}", "inline": True},
            {"name": "Side", "value": side, "inline": True},
        ]
        for key, label in (("bx_daily_state", "Daily BX"), ("bx_weekly_state", "Weekly BX")):
            if key in snapshot:
                embed_fields.append({"name": label, "value": str(snapshot[key]), "inline": True})
        for key, label in (("rsi", "RSI"), ("smi", "SMI")):
            if snapshot.get(key) is not None:
                embed_fields.append({"name": label, "value": f"{snapshot[key]:.1f}", "inline": True})

        return {
            "title": f"{definition.setup_id} {'ACTIVATED' if activated else 'DEACTIVATED'}",
            "description": entry.notes,
            "color": color,
            "fields": embed_fields,
            "footer": {"text": entry.event_date},
        }

    def send_setup_alert(self, entry: SignalLogEntry, definition: SetupDefinition) -> bool:
        payload = {"embeds": [self._setup_embed(entry, definition)]}
        return _post_json(self.webhook_url, payload, self.timeout)

    def send_zone_alert(self, date: str, prev_zone: str, new_zone: str, score: float, message: str) -> bool:
        payload = {
            "embeds": [{
                "title": f"Orb zone: {prev_zone} -> {new_zone}",
                "description": message,
                "color": COLOR_ZONE,
                "fields": [{"name": "Score", "value": f"{score:+.3f}", "inline": True}],
                "footer": {"text": date},
            }]
        }
        return _post_json(self.webhook_url, payload, self.timeout)


class TelegramOperatorSink(OperatorAlertSink):
    """Sends operator alerts through the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 10.0):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout

    def send_failure(self, title: str, detail: str) -> bool:
        payload = {
            "chat_id": self.chat_id,
            "text": f"ORB FAILURE: {title}\n{detail}",
            "disable_web_page_preview": True,
        }
        return _post_json(TELEGRAM_API_URL.format(token=self.bot_token), payload, self.timeout)


def build_alert_sinks(
    discord_webhook_url: Optional[str] = None,
    telegram_bot_token: Optional[str] = None,
    telegram_chat_id: Optional[str] = None,
) -> Tuple[AlertSink, OperatorAlertSink]:
    """Pick webhook sinks where credentials exist, logging sinks otherwise."""
    if discord_webhook_url:
        alert_sink: AlertSink = DiscordAlertSink(discord_webhook_url)
    else:
        logger.info("No Discord webhook configured, alerts go to the log")
        alert_sink = LoggingAlertSink()

    if telegram_bot_token and telegram_chat_id:
        operator_sink: OperatorAlertSink = TelegramOperatorSink(telegram_bot_token, telegram_chat_id)
    else:
        logger.info("No Telegram bot configured, operator alerts go to the log")
        operator_sink = LoggingOperatorSink()

    return alert_sink, operator_sink
