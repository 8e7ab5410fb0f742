"""
Tests for alert sinks.
"""
from unittest.mock import MagicMock, patch

import requests

from orb.automation.alerts import (
    COLOR_AVOID,
    COLOR_BUY,
    COLOR_NEUTRAL,
    DiscordAlertSink,
    LoggingAlertSink,
    LoggingOperatorSink,
    TelegramOperatorSink,
    build_alert_sinks,
)
from orb.automation.state import SignalLogEntry
from orb.setups.catalog import SETUP_REGISTRY


def make_entry(event_type="activated", setup_id="goldilocks"):
    return SignalLogEntry(
        setup_id=setup_id,
        event_type=event_type,
        event_date="2024-03-01",
        event_price=201.5,
        previous_status="watching",
        new_status="active" if event_type == "activated" else "inactive",
        indicator_snapshot={"bx_daily_state": "HH", "bx_weekly_state": "HL", "rsi": 55.2, "smi": 12.0},
        notes="GOLDILOCKS",
    )


class TestDiscordAlertSink:
    @patch('orb.automation.alerts.requests.post')
    def test_buy_activation_embed(self, mock_post):
        mock_post.return_value = MagicMock()
        sink = DiscordAlertSink("https://discord.example/webhook")

        assert sink.send_setup_alert(make_entry(), SETUP_REGISTRY["goldilocks"])

        url = mock_post.call_args[0][0]
        embed = mock_post.call_args[1]['json']['embeds'][0]
        assert url == "https://discord.example/webhook"
        assert embed['title'] == "goldilocks ACTIVATED"
        assert embed['color'] == COLOR_BUY
        names = [f['name'] for f in embed['fields']]
        assert names == ["Price", "Side", "Daily BX", "Weekly BX", "RSI", "SMI"]

    @patch('orb.automation.alerts.requests.post')
    def test_colors(self, mock_post):
        sink = DiscordAlertSink("https://discord.example/webhook")

        sink.send_setup_alert(make_entry(setup_id="dual-ll"), SETUP_REGISTRY["dual-ll"])
        assert mock_post.call_args[1]['json']['embeds'][0]['color'] == COLOR_AVOID

        sink.send_setup_alert(make_entry("deactivated"), SETUP_REGISTRY["goldilocks"])
        assert mock_post.call_args[1]['json']['embeds'][0]['color'] == COLOR_NEUTRAL

    @patch('orb.automation.alerts.requests.post')
    def test_delivery_failure_returns_false(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("down")
        sink = DiscordAlertSink("https://discord.example/webhook")

        assert sink.send_zone_alert("2024-03-01", "NEUTRAL", "CAUTION", -0.2, "msg") is False

    @patch('orb.automation.alerts.requests.post')
    def test_http_error_returns_false(self, mock_post):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500")
        mock_post.return_value = response

        sink = DiscordAlertSink("https://discord.example/webhook")
        assert sink.send_setup_alert(make_entry(), SETUP_REGISTRY["goldilocks"]) is False


class TestTelegramOperatorSink:
    @patch('orb.automation.alerts.requests.post')
    def test_send_failure(self, mock_post):
        sink = TelegramOperatorSink("TOKEN", "42")

        assert sink.send_failure("PriceFetchError", "no data")

        url = mock_post.call_args[0][0]
        payload = mock_post.call_args[1]['json']
        assert url == "https://api.telegram.org/botTOKEN/sendMessage"
        assert payload['chat_id'] == "42"
        assert "PriceFetchError" in payload['text']


class TestBuildAlertSinks:
    def test_logging_fallback(self):
        alert_sink, operator_sink = build_alert_sinks()
        assert isinstance(alert_sink, LoggingAlertSink)
        assert isinstance(operator_sink, LoggingOperatorSink)

    def test_configured(self):
        alert_sink, operator_sink = build_alert_sinks("https://discord.example/webhook", "TOKEN", "42")
        assert isinstance(alert_sink, DiscordAlertSink)
        assert isinstance(operator_sink, TelegramOperatorSink)

    def test_telegram_needs_chat_id(self):
        _, operator_sink = build_alert_sinks(telegram_bot_token="TOKEN")
        assert isinstance(operator_sink, LoggingOperatorSink)

    def test_logging_sinks_deliver(self):
        assert LoggingAlertSink().send_setup_alert(make_entry(), SETUP_REGISTRY["goldilocks"])
        assert LoggingOperatorSink().send_failure("t", "d")
