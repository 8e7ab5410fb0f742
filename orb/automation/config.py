"""
YAML configuration loader for the daily batch.

Secrets (webhook URL, bot token) may be supplied through the environment
and take precedence over the file.
"""
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..shared.defaults import (
    DEFAULT_SYMBOL, LOOKBACK_DAYS, MIN_BARS, FETCH_RETRY_DELAY_SECONDS,
)
from ..shared.errors import ConfigError


ENV_DISCORD_WEBHOOK = "ORB_DISCORD_WEBHOOK_URL"
ENV_TELEGRAM_TOKEN = "ORB_TELEGRAM_BOT_TOKEN"
ENV_TELEGRAM_CHAT = "ORB_TELEGRAM_CHAT_ID"


@dataclass
class OrbConfig:
    """Runtime configuration for the daily batch and grader."""
    symbol: str = DEFAULT_SYMBOL
    lookback_days: int = LOOKBACK_DAYS
    min_bars: int = MIN_BARS
    state_dir: str = "state"
    csv_path: Optional[str] = None  # Use a CSV file instead of Yahoo Finance
    fetch_retry_delay_seconds: float = FETCH_RETRY_DELAY_SECONDS

    # Market timing
    timezone: str = "America/New_York"
    market_close_hour: int = 16
    market_close_minute: int = 0
    wait_after_close_minutes: int = 30

    # Alerts
    discord_webhook_url: Optional[str] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # Logging
    log_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def load_config_from_yaml(yaml_path: Union[str, Path], env: Optional[Dict[str, str]] = None) -> OrbConfig:
    """
    Load the Orb configuration from a YAML file.

    Args:
        yaml_path: Path to YAML configuration file
        env: Environment mapping for secret overrides (default: os.environ)

    Returns:
        OrbConfig object

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ConfigError: If YAML is invalid or has the wrong shape
    """
    yaml_path = Path(yaml_path)
    env = os.environ if env is None else env

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    try:
        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {yaml_path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError(f"Config root must be a mapping: {yaml_path}")

    # Extract values from nested structure
    data = config_dict.get('data', {}) or {}
    schedule = config_dict.get('schedule', {}) or {}
    alerts = config_dict.get('alerts', {}) or {}
    state = config_dict.get('state', {}) or {}
    logging_cfg = config_dict.get('logging', {}) or {}

    for name, section in (('data', data), ('schedule', schedule), ('alerts', alerts),
                          ('state', state), ('logging', logging_cfg)):
        if not isinstance(section, dict):
            raise ConfigError(f"Section '{name}' must be a mapping in {yaml_path}")

    try:
        return OrbConfig(
            symbol=str(data.get('symbol', DEFAULT_SYMBOL)),
            lookback_days=int(data.get('lookback_days', LOOKBACK_DAYS)),
            min_bars=int(data.get('min_bars', MIN_BARS)),
            csv_path=data.get('csv_path'),
            fetch_retry_delay_seconds=float(data.get('fetch_retry_delay_seconds', FETCH_RETRY_DELAY_SECONDS)),

            state_dir=str(state.get('dir', 'state')),

            timezone=schedule.get('timezone', 'America/New_York'),
            market_close_hour=int(schedule.get('market_close_hour', 16)),
            market_close_minute=int(schedule.get('market_close_minute', 0)),
            wait_after_close_minutes=int(schedule.get('wait_after_close_minutes', 30)),

            discord_webhook_url=env.get(ENV_DISCORD_WEBHOOK) or alerts.get('discord_webhook_url'),
            telegram_bot_token=env.get(ENV_TELEGRAM_TOKEN) or alerts.get('telegram_bot_token'),
            telegram_chat_id=env.get(ENV_TELEGRAM_CHAT) or alerts.get('telegram_chat_id'),

            log_path=logging_cfg.get('path'),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in {yaml_path}: {e}") from e
