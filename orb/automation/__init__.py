"""
Daily batch automation.

Provides:
- DailyOrchestrator: the once-per-trading-day pass
- TradeLedger: trade lifecycle per setup activation
- OrbStateStore: JSON persistence
- Alert sinks, configuration and the trading calendar
"""
from .alerts import (
    AlertSink,
    OperatorAlertSink,
    LoggingAlertSink,
    LoggingOperatorSink,
    DiscordAlertSink,
    TelegramOperatorSink,
    build_alert_sinks,
)
from .config import OrbConfig, load_config_from_yaml
from .ledger import TradeLedger
from .orchestrator import DailyOrchestrator, RunResult
from .scheduler import Scheduler
from .state import (
    OrbStateStore,
    SetupState,
    SignalLogEntry,
    DailySnapshot,
    Trade,
    DailyIndicatorRecord,
)

__all__ = [
    'AlertSink',
    'OperatorAlertSink',
    'LoggingAlertSink',
    'LoggingOperatorSink',
    'DiscordAlertSink',
    'TelegramOperatorSink',
    'build_alert_sinks',
    'OrbConfig',
    'load_config_from_yaml',
    'TradeLedger',
    'DailyOrchestrator',
    'RunResult',
    'Scheduler',
    'OrbStateStore',
    'SetupState',
    'SignalLogEntry',
    'DailySnapshot',
    'Trade',
    'DailyIndicatorRecord',
]
