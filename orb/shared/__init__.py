"""
Shared types, errors and defaults for the Orb engine.

This module provides:
- Enums for setup status, zones and trade lifecycle
- The exception hierarchy
- Centralized default values for all indicator parameters
"""
from .types import (
    BxState, SetupStatus, SetupSide, SetupCategory,
    Zone, TradeStatus, ExitReason, EventType,
)
from .errors import (
    OrbError, PriceFetchError, InsufficientHistoryError,
    StateStoreError, ConfigError,
)

__all__ = [
    'BxState', 'SetupStatus', 'SetupSide', 'SetupCategory',
    'Zone', 'TradeStatus', 'ExitReason', 'EventType',
    'OrbError', 'PriceFetchError', 'InsufficientHistoryError',
    'StateStoreError', 'ConfigError',
]
