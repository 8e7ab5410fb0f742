"""
Setup catalog and mode suggestion.
"""
from .types import PreviousState, SetupResult, SetupDefinition, ModeSuggestion
from .catalog import (
    SETUP_REGISTRY,
    BUY_SETUP_IDS,
    AVOID_SETUP_IDS,
    get_setup,
    evaluate_setup,
    evaluate_all_setups,
)
from .mode import suggest_mode, MODE_RULES

__all__ = [
    'PreviousState',
    'SetupResult',
    'SetupDefinition',
    'ModeSuggestion',
    'SETUP_REGISTRY',
    'BUY_SETUP_IDS',
    'AVOID_SETUP_IDS',
    'get_setup',
    'evaluate_setup',
    'evaluate_all_setups',
    'suggest_mode',
    'MODE_RULES',
]
