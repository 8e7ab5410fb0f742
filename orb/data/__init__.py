"""
Data module for loading daily price history.

Provides:
- PriceSource interface with Yahoo Finance and CSV implementations
- DataLoader for OHLCV CSV files
"""
from .loader import DataLoader
from .download import PriceSource, YahooPriceSource, CsvPriceSource, clean_bars

__all__ = [
    'DataLoader',
    'PriceSource',
    'YahooPriceSource',
    'CsvPriceSource',
    'clean_bars',
]
